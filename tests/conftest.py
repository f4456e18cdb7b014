import os

os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ["AWS_S3_BUCKET"] = "todo-attachments"
os.environ["AWS_S3_BASE_URL"] = "https://files.example.com/storage/v1/object/public/todo-attachments/"

from typing import List

import pytest
import pytest_asyncio

from todoapp.constants.constants import AttachmentKind
from todoapp.core.config import settings
from todoapp.core.database import DatabaseSessionManager
from todoapp.core.exceptions import StorageCleanupFailure
from todoapp.core.security import StaticIdentityProvider
from todoapp.repositories.TaskRepository import TaskRepository
from todoapp.services.ChangeNotifier import ChangeNotifier
from todoapp.services.TaskMutationService import TaskMutationService
from todoapp.utils.attachments import attachment_key


class FakeBlobStore:
    """Records every remove() call instead of talking to S3."""

    def __init__(self):
        self.calls: List[List[str]] = []
        self.fail = False

    @property
    def removed(self) -> List[str]:
        return [path for call in self.calls for path in call]

    async def remove(self, paths: List[str]) -> None:
        self.calls.append(list(paths))
        if self.fail:
            raise StorageCleanupFailure(paths, Exception("storage unavailable"))


@pytest.fixture
def blob_url():
    def _url(path: str) -> str:
        return f"{settings.S3_PUBLIC_PREFIX}{path}"

    return _url


@pytest.fixture
def blob_key():
    """Storage key of an attachment uploaded by ``user_id``."""

    def _key(user_id: str, name: str, kind: AttachmentKind = AttachmentKind.image) -> str:
        return attachment_key(user_id, kind, name)

    return _key


@pytest_asyncio.fixture
async def db_manager(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'todo-test.db'}")
    await manager.init()
    yield manager
    await manager.close()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def run_repo(db_manager, blob_store):
    """Run ``fn(repository)`` in its own committed transaction."""

    async def _run(fn):
        async with db_manager.get_session() as session:
            return await fn(TaskRepository(session, blob_store))

    return _run


@pytest.fixture
def make_service(db_manager, blob_store, notifier):
    def _make(user_id="user-1"):
        return TaskMutationService(
            StaticIdentityProvider(user_id),
            session_scope=db_manager.get_session,
            blob_store=blob_store,
            notifier=notifier,
        )

    return _make
