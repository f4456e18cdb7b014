"""HTTP tests for task attachment uploads. S3 is replaced by a recording fake."""

import httpx
import pytest

from todoapp.constants.constants import AttachmentKind
from todoapp.core.security import create_jwt_token
from todoapp.main import app
from todoapp.utils.uploads import val_upload_attachment

URL = "/api/v1/uploads/task-attachment"


@pytest.fixture
def uploaded(monkeypatch):
    calls = []

    def fake_upload(file, kind, user_id):
        calls.append((file.filename, kind, user_id, file.file.read()))
        return f"https://files.example.com/{kind.value}/{file.filename}"

    monkeypatch.setattr(val_upload_attachment, "upload_file_to_s3", fake_upload)
    return calls


def _client(user_id="alice"):
    cookies = {"auth_token": create_jwt_token({"sub": user_id})} if user_id else {}
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        cookies=cookies,
    )


@pytest.mark.asyncio
async def test_file_upload_returns_name_and_url(uploaded):
    async with _client() as client:
        response = await client.post(
            URL,
            files={"file": ("notes.txt", b"hello", "text/plain")},
            data={"kind": "file"},
        )

    assert response.status_code == 200
    assert response.json() == {
        "name": "notes.txt",
        "url": "https://files.example.com/file/notes.txt",
    }
    assert uploaded == [("notes.txt", AttachmentKind.file, "alice", b"hello")]


@pytest.mark.asyncio
async def test_image_kind_rejects_documents(uploaded):
    async with _client() as client:
        response = await client.post(
            URL,
            files={"file": ("notes.pdf", b"%PDF", "application/pdf")},
            data={"kind": "image"},
        )

    assert response.status_code == 400
    assert uploaded == []


@pytest.mark.asyncio
async def test_empty_file_is_rejected(uploaded):
    async with _client() as client:
        response = await client.post(URL, files={"file": ("empty.png", b"", "image/png")}, data={"kind": "image"})

    assert response.status_code == 400
    assert uploaded == []


@pytest.mark.asyncio
async def test_oversized_file_is_rejected(uploaded, monkeypatch):
    monkeypatch.setattr(val_upload_attachment.settings, "MAX_FILE_SIZE", 4)
    async with _client() as client:
        response = await client.post(URL, files={"file": ("big.txt", b"too large", "text/plain")})

    assert response.status_code == 400
    assert uploaded == []


@pytest.mark.asyncio
async def test_upload_requires_a_user(uploaded):
    async with _client(None) as client:
        response = await client.post(URL, files={"file": ("notes.txt", b"hello", "text/plain")})

    assert response.status_code == 401
    assert uploaded == []
