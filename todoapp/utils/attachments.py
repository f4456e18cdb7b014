"""Attachment diffing, storage key layout and blob path extraction."""

import hashlib
from typing import Iterable, List, Optional
from urllib.parse import unquote

from todoapp.constants.constants import ATTACHMENT_FOLDERS, AttachmentKind
from todoapp.core.config import settings
from todoapp.schemas.taskSchema import FileAttachment


def user_storage_segment(user_id: str) -> str:
    """Key segment holding one user's uploads, derived from the user id alone."""
    return hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:32]


def attachment_key(user_id: str, kind: AttachmentKind, filename: str) -> str:
    return f"{ATTACHMENT_FOLDERS[AttachmentKind(kind)]}/{user_storage_segment(user_id)}/{filename}"


def is_user_blob_path(path: str, user_id: str) -> bool:
    """True when ``path`` lies under one of the user's own upload folders."""
    if not path or not user_id:
        return False
    if any(part in ("", ".", "..") for part in path.split("/")):
        return False
    segment = user_storage_segment(user_id)
    prefixes = tuple(f"{folder}/{segment}/" for folder in ATTACHMENT_FOLDERS.values())
    return path.startswith(prefixes)


def extract_blob_path(
    url: str,
    bucket: Optional[str] = None,
    base_url: Optional[str] = None,
) -> Optional[str]:
    """
    Turn a public attachment URL into the storage-relative object path.

    The path is what follows the public base URL, or failing that, what
    follows the first ``/<bucket>/`` segment. URLs that point elsewhere
    (an image pasted from another site, say) are not ours to delete and
    yield ``None``.
    """
    if not url:
        return None
    bucket = settings.AWS_S3_BUCKET if bucket is None else bucket
    base_url = settings.S3_PUBLIC_PREFIX if base_url is None else base_url

    raw = url.split("#", 1)[0].split("?", 1)[0]

    path = None
    if base_url and raw.startswith(base_url):
        path = raw[len(base_url):]
    elif bucket:
        marker = f"/{bucket}/"
        index = raw.find(marker)
        if index != -1:
            path = raw[index + len(marker):]

    if not path:
        return None
    return unquote(path.lstrip("/")) or None


def removed_images(old: Iterable[str], new: Iterable[str]) -> List[str]:
    """Images present in ``old`` but not in ``new``, compared by value."""
    keep = set(new)
    removed = []
    for url in old:
        if url not in keep and url not in removed:
            removed.append(url)
    return removed


def removed_files(old: Iterable[FileAttachment], new: Iterable[FileAttachment]) -> List[FileAttachment]:
    """Files present in ``old`` but not in ``new``, compared by url."""
    keep = {f.url for f in new}
    removed = []
    seen = set()
    for f in old:
        if f.url not in keep and f.url not in seen:
            seen.add(f.url)
            removed.append(f)
    return removed


def blob_paths(images: Iterable[str] = (), files: Iterable[FileAttachment] = ()) -> List[str]:
    """Unique storage paths referenced by the given attachments, in first-seen order."""
    paths = []
    for url in list(images) + [f.url for f in files]:
        path = extract_blob_path(url)
        if path and path not in paths:
            paths.append(path)
    return paths
