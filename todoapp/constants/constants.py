"""Constants for the task list interaction modes and attachment uploads."""

from enum import Enum


class EditMode(str, Enum):
    """Interaction modes of the task list; only one may be active at a time."""

    idle = "idle"
    creating = "creating"
    editing = "editing"
    reordering = "reordering"
    selecting_done = "selecting_done"
    selecting_delete = "selecting_delete"


class AttachmentKind(str, Enum):
    """Where an uploaded attachment is meant to go on a task."""

    image = "image"
    file = "file"


ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}

ALLOWED_FILE_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".txt", ".md", ".csv",
    ".ppt", ".pptx", ".xls", ".xlsx", ".zip",
} | ALLOWED_IMAGE_EXTENSIONS

# Storage folder per attachment kind; keys are <folder>/<user segment>/<name>
ATTACHMENT_FOLDERS = {
    AttachmentKind.image: "tasks/images",
    AttachmentKind.file: "tasks/files",
}

# Range of the 32-bit INTEGER columns (ids, sequence)
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
