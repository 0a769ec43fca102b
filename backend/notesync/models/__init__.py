from notesync.models.category import Category
from notesync.models.note import DEFAULT_PREVIEW, Note

__all__ = ["Category", "DEFAULT_PREVIEW", "Note"]
