from .batch import Batch
from .file import FileRecord
from .user import User

__all__ = ["Batch", "FileRecord", "User"]
