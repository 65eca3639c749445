from .auth import router as auth
from .batches import router as batches
from .download import router as download
from .history import router as history
from .upload import router as upload
