from dropbatch.core.config import settings
from dropbatch.schemas.user import Identity


def max_bytes(identity: Identity | None) -> int:
    """Byte ceiling for one batch, by sender tier."""
    if identity is None:
        return settings.ANONYMOUS_QUOTA_BYTES
    return settings.AUTHENTICATED_QUOTA_BYTES
