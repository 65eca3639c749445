"""Identifiers for batches and share links.

Both come from the OS CSPRNG. Share tokens carry 128 random bits, so they
are assumed unique without a collision check; the unique index on
``batches.share_token`` would reject the astronomically unlikely repeat.
"""
import secrets
import uuid


def new_batch_id() -> str:
    return str(uuid.uuid4())

def new_share_token() -> str:
    return secrets.token_hex(16)
