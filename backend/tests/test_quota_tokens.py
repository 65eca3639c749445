import re

from dropbatch.schemas.user import Identity
from dropbatch.services.quota import max_bytes
from dropbatch.services.tokens import new_batch_id, new_share_token
from tests.support import MIB


def test_anonymous_ceiling_is_200_mib():
    assert max_bytes(None) == 200 * MIB


def test_authenticated_ceiling_is_1_gib():
    assert max_bytes(Identity(id="u1", email="a@example.com")) == 1024 * MIB


def test_share_token_is_32_lowercase_hex():
    token = new_share_token()
    assert re.fullmatch(r"[0-9a-f]{32}", token)


def test_share_tokens_do_not_repeat():
    assert len({new_share_token() for _ in range(1000)}) == 1000


def test_batch_id_is_uuid4():
    batch_id = new_batch_id()
    assert re.fullmatch(r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}", batch_id)
    assert batch_id != new_batch_id()
