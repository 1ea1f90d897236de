from __future__ import annotations

import jwt
import pytest

from live_chat.application.exceptions import AuthRejected
from live_chat.domain.value_objects.enums import SenderType
from live_chat.infrastructure.auth.claims import read_principal
from live_chat.infrastructure.auth.hs256_verifier import HS256Verifier


def _token(claims: dict, secret: str = "s3cret") -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_read_principal_without_secret():
    principal = read_principal(_token({"userId": 7, "role": "client", "clientId": 42}))
    assert principal.user_id == "7"
    assert principal.sender_type is SenderType.CUSTOMER
    assert principal.conversation_key == "42"


def test_admin_role_maps_to_operator():
    principal = read_principal(_token({"userId": 1, "role": "admin"}))
    assert principal.is_operator
    with pytest.raises(ValueError):
        _ = principal.conversation_key


@pytest.mark.parametrize("token", ["garbage", _token({"role": "client"})])
def test_unreadable_tokens_are_rejected(token):
    with pytest.raises(AuthRejected):
        read_principal(token)


@pytest.mark.asyncio
async def test_hs256_verifier_checks_signature():
    verifier = HS256Verifier("s3cret")
    principal = await verifier.verify(_token({"userId": 7, "role": "client", "clientId": 42}))
    assert principal.client_id == "42"

    with pytest.raises(AuthRejected):
        await verifier.verify(_token({"userId": 7}, secret="other"))
