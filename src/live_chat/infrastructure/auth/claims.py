from __future__ import annotations

from typing import Any

import jwt

from live_chat.application.dto.principal import Principal
from live_chat.application.exceptions import AuthRejected
from live_chat.domain.value_objects.enums import SenderType


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    """Build a Principal from ``{userId, role, clientId}`` claims."""
    try:
        user_id = str(payload["userId"])
    except KeyError as exc:
        raise AuthRejected("token has no userId claim") from exc
    role = payload.get("role")
    sender_type = SenderType.OPERATOR if role == SenderType.OPERATOR.value else SenderType.CUSTOMER
    client_id = payload.get("clientId")
    return Principal(
        user_id=user_id,
        sender_type=sender_type,
        client_id=None if client_id is None else str(client_id),
    )


def read_principal(token: str) -> Principal:
    """Read identity claims without verifying the signature.

    The signing secret only lives on the server; the client needs the claims
    to address its own conversation.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise AuthRejected(f"unreadable token: {exc}") from exc
    return principal_from_claims(payload)
