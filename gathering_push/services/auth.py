"""Operator authentication for the admin endpoints.

Tokens are Firebase ID tokens; admins carry a ``role=admin`` custom claim.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth as firebase_auth

from gathering_push.core.settings import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass
class Operator:
    uid: str
    email: Optional[str]
    role: Optional[str]


# Test tokens for development and test environments
MOCK_TOKENS = {
    "mock-admin-token": Operator(uid="admin-1", email="admin@example.com", role="admin"),
    "mock-member-token": Operator(uid="member-1", email="member@example.com", role="member"),
}


def get_current_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Operator:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing or invalid",
        )

    token = credentials.credentials
    if settings.accepts_mock_tokens and token in MOCK_TOKENS:
        return MOCK_TOKENS[token]

    try:
        decoded_token = firebase_auth.verify_id_token(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired Firebase token",
        )

    return Operator(
        uid=decoded_token["uid"],
        email=decoded_token.get("email"),
        role=decoded_token.get("role"),
    )


def require_admin(operator: Operator = Depends(get_current_operator)) -> Operator:
    if operator.role != "admin":
        logger.warning(f"Non-admin operator {operator.uid} attempted an admin action")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return operator
