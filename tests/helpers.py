"""Identities and token helpers shared by the tests."""

from datetime import datetime, timedelta, timezone

import jwt

from mediashop.core.config import settings

ALICE = "alice@example.com"
BOB = "bob@example.com"
ADMIN = "admin@example.com"


def make_token(email: str, role: str = "customer", token_type: str = "access", secret: str | None = None) -> str:
    payload = {
        "sub": email,
        "role": role,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=15),
    }
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth(email: str, role: str = "customer") -> dict:
    return {"Authorization": f"Bearer {make_token(email, role)}"}
