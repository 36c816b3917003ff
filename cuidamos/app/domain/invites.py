"""Invite code minting and the derived plan sharing state."""
import secrets
from datetime import datetime
from enum import Enum
from typing import Optional

from .clock import as_utc

# 32 symbols: no I, O, 0 or 1
INVITE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 6


class PlanState(str, Enum):
    PRIVATE = "private"
    SHAREABLE = "shareable"


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(INVITE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    if expires_at is None:
        return True
    return as_utc(expires_at) < as_utc(now)


def plan_state(invite_code: Optional[str], invite_expires_at: Optional[datetime], now: datetime) -> PlanState:
    """Expiry is computed at read time; nothing is written when an invite lapses."""
    if invite_code and not is_expired(invite_expires_at, now):
        return PlanState.SHAREABLE
    return PlanState.PRIVATE
