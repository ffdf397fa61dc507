"""
Caller context. Every service operation receives the owner explicitly and
filters by it; nothing here authenticates.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException


@dataclass(frozen=True)
class OwnerContext:
    owner_id: str


def get_owner_context(x_owner_id: Optional[str] = Header(default=None)) -> OwnerContext:
    """FastAPI dependency: read the owner identity forwarded by the gateway"""
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="X-Owner-Id header is required")
    return OwnerContext(owner_id=x_owner_id.strip())
