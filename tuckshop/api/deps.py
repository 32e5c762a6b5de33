"""
Caller identity for route handlers.

Sessions and tokens are verified upstream; the access verifier forwards the
resolved identity as headers and this module only turns them into a Caller.
"""
import logging
from typing import Optional
from fastapi import Header, HTTPException, status

from tuckshop.services.transitions import Caller, Role

log = logging.getLogger("uvicorn")


def get_caller(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Caller:
    """
    FastAPI dependency resolving the caller from verifier headers.

    Raises:
        HTTPException: 401 if no identity was forwarded, 403 if the role is unknown
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        role = Role(x_user_role.lower())
    except ValueError:
        log.warning(f"Rejected unknown role '{x_user_role}' for user {x_user_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: unknown role")
    return Caller(uid=x_user_id, role=role)
