"""
Auth Provider boundary.

Authentication happens at the edge gateway; it forwards the signed-in user's
id in the X-User-Id header. This module only turns that header into a
Session, and redirects callers without one to sign-in.
"""
import logging
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

logger = logging.getLogger(__name__)

SIGN_IN_PATH = "/auth"


@dataclass(frozen=True)
class Session:
    user_id: str


async def get_current_session(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> Optional[Session]:
    user_id = (x_user_id or "").strip()
    if not user_id:
        return None
    return Session(user_id=user_id)


async def require_session(
    session: Annotated[Optional[Session], Depends(get_current_session)],
) -> Session:
    """The one condition handled as flow control: no session → go sign in."""
    if session is None:
        logger.debug("No session on request — redirecting to sign-in")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sign in required",
            headers={"Location": SIGN_IN_PATH, "WWW-Authenticate": "Bearer"},
        )
    return session
