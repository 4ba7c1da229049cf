"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential carrier is accepted: the Authorization: Bearer <token>
header. There are no cookies and no API keys.

get_current_account_id() is the stage that runs after the middleware stack
and before every protected route handler. It either yields the account id
decoded from the token or stops the request with 401 -- the handler never
runs for an unauthenticated request.

Layer rule: no imports from api/ or ledger/.
  auth/dependencies.py may import from fastapi (for Request/HTTPException)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import Unauthorized
from auth.service import Authenticator, bearer_token


def get_current_account_id(request: Request) -> int:
    """Require a valid bearer token. Raises HTTP 401 on any token failure.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account_id: int = Depends(get_current_account_id)): ...
    """
    authenticator: Authenticator = request.app.state.authenticator
    token = bearer_token(request.headers.get("Authorization"))
    try:
        return authenticator.authorize(token)
    except Unauthorized as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
