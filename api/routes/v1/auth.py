"""
api/routes/v1/auth.py -- Login and identity endpoints.

Routes:
  POST /api/v1/auth/login   -- email + password; returns a bearer token
  GET  /api/v1/auth/me      -- the account the presented token is bound to

Security:
  [H2] POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT, default 10/minute).
  [C1] Authenticator.login() provides timing equalization -- use it, never inline
       get_by_email() + verify().
  [M5] Cache-Control: no-store on login responses.
  Unknown email and wrong password produce byte-identical 401 responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AccountResponse, ErrorDetail, ErrorResponse, LoginRequest, LoginResponse
from auth.dependencies import get_current_account_id
from auth.errors import InvalidCredentials
from auth.service import Authenticator
from auth.store import AccountStore
from core.config import Settings

# Auth policy:
# - POST /api/v1/auth/login: public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:    requires a bearer token (get_current_account_id)
router = APIRouter()

# slowapi calls the limit provider with no request, so the value set by
# configure_login_rate_limit() at startup is held here.
_login_limit: str = Settings.model_fields["login_rate_limit"].default


def configure_login_rate_limit(limit: str) -> None:
    """Apply Settings.login_rate_limit. Called from api.main.configure_state()."""
    global _login_limit
    _login_limit = limit


def _login_rate_limit() -> str:
    return _login_limit


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(_login_rate_limit)  # [H2] below @router so the registered endpoint is the limited wrapper
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Declared as a plain def so FastAPI runs it in the threadpool -- bcrypt is
    deliberately slow and must not block the event loop.
    """
    authenticator: Authenticator = request.app.state.authenticator
    try:
        result = authenticator.login(body.email, body.password)
    except InvalidCredentials:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid email or password.")
            ).model_dump(exclude_none=True),
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.expires_in,
            account_id=result.account_id,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.get("/auth/me", response_model=AccountResponse)
def me(request: Request, account_id: int = Depends(get_current_account_id)) -> AccountResponse:
    """Return the account the presented token was issued for.

    Tokens are not revoked on account deletion, so a valid token can point at
    an account that no longer exists -- that is a 404, not a 401.
    """
    store: AccountStore = request.app.state.account_store
    account = store.get_by_id(account_id)
    if account is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Account not found."},
        )
    return AccountResponse.from_account(account)
