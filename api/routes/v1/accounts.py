"""
api/routes/v1/accounts.py -- Account registration and self-service endpoints.

Routes:
  POST   /accounts                -- register (public); password is hashed before storage
  GET    /accounts/{account_id}   -- read own account
  PUT    /accounts/{account_id}   -- replace own name/email/password (new hash, old one discarded)
  DELETE /accounts/{account_id}   -- delete own account and every record it owns

Ownership: an account can only see or change itself. Any other id returns 404
-- the same answer as a missing id, so the routes cannot be used to probe which
ids exist [IDOR guard].

Every handler is a plain def: bcrypt and SQLAlchemy calls block, so FastAPI
runs them in the threadpool instead of on the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import AccountCreate, AccountResponse
from auth.dependencies import get_current_account_id
from auth.models import Account
from auth.passwords import PasswordHasher
from auth.store import AccountStore
from ledger.store import RecordStore

logger = logging.getLogger("ledgerapi.api")

# Auth policy:
# - POST   /api/v1/accounts:       public -- registration precedes any token
# - GET    /api/v1/accounts/{id}:  bearer token, owner only
# - PUT    /api/v1/accounts/{id}:  bearer token, owner only
# - DELETE /api/v1/accounts/{id}:  bearer token, owner only
router = APIRouter()

_NOT_FOUND = {"code": "not_found", "message": "Account not found."}
_EMAIL_TAKEN = {"code": "conflict", "message": "An account with that email already exists."}


def _require_self(account_id: int, current_account_id: int) -> None:
    if account_id != current_account_id:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(request: Request, body: AccountCreate) -> AccountResponse:
    """Register a new account. The plaintext password is hashed and then dropped."""
    store: AccountStore = request.app.state.account_store
    hasher: PasswordHasher = request.app.state.hasher

    account = Account(name=body.name, email=body.email, password_hash=hasher.hash(body.password))
    try:
        account_id = store.create_account(account)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_EMAIL_TAKEN) from exc

    logger.info("Account created: account_id=%d", account_id)
    created = store.get_by_id(account_id)
    if created is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Account not found after write."},
        )
    return AccountResponse.from_account(created)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    request: Request,
    account_id: int,
    current_account_id: int = Depends(get_current_account_id),
) -> AccountResponse:
    _require_self(account_id, current_account_id)
    store: AccountStore = request.app.state.account_store
    account = store.get_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return AccountResponse.from_account(account)


@router.put("/accounts/{account_id}", response_model=AccountResponse)
def replace_account(
    request: Request,
    account_id: int,
    body: AccountCreate,
    current_account_id: int = Depends(get_current_account_id),
) -> AccountResponse:
    """Replace name, email and password. The password is always re-hashed.

    Tokens issued before the change stay valid until they expire -- there is
    no revocation list.
    """
    _require_self(account_id, current_account_id)
    store: AccountStore = request.app.state.account_store
    hasher: PasswordHasher = request.app.state.hasher

    try:
        updated = store.update_account(
            account_id,
            name=body.name,
            email=body.email,
            password_hash=hasher.hash(body.password),
        )
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_EMAIL_TAKEN) from exc
    if not updated:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)

    logger.info("Account updated: account_id=%d", account_id)
    account = store.get_by_id(account_id)
    if account is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return AccountResponse.from_account(account)


@router.delete("/accounts/{account_id}", status_code=204)
def delete_account(
    request: Request,
    account_id: int,
    current_account_id: int = Depends(get_current_account_id),
) -> Response:
    """Delete the caller's account together with all of its records."""
    _require_self(account_id, current_account_id)
    store: AccountStore = request.app.state.account_store
    records: RecordStore = request.app.state.record_store

    if store.get_by_id(account_id) is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    records.delete_for_account(account_id)
    store.delete_account(account_id)
    logger.info("Account deleted: account_id=%d", account_id)
    return Response(status_code=204)
