"""
api/routes/v1/records.py -- Income and expense records, scoped to the caller.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /records               -- caller's records, newest date first
  POST   /records               -- create a record owned by the caller
  GET    /records/summary       -- income / expense totals and balance
  GET    /records/{record_id}   -- one of the caller's records
  DELETE /records/{record_id}   -- delete one of the caller's records

Every route requires a bearer token. The account id used in every query comes
from the token, never from the URL or the body -- there is no way to list,
read, create for, or delete another account's records.

Handlers are plain defs; RecordStore calls block and run in the threadpool.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import RecordCreate, RecordResponse, RecordSummaryResponse
from auth.dependencies import get_current_account_id
from ledger.models import Record
from ledger.store import RecordStore

# Auth policy: every route requires a bearer token (get_current_account_id).
router = APIRouter()

_NOT_FOUND = {"code": "not_found", "message": "Record not found."}


@router.get("/records", response_model=list[RecordResponse])
def list_records(
    request: Request,
    account_id: int = Depends(get_current_account_id),
) -> list[RecordResponse]:
    store: RecordStore = request.app.state.record_store
    return [RecordResponse.from_record(r) for r in store.list_records(account_id)]


@router.post("/records", response_model=RecordResponse, status_code=201)
def create_record(
    request: Request,
    body: RecordCreate,
    account_id: int = Depends(get_current_account_id),
) -> RecordResponse:
    """Create an income or expense entry bound to the caller's account."""
    store: RecordStore = request.app.state.record_store
    record_id = store.create_record(
        Record(
            account_id=account_id,
            kind=body.kind.value,
            amount=body.amount,
            description=body.description,
            date=body.date.isoformat(),
        )
    )
    created = store.get_record(record_id, account_id)
    if created is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Record not found after write."},
        )
    return RecordResponse.from_record(created)


@router.get("/records/summary", response_model=RecordSummaryResponse)
def records_summary(
    request: Request,
    account_id: int = Depends(get_current_account_id),
) -> RecordSummaryResponse:
    store: RecordStore = request.app.state.record_store
    summary = store.summary(account_id)
    return RecordSummaryResponse(
        income=summary.income,
        expense=summary.expense,
        balance=summary.balance,
        record_count=summary.record_count,
    )


@router.get("/records/{record_id}", response_model=RecordResponse)
def get_record(
    request: Request,
    record_id: int,
    account_id: int = Depends(get_current_account_id),
) -> RecordResponse:
    store: RecordStore = request.app.state.record_store
    record = store.get_record(record_id, account_id)
    if record is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return RecordResponse.from_record(record)


@router.delete("/records/{record_id}", status_code=204)
def delete_record(
    request: Request,
    record_id: int,
    account_id: int = Depends(get_current_account_id),
) -> Response:
    """Delete a record. Another account's record id gets the same 404 as a missing one."""
    store: RecordStore = request.app.state.record_store
    if store.delete_record(record_id, account_id) is None:
        raise HTTPException(status_code=404, detail=_NOT_FOUND)
    return Response(status_code=204)
