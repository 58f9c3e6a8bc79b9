"""
Accumulator Ledger: Read-Only API Server
========================================

Read-Only API surfacing the accumulator maps and the runtime event log.
Writes happen through the runtime dispatcher only, never over HTTP.

Endpoints:
- GET /api/v1/accounts/{account_id}/count               -> AccumulatorCount
- GET /api/v1/accounts/{account_id}/accumulators        -> Enumerated log
- GET /api/v1/accounts/{account_id}/accumulators/{idx}  -> AccumulatorList slot
- GET /api/v1/events                                    -> Runtime event log
- GET /api/v1/state/root                                -> State root

Usage:
    uvicorn accumulator_ledger.api.server:app --reload
"""
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..contracts.base import U64_MAX
from ..engine import AccumulatorLedger, LedgerConfig

# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

# Global Ledger Instance
ledger_instance: Optional[AccumulatorLedger] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the ledger on startup."""
    global ledger_instance

    config = LedgerConfig.from_env()
    print(f"[*] Initializing Accumulator Ledger ({config.storage.backend_type}) at: {config.storage.storage_dir}")

    try:
        ledger_instance = AccumulatorLedger(config)
        print("[*] Ledger initialized successfully.")
    except Exception as e:
        print(f"[!] FAILED to initialize ledger: {e}")
        raise

    yield

    print("[*] Shutting down ledger.")
    ledger_instance = None

app = FastAPI(
    title="Accumulator Ledger API",
    version="0.1.0",
    description="Read-only query surface for per-account accumulator logs",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],  # STRICT READ-ONLY
    allow_headers=["*"],
)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CountResponse(BaseModel):
    account_id: str
    count: int


class AccumulatorResponse(BaseModel):
    account_id: str
    index: int
    accumulator: str  # hex


class AccumulatorListResponse(BaseModel):
    account_id: str
    count: int
    offset: int
    accumulators: List[AccumulatorResponse]


class EventResponse(BaseModel):
    extrinsic_index: int
    event: str
    account_id: str
    new_count: int
    payload: str  # hex


class EventListResponse(BaseModel):
    total: int
    events: List[EventResponse]


class StateRootResponse(BaseModel):
    state_root: str


def _ledger() -> AccumulatorLedger:
    if not ledger_instance:
        raise HTTPException(status_code=503, detail="Ledger not initialized")
    return ledger_instance


def _account_or_422(account_id: str) -> str:
    if not account_id.strip():
        raise HTTPException(status_code=422, detail="account_id must be non-empty")
    return account_id


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
async def health_check():
    """System status."""
    ledger = _ledger()
    return {"status": "online", "mode": "read-only", "backend": ledger.config.storage.backend_type}


@app.get("/api/v1/accounts/{account_id}/count", response_model=CountResponse)
async def get_count(account_id: str):
    """AccumulatorCount of the account, 0 if it never appended."""
    ledger = _ledger()
    account_id = _account_or_422(account_id)
    return CountResponse(account_id=account_id, count=ledger.accumulator_count(account_id))


@app.get("/api/v1/accounts/{account_id}/accumulators", response_model=AccumulatorListResponse)
async def list_accumulators(
    account_id: str,
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000)
):
    """Enumerate the account's log in append order."""
    ledger = _ledger()
    account_id = _account_or_422(account_id)

    count = ledger.accumulator_count(account_id)
    payloads = ledger.accumulators(account_id, offset, limit)

    return AccumulatorListResponse(
        account_id=account_id,
        count=count,
        offset=offset,
        accumulators=[
            AccumulatorResponse(account_id=account_id, index=offset + i, accumulator=p.hex())
            for i, p in enumerate(payloads)
        ]
    )


@app.get("/api/v1/accounts/{account_id}/accumulators/{index}", response_model=AccumulatorResponse)
async def get_accumulator(account_id: str, index: int):
    """Single AccumulatorList slot. 404 when the slot is empty."""
    ledger = _ledger()
    account_id = _account_or_422(account_id)

    if not 0 <= index <= U64_MAX:
        raise HTTPException(status_code=422, detail="index out of u64 range")

    payload = ledger.accumulator_list(account_id, index)
    if payload is None:
        raise HTTPException(status_code=404, detail=f"No accumulator at index {index}")

    return AccumulatorResponse(account_id=account_id, index=index, accumulator=payload.hex())


@app.get("/api/v1/events", response_model=EventListResponse)
async def get_events(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000)
):
    """Runtime event log, oldest first."""
    ledger = _ledger()
    records = ledger.events(offset, limit)

    return EventListResponse(
        total=len(ledger.events()),
        events=[EventResponse(**record.to_dict()) for record in records]
    )


@app.get("/api/v1/state/root", response_model=StateRootResponse)
async def get_state_root():
    """Deterministic digest of committed ledger state."""
    return StateRootResponse(state_root=_ledger().state_root())
