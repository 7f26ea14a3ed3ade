import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coldstore.config import settings
from coldstore.middleware.exceptions import register_exception_handlers
from coldstore.routers import (
    allocations,
    daybook,
    farmers,
    grading_gate_passes,
    health,
    incoming_gate_passes,
    nikasi_gate_passes,
    storage_gate_passes,
    voucher_numbers,
)
from coldstore.utils.cache import close_redis

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_redis()


app = FastAPI(
    title="Cold Storage Ledger",
    description="Gate-pass ledger: incoming, grading, storage and nikasi",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(farmers.router, prefix="/api/farmers", tags=["farmers"])
app.include_router(incoming_gate_passes.router, prefix="/api/incoming-gate-pass", tags=["incoming"])
app.include_router(grading_gate_passes.router, prefix="/api/grading-gate-pass", tags=["grading"])
app.include_router(storage_gate_passes.router, prefix="/api/storage-gate-pass", tags=["storage"])
app.include_router(nikasi_gate_passes.router, prefix="/api/nikasi-gate-pass", tags=["nikasi"])
app.include_router(allocations.router, prefix="/api/allocations", tags=["allocations"])
app.include_router(voucher_numbers.router, prefix="/api/voucher-number", tags=["voucher-number"])
app.include_router(daybook.router, prefix="/api/daybook", tags=["daybook"])
