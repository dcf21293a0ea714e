"""
Oil Fleet API

Запуск локально:
    uvicorn oil_fleet.api.main:app --host 0.0.0.0 --port 8000
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from oil_fleet import __version__
from oil_fleet.api.config import settings
from oil_fleet.api.database import close_pool, init_pool
from oil_fleet.api.routes.auth import router as auth_router
from oil_fleet.api.routes.device import router as device_router
from oil_fleet.api.routes.prices import router as prices_router
from oil_fleet.pricing import PricingError, StorageFailure

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    stream=sys.stdout,
)
log = logging.getLogger('oil_fleet.api')


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_pool()
    log.info('DB pool ready  default_currency=%s', settings.default_currency)
    yield
    close_pool()


app = FastAPI(
    title="Oil Fleet API",
    version=__version__,
    description="Телеметрія та ціноутворення парку нафтових дозаторів",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError) -> JSONResponse:
    if isinstance(exc, StorageFailure):
        log.error('%s %s failed: %s', request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(auth_router)
app.include_router(prices_router)
app.include_router(device_router)


@app.get("/health", tags=["system"])
def health() -> dict:
    return {"status": "ok"}
