import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stockledger.app.api.v1.router import router as v1_router
from stockledger.app.core.config import settings
from stockledger.app.core.logging_config import configure_logging
from stockledger.services.errors import StockError

configure_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(title="StockLedger", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


@app.exception_handler(StockError)
async def stock_error_handler(request: Request, exc: StockError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"error": "Validation failed", "details": exc.errors()}),
    )
