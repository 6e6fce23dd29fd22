import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.v1.router import router as v1_router
from backend.app.core.logging import configure_logging
from backend.services.errors import DomainError

configure_logging()
logger = logging.getLogger("inventory.api")

app = FastAPI(title="Inventory Engine", version="0.1.0")
app.include_router(v1_router, prefix="/v1")


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error_code": exc.code, "message": exc.message, "details": exc.details},
    )
