"""
Ticket Assistant - FastAPI Backend
"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ticket_assistant import __version__
from ticket_assistant.config import get_settings
from ticket_assistant.middleware.logging_middleware import LoggingMiddleware
from ticket_assistant.models.schemas import ErrorResponse
from ticket_assistant.routes import health, query, tickets
from ticket_assistant.services.errors import ConfigurationError, StoreUnavailable
from ticket_assistant.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

app = FastAPI(
    title="Ticket Assistant",
    description="Natural-language queries and operations over Zendesk and Intercom tickets",
    version=__version__
)

# Middleware runs bottom-up: CORS first, then logging
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(detail=str(exc)).model_dump(),
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.error(f"Helpdesk unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=ErrorResponse(detail=str(exc), meta={"upstream_status": exc.status_code}).model_dump(),
    )


# Routers define their own prefixes
app.include_router(query.router)
app.include_router(tickets.router)
app.include_router(health.router)


@app.get("/")
async def root():
    return {"message": "Ticket Assistant API", "version": __version__}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
