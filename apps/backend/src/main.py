import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1.api import api_router
from core.config import get_settings
from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from core.exceptions import DomainError
from core.middleware import CorrelationIdMiddleware
from dependencies.db import init_models


logger = logging.getLogger(__name__)

setup_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if settings.AUTO_CREATE_TABLES:
        await init_models()
    logger.info("%s started (environment=%s)", settings.APP_NAME, settings.ENVIRONMENT)
    yield


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Save dishes and scale their ingredients to any number of servings",
    version="0.1.0",
    docs_url=None,  # We'll mount docs under /api/v1/docs
    redoc_url=None,
    lifespan=lifespan,
)

# Middleware added last runs first: correlation id is set before errors are
# normalized so error bodies can report it.
app.add_middleware(ExceptionNormalizationMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(DomainError, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Mount OpenAPI docs under /api/v1/docs and /api/v1/redoc
@app.get("/api/v1/docs", include_in_schema=False)
def custom_swagger_ui_html():
    return get_swagger_ui_html(
        openapi_url="/openapi.json", title=f"{settings.APP_NAME} API Docs"
    )


@app.get("/api/v1/redoc", include_in_schema=False)
def redoc_html():
    return get_redoc_html(
        openapi_url="/openapi.json", title=f"{settings.APP_NAME} API Redoc"
    )


@app.get("/")
def read_root() -> dict[str, str]:
    return {"message": f"Welcome to {settings.APP_NAME}"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
