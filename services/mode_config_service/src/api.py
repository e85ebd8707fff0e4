from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.common_utils.logger import logger

from ..config.env_settings import ModeConfigSettings
from .config_manager import ModeConfigManager
from .config_store import ConfigPersistenceError, UnknownModeError
from .schemas import ConfigStatus, ErrorResponse
from .validator import ConfigValidationError


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def create_app(settings: Optional[ModeConfigSettings] = None) -> FastAPI:
    settings = settings or ModeConfigSettings()
    logger.setLevel(settings.LOG_LEVEL.upper())
    config_manager = ModeConfigManager(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for FastAPI app."""
        # Startup
        await config_manager.start()
        yield
        # Shutdown
        await config_manager.stop()

    app = FastAPI(
        title="Mode Config Service",
        description=settings.SERVICE_DESCRIPTION,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.config_manager = config_manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
        token = logger.set_correlation_id(request_id)
        try:
            response = await call_next(request)
        finally:
            logger.reset_correlation_id(token)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return _error(404, "Endpoint not found")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error: {exc}", exc_info=exc)
        return _error(500, "Internal server error")

    @app.get("/api/config", responses={500: {"model": ErrorResponse}})
    async def get_config():
        try:
            return config_manager.get_config()
        except UnknownModeError as e:
            logger.error(f"Error while fetching current config: {e}")
            return _error(500, "Mode not valid")
        except Exception as e:
            logger.error(f"Error while fetching current config: {e}", exc_info=e)
            return _error(500, "Internal server error")

    @app.post("/api/config", responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    async def update_config(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            return _error(400, "Request body must be valid JSON")

        try:
            return await config_manager.update_config(payload)
        except ConfigValidationError as e:
            logger.warning(f"Rejected configuration update: {e}")
            return _error(400, str(e))
        except ConfigPersistenceError as e:
            logger.error(f"Error during configuration update: {e}")
            return _error(500, "Failed to save configuration")
        except Exception as e:
            logger.error(f"Error during configuration update: {e}", exc_info=e)
            return _error(500, "Internal server error")

    @app.get("/api/status", response_model=ConfigStatus)
    async def get_status():
        return config_manager.get_status()

    return app


app = create_app()
