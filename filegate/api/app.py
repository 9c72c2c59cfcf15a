"""FastAPI application for FileGate.

Endpoints:
  GET    /health                                   Health check (public)
  POST   /projects                                 Create a project (caller becomes admin)
  GET    /projects/{id}                            Get project            [viewer]
  DELETE /projects/{id}                            Delete project         [admin]
  GET    /projects/{project_id}/members            List members           [member:read]
  POST   /projects/{project_id}/members            Add a member           [admin]
  POST   /projects/{project_id}/api-keys           Mint an API key        [admin]
  GET    /projects/{project_id}/api-keys           List API keys          [admin]
  DELETE /projects/{project_id}/api-keys/{id}      Revoke an API key      [admin]
  POST   /projects/{project_id}/files              Register a file        [editor]
  GET    /projects/{project_id}/files              List files             [viewer]
  GET    /files/{id}                               Get file               [viewer]
  DELETE /files/{id}                               Delete file            [editor]

The authorization engine is built once in :func:`create_app`, before the
app can serve anything; an invalid policy aborts startup.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import filegate
from filegate.api.routes import api_keys, files, projects
from filegate.auth import Authenticator
from filegate.authz import Authorizer
from filegate.config import Settings
from filegate.config import settings as default_settings
from filegate.exceptions import FileGateError
from filegate.logging_config import log_startup_info, setup_logging
from filegate.rbac import Checker, ConfigError, load_policy
from filegate.rbac.presets import file_management
from filegate.storage import Store, create_store

logger = logging.getLogger("filegate")

_OPENAPI_TAGS = [
    {"name": "Health", "description": "Health checks and version info"},
    {"name": "Projects", "description": "Projects and their members"},
    {"name": "API Keys", "description": "Project-bound machine credentials"},
    {"name": "Files", "description": "File records and file-level operations"},
]


def build_checker(settings: Settings) -> Checker:
    """Compile the configured policy.

    Raises:
        ConfigError: the policy is unreadable or inconsistent.
    """
    try:
        policy = load_policy(settings.policy_file) if settings.policy_file else file_management()
        return Checker(policy)
    except ConfigError:
        logger.critical("Refusing to start with an invalid authorization policy", exc_info=True)
        raise


def create_app(
    settings: Settings | None = None,
    store: Store | None = None,
    checker: Checker | None = None,
) -> FastAPI:
    settings = settings or default_settings
    checker = checker or build_checker(settings)
    store = store or create_store(settings.storage, settings.db_path)
    policy_source = settings.policy_file or "builtin:file_management"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        await store.connect()
        log_startup_info(policy_source=policy_source, storage_backend=settings.storage)
        yield
        logger.info("Closing storage")
        await store.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="FileGate",
        description="Authorization-enforcing API for a multi-tenant file service.",
        version=filegate.__version__,
        lifespan=lifespan,
        openapi_tags=_OPENAPI_TAGS,
    )

    app.state.settings = settings
    app.state.checker = checker
    app.state.store = store
    app.state.authenticator = Authenticator(store, settings.jwt_secret)
    app.state.authorizer = Authorizer(
        checker, store, store, lookup_timeout=settings.lookup_timeout_seconds
    )

    @app.exception_handler(FileGateError)
    async def filegate_error_handler(request: Request, exc: FileGateError) -> JSONResponse:
        """Centralized handler for FileGate exceptions.

        The body holds no per-request data so that equal errors render to
        equal bytes; the request id travels in the X-Request-ID header.
        """
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error_type, "message": exc.message},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next) -> Response:
        request_id = str(uuid4())[:8]
        request.state.request_id = request_id
        start = time.monotonic()
        response: Response = await call_next(request)
        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        logger.info(
            "%s %s %s %.1fms [%s]",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health", tags=["Health"], summary="Health check")
    async def health():
        return {
            "status": "ok",
            "version": filegate.__version__,
            "storage_backend": settings.storage,
            "policy_source": policy_source,
        }

    app.include_router(projects.router)
    app.include_router(api_keys.router)
    app.include_router(files.router)

    return app


app = create_app()
