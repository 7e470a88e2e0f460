# todo_app/main.py
import asyncio
import datetime as dt
import logging
import traceback
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from todo_app.api.deps import csrf_protect, get_auth_context
from todo_app.api.routers import web
from todo_app.api.routers.graphql_api import build_graphql_router
from todo_app.config import Settings, load_settings
from todo_app.core.csrf import CSRFGuard
from todo_app.core.db import close_db, init_db
from todo_app.core.errors import AppError, CSRFError, Unauthorized
from todo_app.core.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from todo_app.core.security import TokenService

logger = logging.getLogger("uvicorn.error")

STATIC_DIR = Path(__file__).resolve().parent / "static"
GRAPHQL_PATH = "/graphql"


def _log_unhandled_async_error(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # Last-resort sink for failures in tasks nobody awaited; never stops the loop
    logger.error("Unhandled async error: %s", context.get("message"), exc_info=context.get("exception"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    asyncio.get_running_loop().set_exception_handler(_log_unhandled_async_error)
    try:
        await init_db(settings)
    except Exception:
        # Fatal: uvicorn aborts startup and the process exits
        logger.critical("Startup error: database unavailable", exc_info=True)
        raise
    logger.info("Server listening on http://%s:%s", settings.host, settings.port)
    logger.info("GraphQL endpoint at http://%s:%s%s", settings.host, settings.port, GRAPHQL_PATH)
    logger.info("CORS origin: %s", settings.cors_origin)
    logger.info("Environment: %s", settings.env)
    yield
    await close_db()


def _error_page(request: Request, message: str, status_code: int, stack: str | None = None) -> Response:
    return web.templates.TemplateResponse(
        request, "error.html", {"message": message, "stack": stack}, status_code=status_code
    )


def install_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map the error taxonomy onto HTTP responses for the web surface."""

    @app.exception_handler(Unauthorized)
    async def _unauthorized(request: Request, exc: Unauthorized):
        return RedirectResponse(url="/login", status_code=303)

    @app.exception_handler(CSRFError)
    async def _csrf(request: Request, exc: CSRFError):
        logger.warning("CSRF token mismatch: %s %s", request.method, request.url.path)
        return _error_page(request, exc.message, 403)

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        return _error_page(request, exc.message, 400)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        if request.url.path.startswith(GRAPHQL_PATH):
            message = "Internal server error" if settings.is_production else (str(exc) or "Internal server error")
            return JSONResponse({"errors": [{"message": message}]}, status_code=500)
        stack = None
        if not settings.is_production:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return _error_page(request, "Something went wrong", 500, stack=stack)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Composition root: builds the services from `settings`, wires the
    middleware chain and mounts the web views and the GraphQL API.

    Pipeline (outermost first): security headers -> CORS -> rate limit ->
    routing. Authentication and the anti-forgery check run as app-wide
    dependencies ahead of every handler.
    """
    settings = settings or load_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan,
        dependencies=[Depends(get_auth_context), Depends(csrf_protect)],
    )
    app.state.settings = settings
    app.state.tokens = TokenService(settings.jwt_secret, settings.jwt_algorithm)
    app.state.csrf = CSRFGuard(
        settings.jwt_secret,
        dt.timedelta(minutes=settings.csrf_token_ttl_minutes),
        secure_cookie=settings.cookie_secure,
        algorithm=settings.jwt_algorithm,
    )

    # add_middleware wraps: last added runs first
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    )
    # CORS (with Cookie)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production, csp_exempt_prefix=GRAPHQL_PATH)

    install_exception_handlers(app, settings)

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    app.include_router(build_graphql_router(settings), prefix=GRAPHQL_PATH)
    app.include_router(web.router)
    return app
