import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.responses import JSONResponse, RedirectResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, get_logger, RequestIdMiddleware
from .auth.router import router as auth_router, pages as auth_pages
from .auth.security import set_session_cookie
from .routes.calendar import router as calendar_router
from .routes.time_entries import router as time_entries_router
from .routes.employees import router as employees_router
from .routes.projects import router as projects_router
from .routes.reports import router as reports_router
from .routes.health import router as health_router
from .templating import render


logger = get_logger(__name__)

JSON_API_PREFIX = "/calendar/api/"
PLAIN_JSON_PREFIXES = ("/auth/", "/health", "/metrics")


def _is_json_api(request: Request) -> bool:
    return request.url.path.startswith(JSON_API_PREFIX)


def _wants_html(request: Request) -> bool:
    if _is_json_api(request) or request.url.path.startswith(PLAIN_JSON_PREFIXES):
        return False
    if "authorization" in request.headers:
        return False
    accept = request.headers.get("accept", "")
    return "text/html" in accept or "application/json" not in accept


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)

    limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.middleware("http")
    async def slide_session(request: Request, call_next):
        response = await call_next(request)
        token = getattr(request.state, "session_token", None)
        cookie_prefix = settings.session_cookie_name + "="
        # Login and logout set the cookie themselves
        if token and not any(h.startswith(cookie_prefix) for h in response.headers.getlist("set-cookie")):
            set_session_cookie(response, token)
        return response

    # Routers
    app.include_router(auth_pages)
    app.include_router(auth_router)
    app.include_router(calendar_router)
    app.include_router(time_entries_router)
    app.include_router(employees_router)
    app.include_router(projects_router)
    app.include_router(reports_router)
    app.include_router(health_router)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if _is_json_api(request):
            return JSONResponse({"success": False, "message": exc.detail}, status_code=exc.status_code)
        if _wants_html(request):
            if exc.status_code == 401:
                return RedirectResponse("/login", status_code=303)
            return render(request, "error.html", {"status_code": exc.status_code, "message": exc.detail}, status_code=exc.status_code)
        return await http_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        if _is_json_api(request):
            errors = exc.errors()
            first = errors[0] if errors else {}
            field = ".".join(str(p) for p in first.get("loc", ())[1:])
            message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
            return JSONResponse({"success": False, "message": message}, status_code=422)
        return await request_validation_exception_handler(request, exc)

    # Metrics
    if settings.enable_metrics:
        Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        logger.info("startup", environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs(os.path.dirname(settings.database_url[len("sqlite:///"):]) or ".", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            logger.info("tables_created")
        if settings.seed_demo_data:
            from .services.seed import seed_demo_data
            db = SessionLocal()
            try:
                seed_demo_data(db)
            finally:
                db.close()

    return app


app = create_app()
