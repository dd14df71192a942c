"""
FastAPI application entrypoint.
Run with: uvicorn suficiencia.main:app --reload --port 3000  (from backend/)

Every route except the public ones below needs the x-api-key header; then routes that need a
user take Authorization: Bearer <access token>.
  - Public: GET /, GET /health, /docs, /openapi.json, POST /api/auth/login
  - Auth:    /api/auth/register, /refresh, /verify, /logout
  - Courses: /api/courses ...
  - Users:   /api/users/profile, /courses, /enroll/{course_id}
  - Admin:   /api/admin/... and /api/admin/exam-schedules/...

Errors are always {error, code, details?}.
"""
import hmac
import logging
import time
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from suficiencia.config import settings
from suficiencia.errors import AppError, InvalidApiKey
from suficiencia.api.admin import router as admin_router
from suficiencia.api.auth import router as auth_router
from suficiencia.api.courses import router as courses_router
from suficiencia.api.exam_schedules import router as exam_schedules_router
from suficiencia.api.users import router as users_router

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset({"/", "/health", "/docs", "/docs/json", "/openapi.json", "/api/auth/login"})

_started_at = time.monotonic()

app = FastAPI(
    title="Suficiencia API",
    description="Academic sufficiency platform: users, courses, enrollment and exam scheduling.",
    version="1.0.0",
)


@app.middleware("http")
async def require_api_key(request: Request, call_next):
    """Perimeter check; runs before any token or role check."""
    path = request.url.path.rstrip("/") or "/"
    if request.method == "OPTIONS" or path in PUBLIC_PATHS:
        return await call_next(request)
    provided = request.headers.get("x-api-key") or ""
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), settings.api_key.encode("utf-8")):
        logger.warning("Rejected request without valid API key: %s %s", request.method, path)
        err = InvalidApiKey()
        return JSONResponse(status_code=err.status_code, content=err.to_dict())
    return await call_next(request)


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins if _origins else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(users_router)
app.include_router(exam_schedules_router)
app.include_router(admin_router)


# --- Error envelope ---

@app.exception_handler(AppError)
def handle_app_error(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    details = []
    for e in exc.errors():
        loc = [str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": e.get("msg", "")})
    return JSONResponse(
        status_code=400,
        content={"error": "Datos de entrada inválidos", "code": "VALIDATION_ERROR", "details": details},
    )


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        body = {"error": f"Ruta {request.method} {request.url.path} no encontrada", "code": "ROUTE_NOT_FOUND"}
    elif exc.status_code == 405:
        body = {"error": "Método no permitido", "code": "METHOD_NOT_ALLOWED"}
    else:
        body = {"error": str(exc.detail), "code": "HTTP_ERROR"}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError):
    """Constraint violations that no service translated: unique -> 409, FK/check/not-null -> 400."""
    msg = str(getattr(exc, "orig", exc)).lower()
    logger.warning("Unhandled IntegrityError on %s %s: %s", request.method, request.url.path, msg)
    if "unique" in msg or "duplicate" in msg:
        status_code, body = 409, {"error": "El recurso ya existe", "code": "DUPLICATE_RESOURCE"}
    elif "foreign key" in msg:
        status_code, body = 400, {"error": "Referencia inválida", "code": "INVALID_REFERENCE"}
    elif "check" in msg or "not null" in msg:
        status_code, body = 400, {"error": "Violación de restricción de datos", "code": "CONSTRAINT_VIOLATION"}
    else:
        status_code, body = 500, {"error": "Error de base de datos", "code": "DATABASE_ERROR"}
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"error": "Error interno del servidor", "code": "INTERNAL_SERVER_ERROR"}
    if not settings.is_production:
        body["details"] = f"{type(exc).__name__}: {exc}"
        body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(status_code=500, content=body)


@app.on_event("startup")
def startup():
    """Configure logging, refuse unsafe production settings, create SQLite tables."""
    logging.basicConfig(
        level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO),
        format="%(levelname)s %(name)s: %(message)s",
    )
    _log = logging.getLogger("suficiencia.main")
    problems = settings.production_problems()
    if problems:
        _log.critical("Unsafe production settings: %s. Set them in env or .env.", ", ".join(problems))
        raise RuntimeError(f"Unsafe production settings: {', '.join(problems)}")
    if not (settings.directory_url or "").strip():
        _log.warning("DIRECTORY_URL not set: logins without a local password accept any credentials (development).")
    from suficiencia.database import init_sqlite_db
    init_sqlite_db()
    _log.info("Suficiencia API started (env=%s)", settings.env or "development")


@app.get("/", response_class=HTMLResponse)
def root():
    """Root: minimal page linking to the docs and health check."""
    return """
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Suficiencia API</title></head>
    <body style="font-family: system-ui; max-width: 600px; margin: 2rem auto; padding: 1rem;">
    <h1>Suficiencia API</h1>
    <p>This is the <strong>API server</strong>. It returns JSON; send <code>x-api-key</code> on every request.</p>
    <ul>
    <li><a href="/docs">OpenAPI docs (Swagger)</a></li>
    <li>Health: <a href="/health">/health</a></li>
    </ul>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Health check (JSON)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "environment": settings.env or "development",
    }
