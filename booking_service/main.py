import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import BOOKING_DB, LOG_LEVEL
from .db import Database
from .middleware import RequestLoggingMiddleware
from .routes import router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


def create_app(database_url: str = BOOKING_DB) -> FastAPI:
    app = FastAPI(title="Booking Service")

    db = Database(database_url)
    app.state.db = db

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            {"success": False, "message": detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        fields = {}
        for err in exc.errors():
            fields.setdefault(_field_name(err["loc"]), err["msg"])
        summary = "; ".join(f"{name}: {msg}" for name, msg in fields.items())
        return JSONResponse(
            {"success": False, "message": f"Invalid request: {summary}", "fields": fields},
            status_code=422,
        )

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "booking-service"}

    @app.on_event("startup")
    async def startup():
        await db.create_all()
        logger.info("booking-service ready (%s)", db.url)

    @app.on_event("shutdown")
    async def shutdown():
        await db.dispose()

    return app


app = create_app()
