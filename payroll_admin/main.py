from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from payroll_admin.core.errors import PayrollError, ValidationFailed
from payroll_admin.core.handlers import CORS_HEADERS, error_response, internal_error_response
from payroll_admin.core.logging import configure_logging
from payroll_admin.integrations.zoho.worker import start_zoho_monitor_task
from payroll_admin import models  # noqa: F401
from payroll_admin.routers.auth import router as auth_router
from payroll_admin.routers.payitems import router as payitems_router
from payroll_admin.routers.payruns import router as payruns_router
from payroll_admin.routers.rbac import router as rbac_router
from payroll_admin.routers.users import router as users_router
from payroll_admin.routers.zoho import router as zoho_router

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    task = start_zoho_monitor_task()
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                # monitor crash during shutdown; already logged.
                pass


app = FastAPI(
    title="Payroll Admin",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception", extra={"path": request.url.path, "method": request.method})
        return internal_error_response()


@app.exception_handler(PayrollError)
async def payroll_error_handler(request: Request, exc: PayrollError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")) or "body",
         "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    return error_response(ValidationFailed(errors))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": str(exc.detail),
            "code": HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        },
        headers={**CORS_HEADERS, **(exc.headers or {})},
    )


app.include_router(auth_router)
app.include_router(payruns_router)
app.include_router(payitems_router)
app.include_router(users_router)
app.include_router(rbac_router)
app.include_router(zoho_router)


@app.get("/")
def root():
    return {"status": "Payroll Admin running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
