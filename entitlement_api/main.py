from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .db import init_db
from .errors import EntitlementError
from .logging_config import get_logger
from .routers import employee as employee_router
from .routers import employer as employer_router

logger = get_logger(__name__)

app = FastAPI(title=settings.APP_NAME, version="0.1.0")


# CORS
origins = [o.strip() for o in settings.CORS_ALLOW_ORIGINS.split(',') if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(employer_router.router)
app.include_router(employee_router.router)


@app.exception_handler(EntitlementError)
async def entitlement_error_handler(request: Request, exc: EntitlementError):
    # deterministic client faults; logged at INFO, never retried
    logger.info("%s %s -> %s %s", request.method, request.url.path, exc.http_status, exc.code)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.on_event("startup")
def _on_startup():
    # create tables on startup (development convenience). Use migrations for prod.
    if settings.CREATE_TABLES_ON_STARTUP:
        init_db()
    logger.info("%s started (env=%s)", settings.APP_NAME, settings.APP_ENV)


@app.get("/health")
def health():
    return {"ok": True, "env": settings.APP_ENV}
