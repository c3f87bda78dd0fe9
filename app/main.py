import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ✅ Import All API Routes
from app.api.routes import admin, admin_catalog, auth, billing, health, memberships, quota

from app.core import config
from app.core.exceptions import AppError
from app.core.logging_config import sanitize_log_data, setup_logging
from app.db.migrate import run_migrations

logger = logging.getLogger(__name__)


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Resume SaaS API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ============================================
# ✅ DOMAIN ERRORS -> HTTP
# ============================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    detail = exc.to_detail()
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.status_code}: {sanitize_log_data(detail)}")
    return JSONResponse(status_code=exc.status_code, content={"detail": jsonable_encoder(detail)})


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(billing.router)
app.include_router(quota.router)
app.include_router(memberships.router)
app.include_router(admin_catalog.router)
app.include_router(admin.router)


# ============================================
# ✅ STARTUP
# ============================================

@app.on_event("startup")
def on_startup():
    setup_logging(config.LOG_LEVEL, config.LOG_DIR)
    if config.RUN_MIGRATIONS:
        run_migrations()
    logger.info("Resume SaaS API started")


@app.get("/")
def root():
    return {"status": "Resume SaaS API running"}
