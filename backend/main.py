import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.errors import EntriesServiceError

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Tools Australia Entries Service",
    description="Draw entries, benefits reconciliation and admin user management",
    version="1.0.0"
)

# Read CORS configuration from environment
cors_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
if cors_origins.strip() == "*":
    allow_origins = ["*"]
else:
    allow_origins = [o.strip() for o in cors_origins.split(",") if o.strip()]

# Only allow credentials when explicit origins are configured
allow_credentials = False
if allow_origins != ["*"]:
    allow_credentials = os.getenv("CORS_ALLOW_CREDENTIALS", "false").lower() in ("1", "true", "yes")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EntriesServiceError)
async def entries_error_handler(request: Request, exc: EntriesServiceError):
    """Answer service errors raised outside a route body with the {success, error} envelope"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected with {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


# Import routers
from routes.admin_user_routes import router as admin_user_router
from routes.feature_flag_routes import router as feature_flag_router
from routes.package_routes import router as package_router
from routes.draw_routes import router as draw_router

app.include_router(admin_user_router)
app.include_router(feature_flag_router)
app.include_router(package_router)
app.include_router(draw_router)


@app.on_event("startup")
async def startup_event():
    """Initialize database indexes on startup"""
    from db.mongo import ensure_indexes
    ensure_indexes()
    logger.info("Database indexes initialized")


@app.get("/")
def root():
    return {
        "status": "ok",
        "service": "Tools Australia Entries Service",
        "version": "1.0.0",
    }


@app.get("/health")
def health_check():
    """Health check for load balancers"""
    from db.database import get_database
    try:
        get_database().ping()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return {"status": "unhealthy", "database": "disconnected", "error": str(e)}
