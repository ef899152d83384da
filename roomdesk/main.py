import logging

from fastapi import FastAPI

from .config import settings
from .db import SessionLocal, init_database
from .routers import dashboard_api, tables_api
from .services.gateway import build_gateway
from .services.refresh import RefreshOrchestrator
from .services.seed import seed_demo_data

# --- Logging configuration ---
_level = logging.DEBUG if getattr(settings, "DEBUG", False) else logging.INFO
logging.basicConfig(
    level=_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# Align uvicorn loggers with our level (useful under Docker Compose)
for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
    logging.getLogger(_name).setLevel(_level)
logger = logging.getLogger("roomdesk.startup")
logger.info("Starting %s (DEBUG=%s)", settings.APP_NAME, getattr(settings, "DEBUG", False))

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        f"{settings.APP_NAME}: room booking dashboard.\n\n"
        "The 'tables' tag is the REST table API over properties, rooms and bookings. "
        "The 'dashboard' tag drives the live availability session."
    ),
    openapi_tags=[
        {"name": "tables", "description": "PostgREST-style table API under /rest/v1."},
        {"name": "dashboard", "description": "Availability dashboard session under /api/v1/dashboard."},
    ],
)

@app.on_event("startup")
async def startup_event():
    """Runs startup tasks: schema, optional demo data, the dashboard session."""
    logger.info("Running startup tasks...")
    init_database()

    if settings.SEED_DEMO_DATA:
        db = SessionLocal()
        try:
            seed_demo_data(db)
        finally:
            db.close()

    if settings.DASHBOARD_ENABLED:
        session = RefreshOrchestrator(build_gateway())
        app.state.dashboard = session
        await session.start()
        if session.state.error:
            logger.warning("Initial dashboard load failed: %s", session.state.error)
    logger.info("Startup tasks complete.")


@app.on_event("shutdown")
async def shutdown_event():
    session = getattr(app.state, "dashboard", None)
    if session is not None:
        await session.stop()
        session.gateway.close()
        app.state.dashboard = None


app.include_router(tables_api.router)
app.include_router(dashboard_api.router)

@app.get("/healthz")
def healthz():
    return {"status": "ok"}
