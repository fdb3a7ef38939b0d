import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tunibus.config import settings
from tunibus.database import Base, engine
from tunibus.log_config import setup_logging
from tunibus import models  # noqa: F401  registers tables on Base
from tunibus.assistant import router as assistant_router
from tunibus.auth import router as auth_router
from tunibus.bookings import router as bookings_router
from tunibus.fleet import router as fleet_router
from tunibus.incidents import router as incidents_router
from tunibus.loyalty import router as loyalty_router
from tunibus.notifications import router as notifications_router
from tunibus.optimization import router as optimization_router, run_optimization_scheduler
from tunibus.profile import router as profile_router
from tunibus.stats import router as stats_router
from tunibus.support import router as support_router
from tunibus.tracking import router as tracking_router, ws_router, tracking_manager
from tunibus.trips import router as trips_router
from tunibus.users import router as users_router

setup_logging()
settings.check_secrets()
logger = logging.getLogger("tunibus")

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = asyncio.create_task(tracking_manager.run_sweeper())
    optimizer = asyncio.create_task(run_optimization_scheduler())
    logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    try:
        yield
    finally:
        sweeper.cancel()
        optimizer.cancel()


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="TuniBus bus booking and fleet management API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith(settings.API_PREFIX):
        elapsed = (time.perf_counter() - started) * 1000
        logger.info("%s %s %s in %.0fms", request.method, request.url.path, response.status_code, elapsed)
    return response


# Include routers
app.include_router(auth_router, prefix=f"{settings.API_PREFIX}/auth", tags=["Authentication"])
app.include_router(profile_router, prefix=f"{settings.API_PREFIX}/profile", tags=["Profile"])
app.include_router(users_router, prefix=f"{settings.API_PREFIX}/users", tags=["Users"])
app.include_router(fleet_router, prefix=f"{settings.API_PREFIX}/vehicles", tags=["Fleet"])
app.include_router(trips_router, prefix=settings.API_PREFIX)
app.include_router(bookings_router, prefix=settings.API_PREFIX, tags=["Reservations & Tickets"])
app.include_router(loyalty_router, prefix=settings.API_PREFIX, tags=["Loyalty"])
app.include_router(notifications_router, prefix=settings.API_PREFIX, tags=["Notifications"])
app.include_router(support_router, prefix=f"{settings.API_PREFIX}/support", tags=["Support"])
app.include_router(assistant_router, prefix=f"{settings.API_PREFIX}/ai", tags=["AI Assistant"])
app.include_router(incidents_router, prefix=settings.API_PREFIX, tags=["Incidents"])
app.include_router(stats_router, prefix=settings.API_PREFIX, tags=["Statistics"])
app.include_router(optimization_router, prefix=settings.API_PREFIX, tags=["Optimization"])
app.include_router(tracking_router, prefix=f"{settings.API_PREFIX}/tracking", tags=["Tracking"])
app.include_router(ws_router, tags=["Real-time"])


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "TuniBus Transport System API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
