"""
Helpdesk SLA Service - Main Application
========================================

SLA tracking and escalation for helpdesk tickets.

Modules:
- SLA: policies, deadline tracking, breach evaluation, reporting
- Tickets: ticket operations that drive the SLA lifecycle hooks

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, policy file, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from helpdesk.config import settings
from helpdesk.core import ApplicationException, ConfigurationException

# Infrastructure
from helpdesk.infrastructure.database import (
    close_database, create_tables, get_session_context, init_database
)

# SLA Module
from helpdesk.sla.application import SLAPolicyService, SLATrackingService
from helpdesk.sla.infrastructure import (
    SLAScheduler,
    SQLAlchemyPolicyRepository,
    SQLAlchemyTicketSLARepository,
    seed_default_policies,
)

# Module Routers
from helpdesk.sla.interfaces import sla_router
from helpdesk.tickets.interfaces import tickets_router

# Shared
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from helpdesk.shared.infrastructure.audit import AuditLogger
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)

# Global service instances
sla_scheduler: Optional[SLAScheduler] = None


async def sla_sweep_job() -> None:
    """Background breach sweep."""
    async with get_session_context() as session:
        tracking = SLATrackingService(
            SQLAlchemyPolicyRepository(session),
            SQLAlchemyTicketSLARepository(session)
        )
        summary = await tracking.check_all_breaches()
        await AuditLogger(session).record(
            "SLA Breach Sweep", "ticket", None, details=summary
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Seed default SLA policies
    5. Start the breach sweep scheduler (when an interval is configured)

    SHUTDOWN:
    1. Stop the scheduler
    2. Close database connections
    """
    global sla_scheduler

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk SLA Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    # If the database is not reachable the server still starts and
    # database-dependent endpoints answer 503
    logger.info("Creating database tables")
    try:
        await create_tables()

        async with get_session_context() as session:
            policy_service = SLAPolicyService(
                SQLAlchemyPolicyRepository(session), AuditLogger(session)
            )
            await seed_default_policies(policy_service, settings.sla_policies_path)
    except ConfigurationException:
        raise
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    if settings.sla_check_interval_seconds > 0:
        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_check_interval_seconds)
        await sla_scheduler.start(sla_sweep_job)
    else:
        logger.info("Background breach sweep disabled")

    logger.info("Helpdesk SLA Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk SLA Service")

    if sla_scheduler:
        await sla_scheduler.stop()
        sla_scheduler = None

    await close_database()

    logger.info("Helpdesk SLA Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk SLA API",
    description="""
    ## Helpdesk SLA Tracking

    Response and resolution deadlines per ticket, derived from one active
    policy per priority.

    ---

    ### SLA Module

    - `GET/POST /sla/policies`, `GET/PATCH /sla/policies/{id}` - Policy store
    - `GET /sla/tickets/{id}` - Ticket SLA metrics (re-evaluated on read)
    - `POST /sla/check-breaches` - Sweep all open tickets
    - `GET /sla/dashboard`, `/sla/at-risk`, `/sla/compliance-report`, `/sla/trend` - Reports

    ### Tickets Module

    - `POST /tickets` - Create ticket (attaches SLA deadlines)
    - `POST /tickets/{id}/messages` - First agent message records the response
    - `PATCH /tickets/{id}/status` - Status change re-evaluates breaches

    ---

    ### Default Policies

    | Priority | Response | Resolution |
    |----------|----------|------------|
    | Critical | 1h       | 4h         |
    | High     | 4h       | 24h        |
    | Medium   | 8h       | 48h        |
    | Low      | 24h      | 72h        |
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (outermost added last) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(sla_router)
app.include_router(tickets_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {"sla_scheduler": "stopped"}
                }
            }
        }
    }
})
async def health_check():
    """Health check endpoint for load balancers and orchestrators."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {
            "sla_scheduler": "running" if sla_scheduler and sla_scheduler.is_running else "stopped"
        }
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "sla": {"prefix": "/sla"},
            "tickets": {"prefix": "/tickets"}
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
