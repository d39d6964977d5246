from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.common.logger import configure_logging
from storeguard.core.config import Settings, get_settings
from storeguard.core.rbac.catalog import load_access_catalog
from storeguard.core.snapshots import PolicySnapshots
from storeguard.api.routers import policy
from storeguard.api.middleware.principal import PrincipalMiddleware


def create_app(
    settings: Optional[Settings] = None,
    snapshots: Optional[PolicySnapshots] = None,
) -> FastAPI:
    """Build the policy API around a snapshot store."""
    settings = settings or get_settings()

    configure_logging(settings)

    if snapshots is None:
        snapshots = PolicySnapshots(load_access_catalog(settings))

    app = FastAPI(
        title=settings.app_name,
        description="Authorization and workflow transition policy engine",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.policy_snapshots = snapshots

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Principal id forwarded by the authentication gateway
    app.add_middleware(PrincipalMiddleware)

    app.include_router(policy.router, prefix="/api")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": "0.1.0"}

    return app
