from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .models import ContainerStatusOut, OutcomeOut
from .scheduler import Fleet
from .settings import Settings
from .status import ContainerStatus

security = HTTPBasic(auto_error=False)


def _status_out(st: ContainerStatus) -> ContainerStatusOut:
    return ContainerStatusOut(
        name=st.name,
        catalog_id=st.catalog_id,
        action=st.action,
        phase=st.phase,
        current_version=st.current_version,
        last_outcome=st.last_outcome,
        last_reason=st.last_reason,
        last_checked_at=st.last_checked_at,
    )


def create_app(fleet_factory: Callable[[], Fleet], settings: Settings, start_scheduler: bool = True) -> FastAPI:
    """Status/control API around a fleet.

    The fleet is built on startup (so config errors surface when the server
    starts) and its scheduler is stopped gracefully on shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        fleet = fleet_factory()
        app.state.fleet = fleet
        fleet.events.log_event("INFO", f"Watcher started with {len(fleet.config.containers)} container(s)")
        if start_scheduler:
            fleet.scheduler.start()
        try:
            yield
        finally:
            fleet.scheduler.stop()
            fleet.events.log_event("INFO", "Watcher stopped")

    app = FastAPI(title="Version Drift Reconciler", lifespan=lifespan)
    app.state.fleet = None

    def require_auth(credentials: HTTPBasicCredentials | None = Depends(security)) -> str | None:
        if not settings.api_password:
            return None
        if credentials is None or not (
            secrets.compare_digest(credentials.username, settings.api_user)
            and secrets.compare_digest(credentials.password, settings.api_password)
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Basic"},
            )
        return credentials.username

    def get_fleet() -> Fleet:
        fleet = app.state.fleet
        if fleet is None:
            raise HTTPException(status_code=503, detail="Watcher not started")
        return fleet

    @app.get("/health")
    def health() -> dict:
        fleet = app.state.fleet
        return {
            "status": "healthy" if fleet is not None else "starting",
            "scheduler_running": bool(fleet and fleet.scheduler.running),
        }

    @app.get("/containers", response_model=list[ContainerStatusOut])
    def list_containers(fleet: Fleet = Depends(get_fleet), _user: str | None = Depends(require_auth)):
        return [_status_out(st) for st in fleet.status.list()]

    @app.get("/containers/{name}", response_model=ContainerStatusOut)
    def get_container(name: str, fleet: Fleet = Depends(get_fleet), _user: str | None = Depends(require_auth)):
        st = fleet.status.get(name)
        if st is None:
            raise HTTPException(status_code=404, detail=f"Unknown container '{name}'")
        return _status_out(st)

    @app.post("/containers/{name}/reconcile", response_model=OutcomeOut)
    def reconcile_now(name: str, fleet: Fleet = Depends(get_fleet), user: str | None = Depends(require_auth)):
        rec = fleet.scheduler.get(name)
        if rec is None:
            raise HTTPException(status_code=404, detail=f"Unknown container '{name}'")
        fleet.events.log_event("INFO", f"Manual reconcile requested by {user or 'anonymous'}", container=name)
        outcome = rec.step()
        return OutcomeOut(container=name, outcome=outcome.kind.value, version=outcome.version, reason=outcome.reason)

    @app.get("/events")
    def events(
        limit: int = Query(50, ge=1, le=1000),
        container: str | None = None,
        fleet: Fleet = Depends(get_fleet),
        _user: str | None = Depends(require_auth),
    ):
        return fleet.events.latest(limit=limit, container=container)

    return app
