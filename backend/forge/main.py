from __future__ import annotations

from html import escape
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.orm import Session

from . import schemas
from .core.config import settings
from .db import get_db
from .errors import DatabaseError, SessionError
from .models import ZCL_PACKAGE_TYPES
from .repositories import ClusterRepository, PackageRepository, SessionRepository
from .services import session_service


def _session_payload(session: Session, session_id: int, user_id: int | None) -> schemas.Session:
    bindings = session_service.get_session_packages(session, session_id)
    return schemas.Session(
        session_id=session_id,
        user_id=user_id,
        packages=[
            schemas.SessionPackage(
                package_id=binding.package_ref,
                type=binding.package.type,
                path=binding.package.path,
                required=binding.required,
                enabled=binding.enabled,
            )
            for binding in bindings
        ],
    )


def create_app() -> FastAPI:
    app = FastAPI(title="ClusterForge API", version="0.1.0", debug=settings.debug)

    @app.exception_handler(DatabaseError)
    async def _database_unavailable(_request: Request, exc: DatabaseError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/healthz", tags=["system"])
    def healthcheck() -> dict[str, str]:
        """Basic readiness probe."""

        return {"status": "ok"}

    @app.get("/index.html", response_class=HTMLResponse, tags=["system"])
    def landing_page(db: Session = Depends(get_db)) -> str:
        """Minimal landing page listing the loaded packages."""

        rows = "".join(
            f"<li>{escape(package.type)}: {escape(package.path)}</li>"
            for package in PackageRepository(db).list_packages()
        )
        return (
            "<!doctype html><html><head><title>ClusterForge</title></head>"
            f"<body><h1>ClusterForge</h1><ul>{rows}</ul></body></html>"
        )

    @app.get("/packages", response_model=schemas.PackageList, tags=["packages"])
    def list_packages(
        *,
        type: Annotated[str | None, Query(description="Package type filter")] = None,
        db: Session = Depends(get_db),
    ):
        """List loaded packages in load order."""

        packages = PackageRepository(db).list_packages(None if type is None else (type,))
        return schemas.PackageList(total=len(packages), items=list(packages))

    @app.get("/clusters", response_model=schemas.ClusterList, tags=["clusters"])
    def list_clusters(
        *,
        package_id: Annotated[int | None, Query(ge=1)] = None,
        manufacturer_code: Annotated[int | None, Query(ge=0)] = None,
        db: Session = Depends(get_db),
    ):
        """List clusters, optionally scoped to one package or manufacturer code."""

        if package_id is not None:
            package_ids = [package_id]
        else:
            package_ids = [package.id for package in PackageRepository(db).list_packages(ZCL_PACKAGE_TYPES)]
        clusters = ClusterRepository(db).clusters_for_packages(
            package_ids, manufacturer_code=manufacturer_code
        )
        return schemas.ClusterList(total=len(clusters), items=list(clusters))

    @app.post("/sessions", response_model=schemas.Session, status_code=201, tags=["sessions"])
    def create_session(payload: schemas.SessionCreate, db: Session = Depends(get_db)):
        """Create (or resolve) a session and bind the default package set."""

        try:
            if payload.session_key is not None:
                ref = session_service.ensure_user_and_session(
                    db, payload.user_key or "anonymous", payload.session_key
                )
                session_id, user_id = ref.session_id, ref.user_id
            else:
                session_id, user_id = session_service.create_blank_session(db), None
            session_service.initialize_session_packages(db, session_id)
        except SessionError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _session_payload(db, session_id, user_id)

    @app.get("/sessions/{session_id}/packages", response_model=schemas.Session, tags=["sessions"])
    def get_session_packages(session_id: int, db: Session = Depends(get_db)):
        """Return the packages bound to a session."""

        record = SessionRepository(db).get_session(session_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return _session_payload(db, session_id, record.user_ref)

    return app


app = create_app()
