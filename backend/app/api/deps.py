from __future__ import annotations

from functools import lru_cache
from typing import Generator

from fastapi import Header, HTTPException

from backend.app.db.models.core_types import Role
from backend.app.db.session import SessionLocal
from backend.services.container import Services, build_services
from backend.services.context import RequestContext


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_services() -> Services:
    return build_services()


def get_request_context(
    organization_id: int | None = Header(default=None, alias="X-Organization-Id"),
    user_id: int | None = Header(default=None, alias="X-User-Id"),
    role: str | None = Header(default=None, alias="X-Role"),
) -> RequestContext:
    """Identité posée par la couche d'auth externe (en-têtes)."""
    if organization_id is None:
        raise HTTPException(status_code=401, detail="Missing X-Organization-Id header")

    try:
        parsed_role = Role(role.lower()) if role else Role.viewer
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid X-Role header: {role}")

    return RequestContext(organization_id=organization_id, user_id=user_id, role=parsed_role)
