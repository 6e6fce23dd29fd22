from __future__ import annotations

from dataclasses import dataclass

from backend.app.db.models.core_types import Role
from backend.services.errors import ForbiddenError

# viewer < staff < admin
ROLE_RANK = {
    Role.viewer: 0,
    Role.staff: 1,
    Role.admin: 2,
}


@dataclass(frozen=True)
class RequestContext:
    """Identité de l'appelant, fournie par la couche d'authentification externe."""

    organization_id: int
    user_id: int | None
    role: Role = Role.staff


def require_role(ctx: RequestContext, minimum: Role) -> None:
    if ROLE_RANK[ctx.role] < ROLE_RANK[minimum]:
        raise ForbiddenError(
            f"Role {ctx.role.value} is not allowed (requires {minimum.value})",
            {"role": ctx.role.value, "required": minimum.value},
        )
