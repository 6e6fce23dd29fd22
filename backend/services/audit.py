from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from backend.app.db.models.models_v1 import AuditLog
from backend.services.context import RequestContext

logger = logging.getLogger("inventory.audit")


class AuditService:
    """
    Journal d'audit : un appel par opération qui change un état,
    dans la même transaction, avec les valeurs avant/après littérales.
    """

    def record(
        self,
        db: Session,
        ctx: RequestContext,
        *,
        action: str,
        entity_type: str,
        entity_id: Any,
        changes: dict[str, Any] | None = None,
    ) -> AuditLog:
        meta = json.dumps(changes or {}, ensure_ascii=False, default=str, sort_keys=True)
        entry = AuditLog(
            organization_id=ctx.organization_id,
            actor_id=ctx.user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            meta=meta,
        )
        db.add(entry)
        db.flush()

        logger.info("[audit] %s | %s:%s | %s", action, entity_type, entity_id, meta)
        return entry
