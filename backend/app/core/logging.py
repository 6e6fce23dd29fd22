from __future__ import annotations

import logging

from backend.app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configuration unique du logging (appelée au démarrage de l'app).
    Tous les modules loggent sous le préfixe "inventory.".
    """
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    logging.getLogger("inventory").setLevel(level or settings.log_level)
