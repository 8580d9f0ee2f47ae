"""FastAPI gateway"""

from __future__ import annotations

import logging
from typing import Sequence

import uvicorn

from ..api.app import get_app
from ..config import settings as config_settings

logger = logging.getLogger(__name__)

SERVICE_NAME = "sentinel_api"


def main(argv: Sequence[str] | None = None) -> None:
    cfg = config_settings.get_settings()
    logger.info(
        "%s starting on port %s (data_dir=%s timezone=%s)",
        SERVICE_NAME,
        cfg.api_port,
        cfg.data_dir,
        cfg.timezone,
    )
    app = get_app()
    uvicorn.run(app, host="0.0.0.0", port=cfg.api_port, log_level="info")
