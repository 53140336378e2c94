"""Logging configuration for DocVault"""
from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docvault.infrastructure.config.settings import Settings


def setup_logging(settings: Settings | None = None) -> None:
    """Configure application-wide logging"""
    if settings is None:
        from docvault.infrastructure.config.settings import get_settings

        settings = get_settings()

    log_level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def get_logger(name: str) -> logging.Logger:
    """Get logger for module"""
    return logging.getLogger(name)
