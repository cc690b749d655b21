"""
Centralized logging configuration.

Call once from an application or script entry point, not per module.
"""

import logging
import sys

import structlog


def configure_logging(level: int = logging.INFO) -> None:
    """
    Configure stdlib logging and the structlog level filter.

    Idempotent: stdlib handlers are only installed when the root logger has
    none; the structlog filter level is updated on every call.
    """
    root_logger = logging.getLogger()

    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(sys.stdout)],
        )
        logging.getLogger("psych_interpreter.core.registry").setLevel(level)
        logging.getLogger("psych_interpreter.core.config_loader").setLevel(level)

        # Reduce noise
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))
