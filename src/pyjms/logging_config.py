"""
Logging setup for applications built on pyjms.

pyjms itself only ever logs through ``logging.getLogger(__name__)`` (or the
logger handed to a Connection). Applications that do not configure logging
themselves can call ``setup_logging`` once at startup.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    level: int = logging.INFO,
    component_name: Optional[str] = None,
    force_setup: bool = False,
) -> None:
    """
    Send log records to stdout in the shared pyjms format.

    Args:
        level: Logging level (default: INFO)
        component_name: Name of the application component (e.g., 'order-listener')
        force_setup: Whether to force reconfiguration even if already setup
    """
    root_logger = logging.getLogger()
    if root_logger.handlers and not force_setup:
        # Logging already configured, just ensure our level is set
        root_logger.setLevel(level)
        return

    if force_setup:
        root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(create_formatter(component_name))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # amqpstorm logs every frame at DEBUG
    logging.getLogger("amqpstorm").setLevel(logging.WARNING)

    logging.getLogger("pyjms").setLevel(level)


def create_formatter(component_name: Optional[str] = None) -> logging.Formatter:
    """
    Create the standard formatter.

    Args:
        component_name: Included in every line when given

    Returns:
        Configured logging formatter
    """
    if component_name:
        prefix = f"[{component_name}] "
    else:
        prefix = ""

    return logging.Formatter(
        f"%(asctime)s - {prefix}%(name)s - %(threadName)s - %(levelname)s - %(message)s"
    )
