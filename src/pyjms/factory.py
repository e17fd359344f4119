"""
Connection factory resolution.

There are three ways to reach a provider:
    1. ``factory`` names the factory class by dotted path
    2. ``factory`` is the factory class, or an instance of it
    3. ``jndi_name`` + ``jndi_context`` look the factory up in a directory

``factory`` wins over ``jndi_name``. Declared factory properties are applied
before the connection is opened.
"""

import logging
from typing import Any

from pyjms import exceptions
from pyjms.config import ConnectionConfig
from pyjms.exceptions import ConfigurationError, JMSError
from pyjms.naming import open_context
from pyjms.provider.base import ConnectionFactory, ConnectionHandle
from pyjms.util import import_string

logger = logging.getLogger(__name__)


def resolve_connection_factory(
    config: ConnectionConfig, logger: logging.Logger = logger
) -> ConnectionFactory:
    """
    Return the factory selected by the configuration. No connection is made.

    :raises ConfigurationError: If neither factory nor jndi_name is supplied,
        or jndi_name is supplied without jndi_context.
    :raises ConnectionError: If the factory cannot be built or looked up.
    """
    if config.factory is not None:
        if config.jndi_name is not None:
            logger.warning(
                "Both 'factory' and 'jndi_name' supplied, ignoring jndi_name %s",
                config.jndi_name,
            )
        return _build_factory(config.factory)

    if config.jndi_name is not None:
        if not config.jndi_context:
            raise ConfigurationError(
                "Missing mandatory parameter 'jndi_context' for jndi_name "
                f"{config.jndi_name!r}"
            )
        return _lookup_factory(config.jndi_name, config.jndi_context)

    raise ConfigurationError("Missing mandatory parameter: 'factory' or 'jndi_name'")


def _build_factory(factory: Any) -> ConnectionFactory:
    try:
        if isinstance(factory, str):
            factory = import_string(factory)
        if isinstance(factory, type):
            factory = factory()
    except Exception as e:
        raise exceptions.ConnectionError(
            f"Unable to instantiate connection factory {factory!r}: {e}"
        ) from e

    if not callable(getattr(factory, "create_connection", None)):
        raise ConfigurationError(
            f"{type(factory).__name__} is not a connection factory "
            "(no create_connection method)"
        )
    return factory


def _lookup_factory(name: str, environment: dict[str, Any]) -> ConnectionFactory:
    try:
        context = open_context(environment)
    except Exception as e:
        raise exceptions.ConnectionError(
            f"Unable to open naming context for {name!r}: {e}"
        ) from e

    try:
        return context.lookup(name)
    except Exception as e:
        raise exceptions.ConnectionError(
            f"Lookup of connection factory {name!r} failed: {e}"
        ) from e
    finally:
        context.close()


def apply_properties(
    factory: ConnectionFactory,
    properties: dict[str, Any],
    logger: logging.Logger = logger,
) -> list[str]:
    """
    Apply every property the factory declares; others are skipped.

    :return: Names of the properties that were applied.
    """
    apply = getattr(factory, "apply_property", None)
    if apply is None:
        return []

    applied = []
    for name, value in properties.items():
        if apply(name, value):
            applied.append(name)
            logger.debug("   %s applied to %s", name, type(factory).__name__)
    return applied


def create_connection(
    config: ConnectionConfig, logger: logging.Logger = logger
) -> ConnectionHandle:
    """Resolve the factory, apply its properties, then connect."""
    factory = resolve_connection_factory(config, logger)
    logger.debug("Using factory: %s", type(factory).__name__)
    apply_properties(factory, config.properties(), logger)

    try:
        return factory.create_connection(config.username, config.password)
    except JMSError:
        raise
    except Exception as e:
        raise exceptions.ConnectionError(
            f"Failed to connect using {type(factory).__name__}: {e}"
        ) from e
