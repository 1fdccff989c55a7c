"""Logging setup.

Thin layer over the standard library: a ``ContextualLogger`` adapter that
carries dimensions (account id, tier, component, ...) and an optional message
prefix, plus ``LoggerConfigurator`` to build them.

Usage:
    from tollgate.core.logging import logger

    log = logger.with_prefix("[CreditLedger] ").with_context(account_id=42)
    log.info("Debited 1 credit")
    # -> [CreditLedger] Debited 1 credit | account_id=42
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Mapping, MutableMapping, Optional

_ROOT_LOGGER_NAME = "tollgate"
_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s%(dimensions_suffix)s"


class _DimensionsFormatter(logging.Formatter):
    """Renders the ``dimensions`` extra as a ``| key=value`` suffix."""

    def format(self, record: logging.LogRecord) -> str:
        dimensions = getattr(record, "dimensions", None) or {}
        if dimensions:
            rendered = " ".join(f"{key}={value}" for key, value in sorted(dimensions.items()))
            record.dimensions_suffix = f" | {rendered}"
        else:
            record.dimensions_suffix = ""
        return super().format(record)


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter with a message prefix and key/value dimensions.

    Both ``with_context`` and ``with_prefix`` return new loggers; the
    original is never mutated, so a module-level logger can be specialised
    freely per request.
    """

    def __init__(
        self,
        logger: logging.Logger,
        prefix: str = "",
        dimensions: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Wrap ``logger`` with a prefix and base dimensions."""
        super().__init__(logger, {})
        self.prefix = prefix
        self.dimensions: dict[str, Any] = dict(dimensions or {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, Any]:
        """Prepend the prefix and merge dimensions into ``extra``."""
        extra = dict(kwargs.get("extra") or {})
        merged = dict(self.dimensions)
        merged.update(extra.pop("dimensions", {}) or {})
        extra["dimensions"] = merged
        kwargs["extra"] = extra
        return f"{self.prefix}{msg}", kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a logger carrying the extra dimensions."""
        merged = dict(self.dimensions)
        merged.update({k: v for k, v in dimensions.items() if v is not None})
        return ContextualLogger(self.logger, prefix=self.prefix, dimensions=merged)

    def with_prefix(self, prefix: str) -> "ContextualLogger":
        """Return a logger whose messages start with ``prefix``."""
        return ContextualLogger(self.logger, prefix=prefix, dimensions=self.dimensions)


class LoggerConfigurator:
    """Builds configured ``ContextualLogger`` instances."""

    _configured = False

    @classmethod
    def _configure_root(cls, level: str) -> None:
        if cls._configured:
            return
        root = logging.getLogger(_ROOT_LOGGER_NAME)
        if not root.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(_DimensionsFormatter(_LOG_FORMAT))
            root.addHandler(handler)
        root.setLevel(level)
        root.propagate = False
        cls._configured = True

    @classmethod
    def configure_logger(
        cls,
        name: str,
        prefix: str = "",
        dimensions: Optional[Mapping[str, Any]] = None,
    ) -> ContextualLogger:
        """Return a ContextualLogger under the ``tollgate`` hierarchy.

        Args:
            name: Logger name; names outside ``tollgate.`` are nested under it.
            prefix: Prepended to every message.
            dimensions: Base key/value pairs attached to every record.
        """
        from tollgate.core.config import settings

        cls._configure_root(settings.LOG_LEVEL)
        if name != _ROOT_LOGGER_NAME and not name.startswith(f"{_ROOT_LOGGER_NAME}."):
            name = f"{_ROOT_LOGGER_NAME}.{name}"
        return ContextualLogger(logging.getLogger(name), prefix=prefix, dimensions=dimensions)


logger = LoggerConfigurator.configure_logger(_ROOT_LOGGER_NAME)
