#!/usr/bin/env python3
# src/sse_session/config.py
"""
Session configuration.

Options are accepted under their camelCase names (``heartbeatIntervalMs``)
as well as the Python field names (``heartbeat_interval_ms``).
"""

import logging
import os
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, PositiveInt, ValidationError
from pydantic.alias_generators import to_camel

from .constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    DEFAULT_MAX_ACKNOWLEDGEMENTS,
    DEFAULT_MAX_REQUESTS_PER_SECOND,
    DEFAULT_THROTTLE_MS,
    ENV_PREFIX,
    ENV_TRUE_VALUES,
)
from .errors import SessionConfigError

logger = logging.getLogger(__name__)

# Field name -> parser for values read from the environment
_ENV_FIELDS: dict[str, Callable[[str], Any]] = {
    "heartbeat_interval_ms": int,
    "buffer_size": int,
    "throttle_ms": int,
    "max_requests_per_second": int,
    "retry": int,
    "max_acknowledgements": int,
    "auto_acknowledge": lambda value: value.strip().lower() in ENV_TRUE_VALUES,
    "event": str,
    "id": str,
}


class SessionConfig(BaseModel):
    """Per-session options for an SSE stream."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
        arbitrary_types_allowed=True,
    )

    on_close: Callable[[], Any] | None = None
    heartbeat_interval_ms: PositiveInt = DEFAULT_HEARTBEAT_INTERVAL_MS
    heartbeat_callback: Callable[[], Any] | None = None
    event: str | None = None  # reserved default label, not used for filtering
    retry: NonNegativeInt | None = None
    id: str | None = None
    buffer_size: PositiveInt = DEFAULT_BUFFER_SIZE
    throttle_ms: NonNegativeInt = DEFAULT_THROTTLE_MS
    max_requests_per_second: PositiveInt = DEFAULT_MAX_REQUESTS_PER_SECOND
    max_acknowledgements: PositiveInt = DEFAULT_MAX_ACKNOWLEDGEMENTS
    auto_acknowledge: bool = Field(default=True)

    @property
    def heartbeat_interval(self) -> float:
        """Heartbeat period in seconds."""
        return self.heartbeat_interval_ms / 1000.0

    @property
    def throttle_interval(self) -> float:
        """Minimum spacing between accepted sends, in seconds."""
        return self.throttle_ms / 1000.0

    @classmethod
    def build(
        cls, config: "SessionConfig | Mapping[str, Any] | None" = None, **options: Any
    ) -> "SessionConfig":
        """Create a config from an existing config or mapping plus keyword overrides."""
        if isinstance(config, SessionConfig):
            if not options:
                return config
            data = config.model_dump()
        elif config is None:
            data = {}
        else:
            data = _normalize_keys(config)

        data.update(_normalize_keys(options))
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SessionConfigError(
                f"Invalid SSE session configuration: {e}",
                suggestion="Check option names and that intervals and sizes are non-negative integers",
            ) from e

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **options: Any) -> "SessionConfig":
        """Load options from ``<prefix><FIELD_NAME>`` environment variables.

        Keyword options override anything found in the environment.
        """
        data: dict[str, Any] = {}
        for field_name, parse in _ENV_FIELDS.items():
            raw = os.environ.get(f"{prefix}{field_name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                data[field_name] = parse(raw)
            except ValueError as e:
                raise SessionConfigError(
                    f"Invalid value for {prefix}{field_name.upper()}: {raw!r}",
                    suggestion="Use an integer value",
                ) from e
            logger.debug(f"Config {field_name} loaded from environment")

        data.update(_normalize_keys(options))
        return cls.build(data)


def _normalize_keys(options: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase aliases onto field names so mixed spellings merge cleanly."""
    aliases = {field.alias: name for name, field in SessionConfig.model_fields.items() if field.alias}
    return {aliases.get(key, key): value for key, value in options.items()}
