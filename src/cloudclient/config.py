"""Pydantic configuration models for the cloud client.

Long-polling timing is process-wide and resolved from the environment once,
at import time (``DEFAULT_LONG_POLLING``). Everything else is passed per
call through ``ResolveOptions`` or to ``HttpTransport`` directly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cloudclient.cache import TypeCache

MIN_DELAY_ENV = "CLOUD_CLIENT_LONG_POLLING_MIN_DELAY"
PREFER_WAIT_ENV = "CLOUD_CLIENT_LONG_POLLING_PREFER_WAIT"


class LongPollingConfig(BaseModel):
    """Timing of the long-polling loop.

    Attributes:
        min_delay_ms: Minimum spacing between two poll requests, in
            milliseconds
        prefer_wait: How long the server is asked to hold a poll request
            open, in seconds (sent as ``Prefer: wait=N``)
    """

    model_config = ConfigDict(frozen=True)

    min_delay_ms: int = Field(default=500, ge=0, description="Minimum delay between polls (ms)")
    prefer_wait: int = Field(default=20, ge=0, description="Preferred server-side wait (s)")

    @property
    def min_delay(self) -> float:
        """Minimum delay in seconds."""
        return self.min_delay_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LongPollingConfig:
        """Build the config from environment variables.

        Unset variables keep their defaults. Values that are not
        non-negative integers raise ``pydantic.ValidationError``.
        """
        if environ is None:
            environ = os.environ
        values: dict[str, Any] = {}
        if environ.get(MIN_DELAY_ENV):
            values["min_delay_ms"] = environ[MIN_DELAY_ENV]
        if environ.get(PREFER_WAIT_ENV):
            values["prefer_wait"] = environ[PREFER_WAIT_ENV]
        return cls.model_validate(values)


class TransportConfig(BaseModel):
    """Configuration for ``HttpTransport``.

    Attributes:
        timeout: Request timeout in seconds, extended by the long-poll wait
        headers: Extra headers sent with every request
    """

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    headers: dict[str, str] = Field(default_factory=dict)


class ResolveOptions(BaseModel):
    """Per-call options for the resolvers in ``cloudclient.client``.

    Attributes:
        enable_long_polling: Keep constructed instances in sync with the server
        cache: Cache to resolve proxy types through; the process-wide
            ``default_cache`` when unset
        long_polling: Polling timing; ``DEFAULT_LONG_POLLING`` when unset

    Options are applied when a proxy type is built. A type already in the
    cache keeps the polling settings it was built with; pass a fresh
    ``cache`` to build with different ones.
    """

    model_config = ConfigDict(
        frozen=False,
        arbitrary_types_allowed=True,  # Allow TypeCache
    )

    enable_long_polling: bool = False
    cache: TypeCache | None = None
    long_polling: LongPollingConfig | None = None


DEFAULT_LONG_POLLING = LongPollingConfig.from_env()
