"""
Configuration for localfs.

This module defines the configuration dataclass that controls the address
scheme, host id allocation, durable state location, watch ignore policy and
the native watcher's polling behaviour.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .exceptions import ConfigurationError

DEFAULT_SCHEME = "localfs"
DEFAULT_ABS_SCHEME = "localfsabs"
DEFAULT_STATE_PATH = "~/.localfs/state.json"
DEFAULT_STATE_KEY = "localfs.hostBaseDirPairs"

# Paths containing one of these segments never produce change events
DEFAULT_IGNORED_SEGMENTS = [
    ".git",          # Git metadata
    "node_modules",  # Node dependency cache
]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class LocalFsConfig:
    """
    Configuration for a localfs service.

    Environment variables (see ``from_env``) override the defaults; explicit
    keyword arguments override both.
    """

    # === Addressing ===

    scheme: str = DEFAULT_SCHEME
    """Scheme of virtual addresses (``localfs://host/path``)."""

    abs_scheme: str = DEFAULT_ABS_SCHEME
    """Scheme of absolute addresses that name a real path directly (``localfsabs:///abs/path``)."""

    host_prefix: str = "h"
    """Prefix of allocated host ids; the registry appends a monotonic counter."""

    # === Durable State ===

    state_path: Path = field(default_factory=lambda: Path(DEFAULT_STATE_PATH))
    """JSON file backing the host registry across restarts."""

    state_key: str = DEFAULT_STATE_KEY
    """Key under which the host mappings are stored."""

    # === Watching ===

    ignored_segments: List[str] = field(default_factory=lambda: DEFAULT_IGNORED_SEGMENTS.copy())
    """Path segments whose presence suppresses watch registration and event delivery."""

    use_polling: bool = True
    """Poll the filesystem instead of relying on kernel notifications."""

    poll_interval: float = 1.0
    """Seconds between polls when ``use_polling`` is enabled."""

    def __post_init__(self):
        self.state_path = Path(self.state_path).expanduser()

        for name in ("scheme", "abs_scheme"):
            value = getattr(self, name)
            if not value or not value.replace("-", "").replace("+", "").replace(".", "").isalnum():
                raise ConfigurationError(
                    f"Invalid address scheme: {value!r}",
                    config_field=name,
                    config_value=value,
                )

        if self.scheme == self.abs_scheme:
            raise ConfigurationError(
                "scheme and abs_scheme must differ",
                config_field="abs_scheme",
                config_value=self.abs_scheme,
            )

        if not self.host_prefix or "/" in self.host_prefix or ":" in self.host_prefix:
            raise ConfigurationError(
                f"Invalid host prefix: {self.host_prefix!r}",
                config_field="host_prefix",
                config_value=self.host_prefix,
                suggestion="Use a short alphanumeric prefix such as 'h'.",
            )

        if self.poll_interval <= 0:
            raise ConfigurationError(
                f"poll_interval must be positive, got {self.poll_interval}",
                config_field="poll_interval",
                config_value=self.poll_interval,
            )

    @classmethod
    def from_env(cls, **overrides) -> "LocalFsConfig":
        """
        Build a configuration from ``LOCALFS_*`` environment variables.

        Recognized variables:
            LOCALFS_STATE_PATH: JSON state file location
            LOCALFS_HOST_PREFIX: prefix for allocated host ids
            LOCALFS_IGNORE: comma separated ignored path segments
            LOCALFS_USE_POLLING: true/false
            LOCALFS_POLL_INTERVAL: seconds between polls

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            A validated LocalFsConfig
        """
        values = {}

        state_path = os.getenv("LOCALFS_STATE_PATH")
        if state_path:
            values["state_path"] = Path(state_path)

        host_prefix = os.getenv("LOCALFS_HOST_PREFIX")
        if host_prefix:
            values["host_prefix"] = host_prefix

        ignore = os.getenv("LOCALFS_IGNORE")
        if ignore is not None:
            values["ignored_segments"] = [s.strip() for s in ignore.split(",") if s.strip()]

        use_polling = _parse_bool("LOCALFS_USE_POLLING", os.getenv("LOCALFS_USE_POLLING"))
        if use_polling is not None:
            values["use_polling"] = use_polling

        poll_interval = os.getenv("LOCALFS_POLL_INTERVAL")
        if poll_interval:
            try:
                values["poll_interval"] = float(poll_interval)
            except ValueError as e:
                raise ConfigurationError(
                    f"LOCALFS_POLL_INTERVAL is not a number: {poll_interval!r}",
                    config_field="poll_interval",
                    config_value=poll_interval,
                ) from e

        values.update(overrides)
        return cls(**values)


def _parse_bool(name: str, raw: Optional[str]) -> Optional[bool]:
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{name} must be a boolean, got {raw!r}",
        config_field=name,
        config_value=raw,
    )
