"""
Rimuru dashboard configuration dataclass.

Values resolve in order: CLI flag, environment variable, default.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("rimuru.config")

DEFAULT_DATA_DIR = os.path.expanduser("~/.rimuru")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}")
        return default


@dataclass
class DashboardConfig:
    """Unified configuration for the dashboard process."""
    # Paths
    data_dir: str = DEFAULT_DATA_DIR
    provider: str = "local"

    # Server
    host: str = "127.0.0.1"
    port: int = 8910
    debug: bool = False
    log_level: str = "INFO"

    # Auth
    auth_token: Optional[str] = None

    # Views
    page_size: int = 20
    overlay_duration_ms: int = 200

    @classmethod
    def from_env(cls) -> "DashboardConfig":
        cfg = cls()
        cfg.data_dir = os.path.expanduser(os.environ.get("RIMURU_DATA_DIR", "") or cfg.data_dir)
        cfg.provider = os.environ.get("RIMURU_PROVIDER", "") or cfg.provider
        cfg.host = os.environ.get("RIMURU_HOST", "") or cfg.host
        cfg.port = _env_int("RIMURU_PORT", cfg.port)
        cfg.log_level = (os.environ.get("RIMURU_LOG_LEVEL", "") or cfg.log_level).upper()
        cfg.auth_token = os.environ.get("RIMURU_TOKEN", "").strip() or None
        cfg.page_size = _env_int("RIMURU_PAGE_SIZE", cfg.page_size)
        cfg.overlay_duration_ms = _env_int("RIMURU_OVERLAY_DURATION_MS", cfg.overlay_duration_ms)
        return cfg

    def apply_args(self, args) -> "DashboardConfig":
        """Overlay argparse values that were given on the command line."""
        if getattr(args, "data_dir", None):
            self.data_dir = os.path.expanduser(args.data_dir)
        if getattr(args, "provider", None):
            self.provider = args.provider
        if getattr(args, "host", None):
            self.host = args.host
        if getattr(args, "port", None):
            self.port = args.port
        if getattr(args, "token", None):
            self.auth_token = args.token
        if getattr(args, "page_size", None):
            self.page_size = args.page_size
        if getattr(args, "overlay_duration", None) is not None:
            self.overlay_duration_ms = args.overlay_duration
        if getattr(args, "log_level", None):
            self.log_level = args.log_level.upper()
        if getattr(args, "debug", None) is not None:
            self.debug = args.debug
        return self

    def validate(self) -> list:
        """Return human-readable warnings for a config that will run degraded."""
        warnings = []
        if self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.overlay_duration_ms < 0:
            raise ValueError(f"overlay_duration_ms must be >= 0, got {self.overlay_duration_ms}")
        if not os.path.isdir(self.data_dir):
            warnings.append(f"⚠️  Data directory not found: {self.data_dir}")
        if not self.auth_token:
            warnings.append("⚠️  No auth token set; the API is open to anyone who can reach it")
        return warnings
