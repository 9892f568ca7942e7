"""Runtime configuration for knowmap services, read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .depth import DEFAULT_MAX_DEPTH

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

DEFAULT_OUTPUT_DIR = Path.home() / ".knowmap" / "maps"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8766
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_RENDER_SCALE = 2.0


@dataclass
class Settings:
    """Service settings.

    Attributes:
        output_dir:   Where rendered PNGs are written (KNOWMAP_OUTPUT_DIR).
        host:         Bind address of the HTTP API (KNOWMAP_HOST).
        port:         Port of the HTTP API (KNOWMAP_PORT).
        log_level:    Root log level name (KNOWMAP_LOG_LEVEL).
        max_depth:    Parent-chain limit for depth resolution (KNOWMAP_MAX_DEPTH).
        render_scale: Default render scale factor (KNOWMAP_RENDER_SCALE).
    """
    output_dir: Path = DEFAULT_OUTPUT_DIR
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    max_depth: int = DEFAULT_MAX_DEPTH
    render_scale: float = DEFAULT_RENDER_SCALE

    def ensure_output_dir(self) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``env`` (defaults to ``os.environ``)."""
    env = os.environ if env is None else env
    return Settings(
        output_dir=Path(env.get("KNOWMAP_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
        host=env.get("KNOWMAP_HOST") or DEFAULT_HOST,
        port=_env_int(env, "KNOWMAP_PORT", DEFAULT_PORT),
        log_level=(env.get("KNOWMAP_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        max_depth=_env_int(env, "KNOWMAP_MAX_DEPTH", DEFAULT_MAX_DEPTH),
        render_scale=_env_float(env, "KNOWMAP_RENDER_SCALE", DEFAULT_RENDER_SCALE),
    )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Configure root logging for a knowmap entry point."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
