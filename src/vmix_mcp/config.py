"""Runtime settings, read from VMIX_MCP_* environment variables."""

import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field

DEFAULT_IP = "127.0.0.1"
DEFAULT_PORT = 8088
DEFAULT_REQUEST_TIMEOUT = 10.0
MAX_LAYERS = 10

# vMix writes snapshots asynchronously; these bound how long we wait for the file
SETTLE_DELAY = 5.0
POLL_ATTEMPTS = 30
POLL_INTERVAL = 0.2
JPEG_QUALITY = 80
SCALE_DIVISOR = 2

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _get_float(env: Mapping[str, str], name: str, default: float | None) -> float | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class CaptureSettings:
    """Timing and encoding parameters of the capture-and-return pipeline."""

    settle_delay: float = SETTLE_DELAY
    poll_attempts: int = POLL_ATTEMPTS
    poll_interval: float = POLL_INTERVAL
    jpeg_quality: int = JPEG_QUALITY
    scale_divisor: int = SCALE_DIVISOR
    snapshot_dir: str = field(default_factory=tempfile.gettempdir)
    remove_after_read: bool = False


@dataclass(frozen=True)
class Settings:
    default_ip: str = DEFAULT_IP
    default_port: int = DEFAULT_PORT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    operation_timeout: float | None = None
    max_layers: int = MAX_LAYERS
    log_level: str = "INFO"
    log_file: str | None = None
    capture: CaptureSettings = field(default_factory=CaptureSettings)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from the environment, falling back to defaults."""
        if env is None:
            env = os.environ

        capture = CaptureSettings(
            settle_delay=_get_float(env, "VMIX_MCP_SETTLE_DELAY", SETTLE_DELAY),
            poll_attempts=_get_int(env, "VMIX_MCP_POLL_ATTEMPTS", POLL_ATTEMPTS),
            poll_interval=_get_float(env, "VMIX_MCP_POLL_INTERVAL", POLL_INTERVAL),
            jpeg_quality=_get_int(env, "VMIX_MCP_JPEG_QUALITY", JPEG_QUALITY),
            snapshot_dir=env.get("VMIX_MCP_SNAPSHOT_DIR") or tempfile.gettempdir(),
            remove_after_read=_get_bool(env, "VMIX_MCP_REMOVE_SNAPSHOTS", False),
        )
        if capture.poll_attempts < 1:
            raise ValueError("VMIX_MCP_POLL_ATTEMPTS must be at least 1")
        if not 1 <= capture.jpeg_quality <= 95:
            raise ValueError("VMIX_MCP_JPEG_QUALITY must be between 1 and 95")

        return cls(
            default_ip=env.get("VMIX_MCP_DEFAULT_IP") or DEFAULT_IP,
            default_port=_get_int(env, "VMIX_MCP_DEFAULT_PORT", DEFAULT_PORT),
            request_timeout=_get_float(env, "VMIX_MCP_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            operation_timeout=_get_float(env, "VMIX_MCP_OPERATION_TIMEOUT", None),
            max_layers=_get_int(env, "VMIX_MCP_MAX_LAYERS", MAX_LAYERS),
            log_level=(env.get("VMIX_MCP_LOG_LEVEL") or "INFO").upper(),
            log_file=env.get("VMIX_MCP_LOG_FILE") or None,
            capture=capture,
        )
