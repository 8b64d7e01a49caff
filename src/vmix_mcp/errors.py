"""Exceptions raised by the vMix control layer."""

from typing import Any


class VmixError(Exception):
    """Base class for every failure surfaced to a tool caller."""


class VmixConnectionError(VmixError):
    """The vMix instance could not be reached or returned an unusable state document."""

    def __init__(self, host: str, port: int, cause: Exception | str):
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"Failed to connect to vMix instance at {host}:{port}: {cause}")


class VmixRemoteCallError(VmixError):
    """vMix rejected a function call, or the call never completed."""

    def __init__(self, function: str, params: dict[str, Any], cause: Exception | str):
        self.function = function
        self.params = params
        self.cause = cause
        super().__init__(f"vMix function {function} failed: {cause}")


class VmixTimeoutError(VmixError):
    """An operation ran past its deadline; in-flight calls were cancelled."""


class LayerLimitError(VmixError):
    """A scene request carried more layers than a scene input supports."""

    def __init__(self, count: int, limit: int):
        self.count = count
        self.limit = limit
        super().__init__(f"{count} layers requested, at most {limit} are supported")


class LayerProgramError(VmixError):
    """One or more layer mutations failed. Successful ones stay applied."""

    def __init__(self, target: str, failures: list):
        self.target = target
        self.failures = failures
        pairs = ", ".join(f"slot {f.slot} {f.field}" for f in failures)
        super().__init__(
            f"failed to set {len(failures)} layer attribute(s) on input {target}: {pairs}"
        )


class ScreenshotError(VmixError):
    """Base class for capture-and-return failures."""


class ScreenshotNotFoundError(ScreenshotError, FileNotFoundError):
    """The snapshot file never became readable within the polling budget."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"screenshot not found at {path} after {attempts} attempts")

    def __str__(self) -> str:
        return self.args[0]


class ScreenshotDecodeError(ScreenshotError):
    """The snapshot file exists but is not a decodable JPEG."""


class ScreenshotEncodeError(ScreenshotError):
    """The downscaled image could not be re-encoded."""
