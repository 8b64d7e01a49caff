"""vMix backends - HTTP web controller API."""

from .http import VmixHttpClient, VmixState, build_shortcut_url

__all__ = ["VmixHttpClient", "VmixState", "build_shortcut_url"]
