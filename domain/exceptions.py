from __future__ import annotations


class HarError(Exception):
    pass


class CaptureError(HarError):
    """Request or response body could not be captured or decoded."""


class SerializationError(HarError):
    pass


class ConfigError(HarError):
    pass
