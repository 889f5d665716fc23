from __future__ import annotations

from domain.exceptions import HarError


class PersistenceError(HarError):
    """Serialized archive bytes could not be written to the sink."""

    def __init__(self, message: str, data: bytes = b"") -> None:
        super().__init__(message)
        # already-encoded payload so a retry can skip serialization
        self.data = data
