# application/ports/har_sink.py
from __future__ import annotations

from abc import ABC, abstractmethod


class HarSinkPort(ABC):
    @abstractmethod
    def write(self, data: bytes) -> int:
        """Persist the serialized archive and return the number of bytes written."""
        ...
