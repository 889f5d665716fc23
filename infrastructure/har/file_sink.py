# infrastructure/har/file_sink.py
from __future__ import annotations

from pathlib import Path
from typing import Union

from application.exceptions import PersistenceError
from application.ports.har_sink import HarSinkPort


class FileHarSink(HarSinkPort):
    """
    Writes the whole archive to one file, replacing the previous flush.

    The bytes go to a sibling temp file first and are renamed into place,
    so a reader never sees a half-written archive.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, data: bytes) -> int:
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            tmp.replace(self._path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write HAR file {self._path}: {exc}", data=data) from exc
        return len(data)
