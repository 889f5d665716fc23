# application/services/log_accumulator.py
from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from application.ports.entry_log import EntryLogPort
from domain.har import HAR_VERSION, Archive, Creator, Entry, Log


def default_creator(name: Optional[str] = None, version: Optional[str] = None) -> Creator:
    """Program name and start timestamp, unless given."""
    program = Path(sys.argv[0]).name if sys.argv and sys.argv[0] else ""
    return Creator(
        name=name or program or "harlog",
        version=version or datetime.now().strftime("%Y%m%d%H%M%S"),
    )


class LogAccumulator:
    """
    Log metadata plus the ordered entry sequence.

    Entries are kept in the order their appends complete. The store guards
    the append alone; capture work for concurrent transactions never waits
    on it.
    """

    def __init__(
        self,
        creator: Creator,
        store: EntryLogPort,
        version: str = HAR_VERSION,
        comment: Optional[str] = None,
    ) -> None:
        self._creator = creator
        self._store = store
        self._version = version
        self._comment = comment

    @property
    def creator(self) -> Creator:
        return self._creator

    @property
    def version(self) -> str:
        return self._version

    def append(self, entry: Entry) -> None:
        self._store.append(entry)

    def snapshot(self) -> Log:
        return Log(
            creator=self._creator,
            entries=self._store.list(),
            version=self._version,
            comment=self._comment,
        )

    def archive(self) -> Archive:
        return Archive(log=self.snapshot())

    def __len__(self) -> int:
        return self._store.count()
