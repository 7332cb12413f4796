"""Commit journal for the JSON data directory.

A commit first stages every changed file as ``<name>.tmp``.  Only when all
of them are written does the journal record the list of staged files; from
that moment the commit counts as durable.  The staged files are then moved
over their targets and the journal is removed.  If the process dies or a
move fails half-way, the next unit of work opened on the directory finds
the journal and finishes the moves before reading anything.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import structlog

from ordercore.domain.exceptions import PersistenceError

logger = structlog.get_logger(__name__)

JOURNAL_NAME = "commit.journal"


class CommitJournal:

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._path = data_dir / JOURNAL_NAME

    def publish(self, staged: list[tuple[Path, Path]]) -> None:
        """Journal ``(staged, target)`` pairs, then move every staged file in place."""
        entries = [{"staged": tmp.name, "target": target.name} for tmp, target in staged]
        tmp_journal = self._path.with_suffix(".tmp")
        try:
            tmp_journal.write_text(json.dumps(entries), encoding="utf-8")
            os.replace(tmp_journal, self._path)
        except OSError as exc:
            for tmp, _ in staged:
                tmp.unlink(missing_ok=True)
            raise PersistenceError(f"Cannot write commit journal {self._path}: {exc}") from exc
        try:
            self._apply(entries)
        except OSError as exc:
            raise PersistenceError(
                f"Commit journaled but not fully applied ({exc}); "
                "it is completed when the data directory is next opened"
            ) from exc

    def recover(self) -> None:
        """Finish a journaled commit that was interrupted."""
        if not self._path.exists():
            return
        try:
            entries = json.loads(self._path.read_text(encoding="utf-8"))
            self._apply(entries)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot recover commit journal {self._path}: {exc}") from exc
        logger.warning(
            "Rolled forward interrupted commit",
            data_dir=str(self._data_dir),
            files=[e["target"] for e in entries],
        )

    def _apply(self, entries: list[dict]) -> None:
        for entry in entries:
            staged = self._data_dir / entry["staged"]
            # Already moved by an earlier attempt.
            if staged.exists():
                os.replace(staged, self._data_dir / entry["target"])
        self._path.unlink()
