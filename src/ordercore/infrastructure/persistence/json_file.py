"""A JSON list-of-records file, replaced whole through a staged copy."""

from __future__ import annotations

import json
from pathlib import Path

from ordercore.domain.exceptions import PersistenceError


class JsonFile:

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._ensure_file()

    @property
    def path(self) -> Path:
        return self._file_path

    @property
    def staged_path(self) -> Path:
        return self._file_path.with_suffix(self._file_path.suffix + ".tmp")

    def load(self) -> list[dict]:
        try:
            return json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self._file_path}: {exc}") from exc

    def stage(self, records: list[dict]) -> Path:
        """Write ``records`` next to the file; the commit journal moves it in place."""
        tmp = self.staged_path
        try:
            tmp.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Cannot write {tmp}: {exc}") from exc
        return tmp

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            try:
                self._file_path.parent.mkdir(parents=True, exist_ok=True)
                self._file_path.write_text("[]", encoding="utf-8")
            except OSError as exc:
                raise PersistenceError(
                    f"Cannot create {self._file_path}: {exc}"
                ) from exc
