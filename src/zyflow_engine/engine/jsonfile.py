"""Locked JSON-list files backing the engine's record stores.

Every store keeps its records as a JSON list of pydantic models in a single
file. Reads and read-modify-write cycles go through one lock per file object.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class JsonListFile(Generic[ModelT]):
    def __init__(self, path: Path, model: type[ModelT]) -> None:
        self.path = path
        self._model = model
        self._lock = threading.Lock()

    def _read_unlocked(self) -> list[ModelT]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("State file is not valid JSON; treating as empty", extra={"path": str(self.path)})
            return []
        if not isinstance(raw, list):
            logger.warning("State file has unexpected shape; treating as empty", extra={"path": str(self.path)})
            return []
        return [self._model.model_validate(item) for item in raw]

    def _write_unlocked(self, records: list[ModelT]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in records]
        self.path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def load(self) -> list[ModelT]:
        with self._lock:
            return self._read_unlocked()

    @contextmanager
    def transaction(self) -> Iterator[list[ModelT]]:
        """Yield the records under the lock; the (mutated) list is written back on exit.

        Nothing is written if the block raises.
        """

        with self._lock:
            records = self._read_unlocked()
            yield records
            self._write_unlocked(records)
