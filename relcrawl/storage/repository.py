"""Typed JSONL storage for crawled records."""
from __future__ import annotations

from pathlib import Path
from typing import Generic, Iterable, List, Type, TypeVar

import orjson
import structlog
from pydantic import BaseModel, ValidationError

from relcrawl.errors import PersistenceFailure

LOGGER = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class JsonlRepository(Generic[ModelT]):
    """Stores records of one model type as JSON lines under a directory."""

    def __init__(self, root: Path, model: Type[ModelT]) -> None:
        self._root = root
        self._model = model

    @property
    def root(self) -> Path:
        return self._root

    def files(self) -> List[Path]:
        if not self._root.exists():
            return []
        return sorted(self._root.glob("*.jsonl"))

    def load(self, limit: int) -> List[ModelT]:
        """Return up to ``limit`` records, reading files in name order."""
        records: List[ModelT] = []
        for path in self.files():
            if len(records) >= limit:
                break
            with path.open("rb") as handle:
                for line_no, line in enumerate(handle, start=1):
                    if len(records) >= limit:
                        break
                    if not line.strip():
                        continue
                    try:
                        records.append(self._model.model_validate(orjson.loads(line)))
                    except (orjson.JSONDecodeError, ValidationError) as exc:
                        raise PersistenceFailure(f"{path}:{line_no}: unreadable {self._model.__name__}") from exc
        LOGGER.debug("repository_loaded", model=self._model.__name__, count=len(records), limit=limit)
        return records

    def append(self, records: Iterable[ModelT], *, name: str) -> Path:
        """Append ``records`` to ``<name>.jsonl`` and return the file path."""
        self._root.mkdir(parents=True, exist_ok=True)
        target = self._root / f"{name}.jsonl"
        count = 0
        with target.open("ab") as handle:
            for record in records:
                handle.write(orjson.dumps(record.model_dump(mode="json")))
                handle.write(b"\n")
                count += 1
        LOGGER.info("repository_append", model=self._model.__name__, path=str(target), count=count)
        return target
