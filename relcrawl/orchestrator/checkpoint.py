"""Checkpoint files that let a crawl resume after a restart."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import orjson
import structlog
from pydantic import BaseModel, Field, ValidationError

from relcrawl.errors import PersistenceFailure
from relcrawl.orchestrator.state import CrawlState
from relcrawl.orchestrator.window import MAX_CALLS, WINDOW_MS

LOGGER = structlog.get_logger(__name__)

_CHECKPOINT_SCHEMA_VERSION = 1


class CheckpointPayload(BaseModel):
    """On-disk representation of a :class:`CrawlState`."""

    version: int = _CHECKPOINT_SCHEMA_VERSION
    target_id: int = Field(gt=0)
    subset: int = Field(ge=1)
    cursor: Union[int, str] = -1
    calls: List[int] = Field(default_factory=list)
    saved_at: Optional[str] = None


def checkpoint_path(root: Path, target_id: int) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    return root / f"{target_id}.json"


def save_checkpoint(root: Path, state: CrawlState) -> Path:
    """Write a consistent snapshot of ``state``, replacing any previous file."""
    snap = state.snapshot()
    try:
        payload = CheckpointPayload(
            target_id=snap.target_id,
            subset=snap.subset,
            cursor=snap.cursor,
            calls=list(snap.calls),
            saved_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )
        blob = orjson.dumps(payload.model_dump())
    except ValidationError as exc:
        raise PersistenceFailure(f"Crawl state for target {snap.target_id} cannot be saved: {exc}") from exc
    except orjson.JSONEncodeError as exc:
        raise PersistenceFailure(f"Crawl state for target {snap.target_id} cannot be encoded: {exc}") from exc
    path = checkpoint_path(root, snap.target_id)
    tmp_path = path.with_suffix(".json.tmp")
    tmp_path.write_bytes(blob)
    tmp_path.replace(path)
    LOGGER.info("checkpoint_saved", target_id=snap.target_id, subset=snap.subset, path=str(path))
    return path


def load_checkpoint(
    root: Path,
    target_id: int,
    *,
    max_calls: int = MAX_CALLS,
    window_ms: int = WINDOW_MS,
) -> Optional[CrawlState]:
    """Restore the state saved for ``target_id``, or None when nothing was saved."""
    path = checkpoint_path(root, target_id)
    if not path.exists():
        return None
    try:
        payload = CheckpointPayload.model_validate(orjson.loads(path.read_bytes()))
    except orjson.JSONDecodeError as exc:
        raise PersistenceFailure(f"Checkpoint {path} is not valid JSON") from exc
    except ValidationError as exc:
        raise PersistenceFailure(f"Checkpoint {path} is malformed: {exc}") from exc
    if payload.version != _CHECKPOINT_SCHEMA_VERSION:
        raise PersistenceFailure(f"Unsupported checkpoint version {payload.version} in {path}")
    if payload.target_id != target_id:
        raise PersistenceFailure(f"Checkpoint {path} belongs to target {payload.target_id}")
    state = CrawlState.restore(
        target_id=payload.target_id,
        subset=payload.subset,
        cursor=payload.cursor,
        calls=payload.calls,
        max_calls=max_calls,
        window_ms=window_ms,
    )
    LOGGER.info("checkpoint_loaded", target_id=target_id, subset=payload.subset, calls=len(payload.calls))
    return state


def load_or_create(
    root: Path,
    target_id: int,
    *,
    max_calls: int = MAX_CALLS,
    window_ms: int = WINDOW_MS,
) -> CrawlState:
    """Resume the saved crawl for ``target_id`` or start a new one."""
    state = load_checkpoint(root, target_id, max_calls=max_calls, window_ms=window_ms)
    if state is not None:
        return state
    return CrawlState.create(target_id, max_calls=max_calls, window_ms=window_ms)


def clear_checkpoint(root: Path, target_id: int) -> None:
    path = checkpoint_path(root, target_id)
    if path.exists():
        path.unlink()


def list_checkpoints(root: Path) -> List[int]:
    """Target identifiers that have a checkpoint under ``root``, ascending."""
    if not root.exists():
        return []
    targets = []
    for path in root.glob("*.json"):
        stem = path.stem
        if stem.isascii() and stem.isdigit() and stem == str(int(stem)) and int(stem) > 0:
            targets.append(int(stem))
        else:
            LOGGER.warning("checkpoint_skipped", path=str(path))
    return sorted(targets)
