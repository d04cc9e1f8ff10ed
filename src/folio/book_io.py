from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .reader_defaults import DEFAULT_WIDTH, STATE_SUFFIX

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """Raised when a stored reading session cannot be read or written."""


@dataclass
class SessionState:
    page: int
    offsets: dict[int, int] = field(default_factory=dict)
    width: int = DEFAULT_WIDTH

    def __post_init__(self) -> None:
        self.offsets = {index: offset for index, offset in self.offsets.items() if offset > 0}

    def as_payload(self) -> dict[str, object]:
        return {
            "page": self.page,
            "offsets": {str(index): offset for index, offset in sorted(self.offsets.items())},
            "width": self.width,
        }

    @classmethod
    def from_payload(cls, payload: object) -> "SessionState":
        if not isinstance(payload, Mapping):
            raise SessionStateError("session record is not an object")
        page = payload.get("page")
        width = payload.get("width")
        raw_offsets = payload.get("offsets") or {}
        if not isinstance(page, int) or isinstance(page, bool):
            raise SessionStateError(f"invalid page in session record: {page!r}")
        if not isinstance(width, int) or isinstance(width, bool):
            raise SessionStateError(f"invalid width in session record: {width!r}")
        if not isinstance(raw_offsets, Mapping):
            raise SessionStateError("offsets in session record are not an object")
        offsets: dict[int, int] = {}
        for key, value in raw_offsets.items():
            try:
                index = int(key)
            except (TypeError, ValueError) as exc:
                raise SessionStateError(f"invalid chapter index in session record: {key!r}") from exc
            if not isinstance(value, int) or isinstance(value, bool):
                raise SessionStateError(f"invalid offset for chapter {index}: {value!r}")
            offsets[index] = value
        return cls(page=page, offsets=offsets, width=width)


def state_path(book_path: str | Path) -> Path:
    """Sidecar file next to the book: ``<dir>/.<name>.folio.json``."""
    path = Path(book_path)
    return path.with_name(f".{path.name}{STATE_SUFFIX}")


def load_state(book_path: str | Path) -> SessionState | None:
    path = state_path(book_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No stored session at %s", path)
        return None
    except OSError as exc:
        raise SessionStateError(f"Cannot read session file {path}: {exc}") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SessionStateError(f"Corrupt session file {path}: {exc}") from exc
    try:
        state = SessionState.from_payload(payload)
    except SessionStateError as exc:
        raise SessionStateError(f"Corrupt session file {path}: {exc}") from exc
    logger.debug("Loaded session from %s: page=%d width=%d", path, state.page, state.width)
    return state


def save_state(book_path: str | Path, state: SessionState) -> Path:
    path = state_path(book_path)
    data = json.dumps(state.as_payload(), ensure_ascii=False, indent=2) + "\n"
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise SessionStateError(f"Cannot write session file {path}: {exc}") from exc
    logger.debug("Saved session to %s", path)
    return path
