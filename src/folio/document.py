from __future__ import annotations

import logging
from typing import Protocol, Sequence

from .core import EpubContainer, EpubError, TocEntry

logger = logging.getLogger(__name__)


class CursorError(IndexError):
    """Raised when a cursor is stepped past either end of the spine."""


class ChapterNotFoundError(LookupError):
    """Raised when a url is not part of the document's reading order."""


class Cursor(Protocol):
    def url(self) -> str: ...

    def next(self) -> None: ...

    def previous(self) -> None: ...

    def is_first(self) -> bool: ...

    def is_last(self) -> bool: ...


class SpineCursor:
    """Position-only iterator over the spine: one step at a time, no seek."""

    def __init__(self, paths: Sequence[str]) -> None:
        if not paths:
            raise ValueError("spine is empty")
        self._paths = list(paths)
        self.position = 0

    def url(self) -> str:
        return self._paths[self.position]

    def next(self) -> None:
        if self.is_last():
            raise CursorError("already at the last spine item")
        self.position += 1

    def previous(self) -> None:
        if self.is_first():
            raise CursorError("already at the first spine item")
        self.position -= 1

    def is_first(self) -> bool:
        return self.position == 0

    def is_last(self) -> bool:
        return self.position == len(self._paths) - 1


def locate(cursor: Cursor, url: str) -> None:
    """Park ``cursor`` on ``url`` by scanning backward, then forward.

    The cursor is left on the match so the next nearby lookup is short. When
    ``url`` is absent the cursor is returned to where it started and
    :class:`ChapterNotFoundError` is raised.
    """
    origin = cursor.url()
    steps = 0
    while True:
        if cursor.url() == url:
            logger.debug("Located %s after %d backward steps", url, steps)
            return
        if cursor.is_first():
            break
        cursor.previous()
        steps += 1

    while True:
        if cursor.url() == url:
            logger.debug("Located %s after %d steps", url, steps)
            return
        if cursor.is_last():
            break
        cursor.next()
        steps += 1

    # Only the step interface is available; walk back to the origin.
    while cursor.url() != origin:
        cursor.previous()
    raise ChapterNotFoundError(f"{url!r} is not part of the document")


class Document:
    """Title, contents and chapter text of one open EPUB."""

    def __init__(self, container: EpubContainer) -> None:
        spine = container.spine()
        if not spine:
            raise EpubError(f"{container.path} has no content documents")
        self._container = container
        self._cursor = SpineCursor(spine)

    @property
    def cursor(self) -> SpineCursor:
        return self._cursor

    def title(self) -> str:
        return self._container.title

    def author(self) -> str | None:
        return self._container.author

    def table_of_contents(self) -> list[TocEntry]:
        return self._container.table_of_contents()

    def chapter_content(self, path: str) -> str:
        """Text of the content document at ``path``, a decoded spine path
        as carried by :attr:`TocEntry.path`; it is matched verbatim.
        """
        locate(self._cursor, path)
        return self._container.read_text(self._cursor.url())

    def close(self) -> None:
        self._container.close()
