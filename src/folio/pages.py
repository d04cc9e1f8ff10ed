from __future__ import annotations

from typing import Callable, Protocol, Sequence

from .core import TocEntry
from .reader_defaults import TOC_URL
from .tui import Column, Label, ListView, TextView, Widget

TOC_INDEX = -1


class Page(Protocol):
    widget: Widget

    def index(self) -> int: ...

    def url(self) -> str: ...

    def set_width(self, width: int) -> None: ...


def progress_prefix(name: str, index: int, total: int) -> str:
    percent = 100 * index / total if total else 0.0
    return f'"{name}" ({percent:.2f}%)'


class ProgressIndicator:
    """Keeps the "lines a-b/N" label of a chapter in step with its view.

    The text view calls in before every repaint; the recomputation is pushed
    onto the application's update queue and skipped when the last seen
    (offset, height, line count) is unchanged, so a repaint never schedules
    another one for the same position.
    """

    def __init__(
        self,
        view: TextView,
        label: Label,
        prefix: str,
        queue_update_draw: Callable[[Callable[[], None]], None],
    ) -> None:
        self.view = view
        self.label = label
        self.prefix = prefix
        self._queue_update_draw = queue_update_draw
        self._last_seen: tuple[int, int, int] | None = None
        view.add_before_draw(self._before_draw)

    def _position(self) -> tuple[int, int, int]:
        return (self.view.get_scroll_offset(), self.view.visible_height, self.view.line_count())

    def _before_draw(self, view: TextView) -> None:
        if self._position() == self._last_seen:
            return
        self._queue_update_draw(self.refresh)

    def refresh(self) -> bool:
        position = self._position()
        if position == self._last_seen:
            return False
        self._last_seen = position
        offset, height, total = position
        last = min(offset + height, total)
        self.label.set_text(f"{self.prefix} - lines {offset + 1}-{last}/{total}")
        return True


class Chapter:
    def __init__(
        self,
        index: int,
        url: str,
        text: str,
        *,
        width: int,
        progress: str,
        queue_update_draw: Callable[[Callable[[], None]], None],
        offset: int = 0,
    ) -> None:
        self._index = index
        self._url = url
        self.text_view = TextView(text, width=width)
        self.progress_label = Label(progress)
        self.widget = Column(self.text_view, footer=self.progress_label, width=width)
        self.progress = ProgressIndicator(self.text_view, self.progress_label, progress, queue_update_draw)
        if offset > 0:
            self.text_view.scroll_to(offset)

    def index(self) -> int:
        return self._index

    def url(self) -> str:
        return self._url

    def get_offset(self) -> int:
        return self.text_view.get_scroll_offset()

    def set_offset(self, offset: int) -> None:
        self.text_view.scroll_to(offset)

    def set_width(self, width: int) -> None:
        self.widget.set_width(width)
        self.text_view.set_wrap_width(width)


class TableOfContents:
    def __init__(
        self,
        entries: Sequence[TocEntry],
        on_select: Callable[[int], None],
        *,
        width: int,
        url: str = TOC_URL,
    ) -> None:
        self._url = url
        self.list_view = ListView()
        for i, entry in enumerate(entries):
            self.list_view.add_item(entry.name, lambda i=i: on_select(i))
        self.widget = Column(self.list_view, width=width)

    def index(self) -> int:
        return TOC_INDEX

    def url(self) -> str:
        return self._url

    def set_width(self, width: int) -> None:
        self.widget.set_width(width)

    def set_selected(self, index: int) -> None:
        self.list_view.set_current_item(index)

    def selected(self) -> int:
        return self.list_view.get_current_item()

    def item_count(self) -> int:
        return self.list_view.get_item_count()
