"""Small curses widget set: scrollable text, selectable list, centred column.

Widgets keep all of their state in plain attributes and only touch curses
inside ``draw``, so everything but :meth:`Application.run` works headless.
"""

from __future__ import annotations

import curses
import logging
import textwrap
from collections import deque
from typing import Callable

from .reader_defaults import BACKGROUND_COLOR

logger = logging.getLogger(__name__)

ENTER_KEYS = {"\n", "\r", "KEY_ENTER"}

_BACKGROUND_SLOT = 16
_BACKGROUND_PAIR = 1


def _put(win, y: int, x: int, text: str, width: int, attr: int = 0) -> None:
    if width <= 0:
        return
    try:
        win.addnstr(y, x, text, width, attr)
    except curses.error:
        # Writing the bottom-right cell moves the cursor off-screen and
        # reports an error after the character has been drawn.
        pass


class Widget:
    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        raise NotImplementedError

    def handle_key(self, key: str) -> bool:
        return False


class Label(Widget):
    def __init__(self, text: str = "", *, align: str = "center") -> None:
        self.text = text
        self.align = align

    def set_text(self, text: str) -> None:
        self.text = text

    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        if height <= 0:
            return
        text = self.text[:width]
        pad = (width - len(text)) // 2 if self.align == "center" else 0
        _put(win, y, x + pad, text, width - pad)


class TextView(Widget):
    def __init__(self, text: str = "", *, width: int = 80) -> None:
        self.text = text
        self.width = max(1, width)
        self.visible_height = 0
        self._offset = 0
        self._hooks: list[Callable[["TextView"], None]] = []
        self._wrapped: list[str] | None = None
        self._wrapped_width = 0

    def set_text(self, text: str) -> None:
        self.text = text
        self._wrapped = None

    def set_wrap_width(self, width: int) -> None:
        self.width = max(1, width)

    def lines(self) -> list[str]:
        if self._wrapped is None or self._wrapped_width != self.width:
            wrapped: list[str] = []
            for paragraph in self.text.splitlines():
                wrapped.extend(textwrap.wrap(paragraph, self.width) or [""])
            self._wrapped = wrapped or [""]
            self._wrapped_width = self.width
        return self._wrapped

    def line_count(self) -> int:
        return len(self.lines())

    def get_scroll_offset(self) -> int:
        return self._offset

    def scroll_to(self, offset: int) -> None:
        self._offset = max(0, offset)

    def max_offset(self) -> int:
        return max(0, self.line_count() - self.visible_height)

    def add_before_draw(self, hook: Callable[["TextView"], None]) -> None:
        self._hooks.append(hook)

    def handle_key(self, key: str) -> bool:
        page = max(1, self.visible_height)
        if key in ("j", "KEY_DOWN"):
            target = self._offset + 1
        elif key in ("k", "KEY_UP"):
            target = self._offset - 1
        elif key == "KEY_NPAGE":
            target = self._offset + page
        elif key == "KEY_PPAGE":
            target = self._offset - page
        elif key in ("g", "KEY_HOME"):
            target = 0
        elif key in ("G", "KEY_END"):
            target = self.max_offset()
        else:
            return False
        if self.visible_height:
            target = min(target, self.max_offset())
        self.scroll_to(target)
        return True

    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        self.set_wrap_width(width)
        self.visible_height = max(0, height)
        if self._offset > self.max_offset():
            self._offset = self.max_offset()
        for hook in self._hooks:
            hook(self)
        visible = self.lines()[self._offset : self._offset + self.visible_height]
        for row, line in enumerate(visible):
            _put(win, y + row, x, line, width)


class ListView(Widget):
    def __init__(self) -> None:
        self._items: list[tuple[str, Callable[[], None] | None]] = []
        self._current = 0
        self._top = 0

    def add_item(self, label: str, on_select: Callable[[], None] | None = None) -> None:
        self._items.append((label, on_select))

    def get_item_count(self) -> int:
        return len(self._items)

    def get_current_item(self) -> int:
        return self._current

    def set_current_item(self, index: int) -> None:
        if not self._items:
            self._current = 0
            return
        self._current = min(max(index, 0), len(self._items) - 1)

    def handle_key(self, key: str) -> bool:
        if key == "KEY_DOWN":
            self.set_current_item(self._current + 1)
        elif key == "KEY_UP":
            self.set_current_item(self._current - 1)
        elif key in ENTER_KEYS:
            if self._items:
                _, on_select = self._items[self._current]
                if on_select is not None:
                    on_select()
        else:
            return False
        return True

    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        if height <= 0:
            return
        if self._current < self._top:
            self._top = self._current
        elif self._current >= self._top + height:
            self._top = self._current - height + 1
        for row, (label, _) in enumerate(self._items[self._top : self._top + height]):
            attr = curses.A_REVERSE if self._top + row == self._current else 0
            _put(win, y + row, x, label.ljust(width), width, attr)


class Column(Widget):
    """Centre ``main`` in a column of fixed width, footer on the last row."""

    def __init__(self, main: Widget, *, footer: Widget | None = None, width: int = 80) -> None:
        self.main = main
        self.footer = footer
        self.width = width

    def set_width(self, width: int) -> None:
        self.width = width

    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        col_width = max(1, min(self.width, width))
        left = x + (width - col_width) // 2
        main_height = height
        if self.footer is not None and height >= 2:
            main_height = height - 2
            self.footer.draw(win, y + height - 1, left, 1, col_width)
        self.main.draw(win, y, left, main_height, col_width)

    def handle_key(self, key: str) -> bool:
        return self.main.handle_key(key)


class Pages(Widget):
    def __init__(self) -> None:
        self._pages: dict[str, Widget] = {}
        self._front: str | None = None

    def add_page(self, name: str, widget: Widget) -> None:
        self._pages[name] = widget
        if self._front is None:
            self._front = name

    def switch_to_page(self, name: str) -> None:
        if name not in self._pages:
            raise KeyError(name)
        self._front = name

    def front_name(self) -> str | None:
        return self._front

    def front(self) -> Widget | None:
        if self._front is None:
            return None
        return self._pages[self._front]

    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        page = self.front()
        if page is not None:
            page.draw(win, y, x, height, width)

    def handle_key(self, key: str) -> bool:
        page = self.front()
        return page.handle_key(key) if page is not None else False


class Frame(Widget):
    """Title on top, pages below it."""

    def __init__(self, title: str, body: Widget) -> None:
        self.title = Label(title)
        self.body = body

    def draw(self, win, y: int, x: int, height: int, width: int) -> None:
        self.title.draw(win, y, x, 1, width)
        self.body.draw(win, y + 2, x, max(0, height - 2), width)

    def handle_key(self, key: str) -> bool:
        return self.body.handle_key(key)


def _key_name(raw: int | str) -> str:
    if isinstance(raw, str):
        return raw
    name = curses.keyname(raw)
    return name.decode("ascii", errors="replace")


def _init_colors(stdscr) -> None:
    if not curses.has_colors():
        return
    curses.start_color()
    curses.use_default_colors()
    if not curses.can_change_color() or curses.COLORS <= _BACKGROUND_SLOT:
        return
    r, g, b = (BACKGROUND_COLOR >> 16) & 0xFF, (BACKGROUND_COLOR >> 8) & 0xFF, BACKGROUND_COLOR & 0xFF
    curses.init_color(_BACKGROUND_SLOT, r * 1000 // 255, g * 1000 // 255, b * 1000 // 255)
    curses.init_pair(_BACKGROUND_PAIR, -1, _BACKGROUND_SLOT)
    stdscr.bkgd(" ", curses.color_pair(_BACKGROUND_PAIR))


class Application:
    """Single-threaded event loop: keys and queued updates share one queue."""

    def __init__(self) -> None:
        self._root: Widget | None = None
        self._capture: Callable[[str], str | None] | None = None
        self._updates: deque[Callable[[], None]] = deque()
        self._running = False
        self._dirty = True

    @property
    def running(self) -> bool:
        return self._running

    def set_root(self, root: Widget) -> None:
        self._root = root
        self._dirty = True

    def set_input_capture(self, capture: Callable[[str], str | None]) -> None:
        self._capture = capture

    def queue_update_draw(self, fn: Callable[[], None]) -> None:
        self._updates.append(fn)

    def pending_updates(self) -> int:
        return len(self._updates)

    def stop(self) -> None:
        self._running = False

    def handle_key(self, key: str) -> None:
        if self._capture is not None:
            captured = self._capture(key)
            if captured is None:
                self._dirty = True
                return
            key = captured
        if self._root is not None:
            self._root.handle_key(key)
        self._dirty = True

    def drain(self) -> bool:
        while self._updates:
            fn = self._updates.popleft()
            fn()
            self._dirty = True
        return self._dirty

    def draw(self, win, height: int, width: int) -> None:
        win.erase()
        if self._root is not None:
            self._root.draw(win, 0, 0, height, width)
        win.refresh()
        self._dirty = False

    def run(self) -> None:
        curses.wrapper(self._main)

    def _main(self, stdscr) -> None:
        _init_colors(stdscr)
        try:
            curses.curs_set(0)
        except curses.error:
            logger.debug("Terminal cannot hide the cursor")
        stdscr.keypad(True)
        self._running = True
        self._dirty = True
        while self._running:
            if self.drain():
                height, width = stdscr.getmaxyx()
                self.draw(stdscr, height, width)
                if self._updates:
                    continue
            try:
                raw = stdscr.get_wch()
            except curses.error:
                continue
            key = _key_name(raw)
            if key == "KEY_RESIZE":
                curses.update_lines_cols()
                self._dirty = True
                continue
            self.handle_key(key)
