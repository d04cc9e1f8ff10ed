from __future__ import annotations

import logging
from typing import Callable

from .book_io import SessionState
from .document import Document
from .pages import TOC_INDEX, Chapter, Page, TableOfContents, progress_prefix
from .reader_defaults import DEFAULT_WIDTH, JUMP_STRIDE, KEYMAP, MIN_WIDTH, WIDTH_STEP
from .tui import Application, Frame, Pages

logger = logging.getLogger(__name__)


class PageNotFoundError(KeyError):
    """Raised when no page is registered under a url."""


class Book:
    """Navigation state over the table of contents and the chapters.

    ``current`` is ``TOC_INDEX`` while the contents are shown, otherwise the
    index of the visible chapter. Requests that fall outside the book are
    ignored rather than raised, since they come straight from key presses.
    """

    def __init__(self, app: Application, title: str, *, width: int = DEFAULT_WIDTH) -> None:
        self.app = app
        self.title = title
        self.view = Pages()
        self.toc: TableOfContents | None = None
        self.chapters: list[Chapter] = []
        self.pages: list[Page] = []
        self._pages_by_url: dict[str, Page] = {}

        self.mark_chapter = -1
        self.mark_line = -1

        self.width = width
        self.current = TOC_INDEX
        self.menu_context = TOC_INDEX
        self._actions = {key: getattr(self, name) for key, name in KEYMAP.items()}

    def _register(self, page: Page) -> None:
        if page.url() in self._pages_by_url:
            raise ValueError(f"page {page.url()!r} already added")
        self.pages.append(page)
        self._pages_by_url[page.url()] = page
        self.view.add_page(page.url(), page.widget)

    def has_page(self, url: str) -> bool:
        return url in self._pages_by_url

    def page(self, url: str) -> Page:
        try:
            return self._pages_by_url[url]
        except KeyError:
            raise PageNotFoundError(f"page {url!r} not found") from None

    def set_toc(self, toc: TableOfContents) -> None:
        self._register(toc)
        self.toc = toc

    def add_chapter(self, chapter: Chapter) -> None:
        self._register(chapter)
        self.chapters.append(chapter)

    def index_to_url(self, index: int) -> str:
        if index == TOC_INDEX:
            return self._require_toc().url()
        return self.chapters[index].url()

    def _require_toc(self) -> TableOfContents:
        if self.toc is None:
            raise RuntimeError("table of contents has not been added")
        return self.toc

    def set_width(self, width: int) -> None:
        self.width = max(MIN_WIDTH, width)
        for page in self.pages:
            page.set_width(self.width)

    def go_to_page(self, index: int) -> None:
        url = self.index_to_url(index)
        self.current = index
        if index != TOC_INDEX:
            self._require_toc().set_selected(index)
        self.view.switch_to_page(url)
        logger.debug("Showing page %d (%s)", index, url)

    def start(self) -> None:
        """Open a book that has no stored session on its first chapter."""
        page = 0 if self.chapters else TOC_INDEX
        self.current = page
        self.menu_context = page
        self.go_to_page(page)

    def snapshot(self) -> SessionState:
        current = self.current
        if current == TOC_INDEX:
            current = self.menu_context
        offsets = {}
        for chapter in self.chapters:
            offset = chapter.get_offset()
            if offset > 0:
                offsets[chapter.index()] = offset
        return SessionState(page=current, offsets=offsets, width=self.width)

    def restore(self, state: SessionState) -> None:
        page = state.page
        if not TOC_INDEX <= page < len(self.chapters):
            logger.warning(
                "Stored page %d is outside this book (%d chapters); starting at the beginning",
                page,
                len(self.chapters),
            )
            page = 0 if self.chapters else TOC_INDEX
        self.current = page
        self.menu_context = page
        self.set_width(state.width)
        self.go_to_page(page)

    def next_chapter(self) -> None:
        if self.current + 1 >= len(self.chapters):
            return
        self.go_to_page(self.current + 1)

    def previous_chapter(self) -> None:
        if self.current - 1 < TOC_INDEX:
            return
        self.go_to_page(self.current - 1)

    def toggle_menu(self) -> None:
        if self.current == TOC_INDEX:
            self.go_to_page(self.menu_context)
            return
        self.menu_context = self.current
        self.go_to_page(TOC_INDEX)

    def menu_down(self) -> None:
        if self.current != TOC_INDEX:
            return
        toc = self._require_toc()
        selected = toc.selected()
        if selected >= toc.item_count() - 1:
            return
        toc.set_selected(selected + 1)

    def menu_up(self) -> None:
        if self.current != TOC_INDEX:
            return
        toc = self._require_toc()
        selected = toc.selected()
        if selected == 0:
            return
        toc.set_selected(selected - 1)

    def has_mark(self) -> bool:
        return self.mark_chapter != -1 and self.mark_line != -1

    def mark(self) -> None:
        if self.current == TOC_INDEX:
            return
        self.mark_chapter = self.current
        self.mark_line = self.chapters[self.current].get_offset()
        logger.debug("Mark set at chapter %d line %d", self.mark_chapter, self.mark_line)

    def jump_to_mark(self) -> None:
        if not self.has_mark():
            return
        chapter = self.chapters[self.mark_chapter]
        if chapter.get_offset() != self.mark_line:
            chapter.set_offset(self.mark_line)
        if self.current != self.mark_chapter:
            self.go_to_page(self.mark_chapter)

    def jump_scroll(self) -> None:
        if self.current == TOC_INDEX:
            return
        chapter = self.chapters[self.current]
        chapter.set_offset(chapter.get_offset() + JUMP_STRIDE)

    def widen(self) -> None:
        self.set_width(self.width + WIDTH_STEP)

    def narrow(self) -> None:
        self.set_width(self.width - WIDTH_STEP)

    def reset_width(self) -> None:
        self.set_width(DEFAULT_WIDTH)

    def quit(self) -> None:
        self.app.stop()

    def actions(self) -> dict[str, Callable[[], None]]:
        return dict(self._actions)

    def handle_key(self, key: str) -> str:
        """Run the action bound to ``key``; the key is always passed on."""
        action = self._actions.get(key)
        if action is not None:
            action()
        return key


def build_book(
    document: Document,
    app: Application,
    *,
    state: SessionState | None = None,
    width: int = DEFAULT_WIDTH,
) -> Book:
    """Construct every page of ``document`` and attach the book to ``app``.

    Chapters are added in contents order with their stored offsets already
    applied, so the first repaint after :meth:`Book.restore` shows the
    saved position.
    """
    book = Book(app, document.title(), width=max(MIN_WIDTH, state.width if state else width))
    entries = document.table_of_contents()
    book.set_toc(TableOfContents(entries, book.go_to_page, width=book.width))

    offsets = state.offsets if state else {}
    for i, entry in enumerate(entries):
        text = document.chapter_content(entry.path)
        url = entry.url
        if book.has_page(url):
            url = f"{entry.url}@{i}"
        book.add_chapter(
            Chapter(
                i,
                url,
                text,
                width=book.width,
                progress=progress_prefix(entry.name, i, len(entries)),
                queue_update_draw=app.queue_update_draw,
                offset=offsets.get(i, 0),
            )
        )
    logger.debug("Built %d chapters for %r", len(book.chapters), book.title)

    if state is not None:
        book.restore(state)
    else:
        book.start()

    app.set_root(Frame(book.title, book.view))
    app.set_input_capture(book.handle_key)
    return book
