from .book import Book, PageNotFoundError, build_book
from .book_io import SessionState, SessionStateError, load_state, save_state, state_path
from .core import EpubContainer, EpubError, TocEntry, open_epub
from .document import ChapterNotFoundError, CursorError, Document, SpineCursor, locate
from .pages import TOC_INDEX, Chapter, TableOfContents

__all__ = [
    "Book",
    "build_book",
    "PageNotFoundError",
    "Chapter",
    "TableOfContents",
    "TOC_INDEX",
    "SessionState",
    "SessionStateError",
    "load_state",
    "save_state",
    "state_path",
    "EpubContainer",
    "EpubError",
    "TocEntry",
    "open_epub",
    "Document",
    "SpineCursor",
    "CursorError",
    "ChapterNotFoundError",
    "locate",
]
