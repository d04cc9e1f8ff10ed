from __future__ import annotations

from pathlib import Path

import pytest

from folio.core import open_epub
from folio.document import ChapterNotFoundError, CursorError, Document, SpineCursor, locate
from tests.helpers import build_epub


class CountingCursor(SpineCursor):
    def __init__(self, paths: list[str]) -> None:
        super().__init__(paths)
        self.moves: list[str] = []

    def next(self) -> None:
        super().next()
        self.moves.append("next")

    def previous(self) -> None:
        super().previous()
        self.moves.append("previous")


def _parked(paths: list[str], url: str) -> CountingCursor:
    cursor = CountingCursor(paths)
    while cursor.url() != url:
        cursor.next()
    cursor.moves.clear()
    return cursor


def test_cursor_refuses_to_step_past_either_end() -> None:
    cursor = SpineCursor(["a", "b"])
    assert cursor.is_first()
    with pytest.raises(CursorError):
        cursor.previous()
    cursor.next()
    assert cursor.is_last()
    with pytest.raises(CursorError):
        cursor.next()


def test_cursor_requires_items() -> None:
    with pytest.raises(ValueError):
        SpineCursor([])


def test_locate_current_url_does_not_move() -> None:
    cursor = _parked(["a", "b", "c"], "b")
    locate(cursor, "b")
    assert cursor.url() == "b"
    assert cursor.moves == []


def test_locate_steps_backward_once() -> None:
    cursor = _parked(["a", "b", "c"], "b")
    locate(cursor, "a")
    assert cursor.url() == "a"
    assert cursor.moves == ["previous"]


def test_locate_scans_forward_after_reaching_start() -> None:
    cursor = _parked(["a", "b", "c"], "b")
    locate(cursor, "c")
    assert cursor.url() == "c"
    assert cursor.moves == ["previous", "next", "next"]


def test_locate_missing_url_restores_origin() -> None:
    cursor = _parked(["a", "b", "c"], "b")
    with pytest.raises(ChapterNotFoundError):
        locate(cursor, "z")
    assert cursor.url() == "b"


def test_chapter_content_parks_cursor(tmp_path: Path) -> None:
    epub_path = build_epub(
        tmp_path,
        [("One", "<p>first</p>"), ("Two", "<p>second</p>"), ("Three", "<p>third</p>")],
    )
    with open_epub(epub_path) as epub:
        document = Document(epub)
        assert document.title() == "Sample Book"
        assert "third" in document.chapter_content("OEBPS/ch3.xhtml")
        assert document.cursor.url() == "OEBPS/ch3.xhtml"
        assert "second" in document.chapter_content("OEBPS/ch2.xhtml")
        assert document.cursor.url() == "OEBPS/ch2.xhtml"


def test_chapter_content_unknown_url(tmp_path: Path) -> None:
    epub_path = build_epub(tmp_path, [("One", "<p>first</p>"), ("Two", "<p>second</p>")])
    with open_epub(epub_path) as epub:
        document = Document(epub)
        document.chapter_content("OEBPS/ch2.xhtml")
        with pytest.raises(ChapterNotFoundError):
            document.chapter_content("OEBPS/missing.xhtml")
        assert document.cursor.url() == "OEBPS/ch2.xhtml"


def test_chapter_content_keeps_escaped_file_names(tmp_path: Path) -> None:
    epub_path = build_epub(
        tmp_path,
        [("Percent", "<p>percent body</p>"), ("Hash", "<p>hash body</p>")],
        file_names=["100%41.xhtml", "a#b.xhtml"],
    )
    with open_epub(epub_path) as epub:
        document = Document(epub)
        toc = document.table_of_contents()
        assert [(entry.path, entry.fragment) for entry in toc] == [
            ("OEBPS/100%41.xhtml", None),
            ("OEBPS/a#b.xhtml", None),
        ]
        assert "percent body" in document.chapter_content(toc[0].path)
        assert "hash body" in document.chapter_content(toc[1].path)
        assert document.cursor.url() == "OEBPS/a#b.xhtml"
