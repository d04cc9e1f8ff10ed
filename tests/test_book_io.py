from __future__ import annotations

import json
from pathlib import Path

import pytest

from folio.book import Book
from folio.book_io import SessionState, SessionStateError, load_state, save_state, state_path
from folio.pages import TOC_INDEX
from tests.helpers import make_book


def test_snapshot_restore_round_trip(book: Book) -> None:
    book.go_to_page(3)
    book.chapters[1].set_offset(12)
    book.chapters[3].set_offset(140)
    book.set_width(95)
    state = book.snapshot()
    assert state == SessionState(page=3, offsets={1: 12, 3: 140}, width=95)

    fresh = make_book()
    for index, offset in state.offsets.items():
        fresh.chapters[index].set_offset(offset)
    fresh.restore(state)
    assert fresh.current == 3
    assert fresh.menu_context == 3
    assert fresh.width == 95
    assert fresh.view.front_name() == fresh.chapters[3].url()
    assert [c.get_offset() for c in fresh.chapters] == [0, 12, 0, 140, 0]
    assert fresh.snapshot() == state


def test_snapshot_on_contents_records_menu_context(book: Book) -> None:
    book.go_to_page(2)
    book.toggle_menu()
    assert book.snapshot().page == 2


def test_snapshot_omits_zero_offsets(book: Book) -> None:
    book.chapters[0].set_offset(0)
    book.chapters[4].set_offset(7)
    assert book.snapshot().offsets == {4: 7}


def test_restore_out_of_range_page_starts_at_beginning() -> None:
    fresh = make_book(chapter_count=2)
    fresh.restore(SessionState(page=9, offsets={}, width=80))
    assert fresh.current == 0


def test_restore_onto_contents() -> None:
    fresh = make_book()
    fresh.restore(SessionState(page=TOC_INDEX, offsets={}, width=80))
    assert fresh.current == TOC_INDEX
    assert fresh.view.front_name() == "TOC"


def test_state_path_is_hidden_sidecar(tmp_path: Path) -> None:
    assert state_path(tmp_path / "novel.epub") == tmp_path / ".novel.epub.folio.json"


def test_load_state_missing_file_is_no_session(tmp_path: Path) -> None:
    assert load_state(tmp_path / "novel.epub") is None


def test_save_then_load(tmp_path: Path) -> None:
    book_path = tmp_path / "novel.epub"
    state = SessionState(page=4, offsets={0: 3, 4: 200}, width=70)
    written = save_state(book_path, state)
    payload = json.loads(written.read_text(encoding="utf-8"))
    assert payload == {"page": 4, "offsets": {"0": 3, "4": 200}, "width": 70}
    assert load_state(book_path) == state
    assert [p.name for p in tmp_path.iterdir()] == [written.name]


def test_session_state_drops_zero_offsets() -> None:
    state = SessionState.from_payload({"page": 1, "offsets": {"0": 0, "2": 5}, "width": 80})
    assert state.offsets == {2: 5}


def test_corrupt_session_file_is_an_error(tmp_path: Path) -> None:
    book_path = tmp_path / "novel.epub"
    state_path(book_path).write_text("{not json", encoding="utf-8")
    with pytest.raises(SessionStateError):
        load_state(book_path)


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"page": "3", "offsets": {}, "width": 80},
        {"page": 3, "offsets": {"x": 1}, "width": 80},
        {"page": 3, "offsets": {"1": 2.5}, "width": 80},
        {"page": 3, "offsets": {}},
    ],
)
def test_malformed_session_record(tmp_path: Path, payload: object) -> None:
    book_path = tmp_path / "novel.epub"
    state_path(book_path).write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(SessionStateError):
        load_state(book_path)


def test_save_state_reports_unwritable_directory(tmp_path: Path) -> None:
    with pytest.raises(SessionStateError):
        save_state(tmp_path / "missing" / "novel.epub", SessionState(page=0))
