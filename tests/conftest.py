from __future__ import annotations

import pytest

from folio.book import Book
from tests.helpers import make_book


@pytest.fixture
def book() -> Book:
    b = make_book()
    b.start()
    return b
