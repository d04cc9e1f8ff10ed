from __future__ import annotations

import argparse
import logging
import os
import sys
from importlib import metadata
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from .book import build_book
from .book_io import SessionStateError, load_state, save_state
from .core import EpubError, open_epub
from .document import ChapterNotFoundError, Document
from .logging_utils import configure_logging
from .reader_defaults import DEFAULT_WIDTH, LOG_FILE_ENV
from .tui import Application

logger = logging.getLogger(__name__)

try:
    __version__ = metadata.version("folio")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+unknown"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="folio",
        description="Read an EPUB in the terminal; the reading position is kept next to the book.",
        epilog=(
            "Keys: h/l previous/next chapter, / contents, j/k move, space page down, "
            "m mark, ' jump to mark, +/-/= width, q quit."
        ),
    )
    ap.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"folio {__version__}",
    )
    ap.add_argument("input_path", help="Path to the .epub to read")
    ap.add_argument(
        "--width",
        type=int,
        default=DEFAULT_WIDTH,
        help=f"Text column width when no session is stored (default: {DEFAULT_WIDTH}).",
    )
    ap.add_argument(
        "--forget",
        action="store_true",
        help="Ignore the stored reading session and start from the first chapter.",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging.",
    )
    ap.add_argument(
        "--log-file",
        default=os.environ.get(LOG_FILE_ENV),
        help=f"Write log records to this file instead of stderr (env: {LOG_FILE_ENV}).",
    )
    return ap


def _run_reader(args: argparse.Namespace) -> int:
    book_path = Path(args.input_path)
    try:
        container = open_epub(book_path)
    except EpubError as exc:
        raise SystemExit(str(exc)) from exc

    with container:
        try:
            state = None if args.forget else load_state(book_path)
            document = Document(container)
            app = Application()
            book = build_book(document, app, state=state, width=args.width)
        except (EpubError, ChapterNotFoundError, SessionStateError) as exc:
            raise SystemExit(str(exc)) from exc

        try:
            app.run()
        except KeyboardInterrupt:
            logger.debug("Interrupted; saving position")
        snapshot = book.snapshot()

    try:
        save_state(book_path, snapshot)
    except SessionStateError as exc:
        Console(stderr=True).print(f"[red]Could not save reading position:[/red] {escape(str(exc))}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug, log_file=args.log_file)
    return _run_reader(args)


if __name__ == "__main__":
    raise SystemExit(main())
