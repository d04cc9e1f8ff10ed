from __future__ import annotations

import zipfile
from pathlib import Path
from urllib.parse import quote

from folio.book import Book
from folio.core import TocEntry
from folio.pages import Chapter, TableOfContents, progress_prefix
from folio.tui import Application

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def _chapter_html(title: str, body: str) -> str:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head><title>{title}</title></head>
  <body>
    <h1>{title}</h1>
    {body}
  </body>
</html>
"""


def build_epub(
    target: Path,
    chapters: list[tuple[str, str]],
    *,
    navigation: str | None = "nav",
    title: str | None = "Sample Book",
    extra_toc: list[tuple[str, str]] | None = None,
    name: str = "sample.epub",
    file_names: list[str] | None = None,
) -> Path:
    """Write a minimal EPUB whose spine is ``ch1.xhtml``, ``ch2.xhtml``, ...

    ``navigation`` selects an EPUB3 nav document ("nav"), an NCX ("ncx") or
    none at all. ``extra_toc`` appends (href, label) entries to the contents.
    ``file_names`` replaces the default member names; hrefs to them are
    percent-encoded.
    """
    epub_path = target / name
    files = file_names or [f"ch{i + 1}.xhtml" for i in range(len(chapters))]
    toc = [(quote(href), heading) for href, (heading, _) in zip(files, chapters)] + list(extra_toc or [])

    manifest = [
        f'    <item id="ch{i + 1}" href="{quote(href)}" media-type="application/xhtml+xml"/>'
        for i, href in enumerate(files)
    ]
    if navigation == "nav":
        manifest.append('    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>')
    elif navigation == "ncx":
        manifest.append('    <item id="ncx" href="toc.ncx" media-type="application/x-dtbncx+xml"/>')
    spine = "\n".join(f'    <itemref idref="ch{i + 1}"/>' for i in range(len(files)))
    title_xml = f"    <dc:title>{title}</dc:title>\n" if title else ""
    opf_xml = f"""<?xml version="1.0" encoding="UTF-8"?>
<package version="3.0" unique-identifier="BookId" xmlns="http://www.idpf.org/2007/opf">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
{title_xml}    <dc:creator>Sample Author</dc:creator>
  </metadata>
  <manifest>
{chr(10).join(manifest)}
  </manifest>
  <spine>
{spine}
  </spine>
</package>
"""
    with zipfile.ZipFile(epub_path, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("META-INF/container.xml", CONTAINER_XML)
        zf.writestr("OEBPS/content.opf", opf_xml)
        for href, (heading, body) in zip(files, chapters):
            zf.writestr(f"OEBPS/{href}", _chapter_html(heading, body))
        if navigation == "nav":
            items = "\n".join(f'<li><a href="{href}">{label}</a></li>' for href, label in toc)
            zf.writestr(
                "OEBPS/nav.xhtml",
                f"""<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
  <body><nav epub:type="toc"><ol>
{items}
  </ol></nav></body>
</html>
""",
            )
        elif navigation == "ncx":
            points = "\n".join(
                f'<navPoint id="p{i}"><navLabel><text>{label}</text></navLabel><content src="{href}"/></navPoint>'
                for i, (href, label) in enumerate(toc)
            )
            zf.writestr(
                "OEBPS/toc.ncx",
                f"""<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <navMap>
{points}
  </navMap>
</ncx>
""",
            )
    return epub_path


def make_book(chapter_count: int = 5, lines: int = 300, width: int = 80) -> Book:
    """Book with ``chapter_count`` long chapters and no document behind it."""
    app = Application()
    book = Book(app, "Test Book", width=width)
    entries = [TocEntry(name=f"Chapter {i + 1}", path=f"ch{i + 1}.xhtml") for i in range(chapter_count)]
    book.set_toc(TableOfContents(entries, book.go_to_page, width=width))
    text = "\n".join(f"line {n}" for n in range(lines))
    for i, entry in enumerate(entries):
        book.add_chapter(
            Chapter(
                i,
                entry.url,
                text,
                width=width,
                progress=progress_prefix(entry.name, i, chapter_count),
                queue_update_draw=app.queue_update_draw,
            )
        )
    return book
