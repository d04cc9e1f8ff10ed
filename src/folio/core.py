from __future__ import annotations

import logging
import posixpath
import re
import unicodedata
import warnings
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import unquote

from bs4 import (
    BeautifulSoup,
    Doctype,
    FeatureNotFound,
    NavigableString,
    XMLParsedAsHTMLWarning,
)  # type: ignore

logger = logging.getLogger(__name__)

HTML_EXTS = (".xhtml", ".html", ".htm")

BLOCK_LEVEL_TAGS = {
    "address",
    "article",
    "aside",
    "blockquote",
    "dd",
    "div",
    "dl",
    "dt",
    "figcaption",
    "figure",
    "footer",
    "form",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "header",
    "hgroup",
    "hr",
    "li",
    "main",
    "nav",
    "ol",
    "p",
    "pre",
    "section",
    "table",
    "ul",
    "tr",
}
FORCE_BREAK_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "li", "p", "dt", "dd", "tr"}

_DC_NS = "{http://purl.org/dc/elements/1.1/}"
_CONTAINER_NS = {"c": "urn:oasis:names:tc:opendocument:xmlns:container"}


class EpubError(RuntimeError):
    """Raised when an EPUB container cannot be opened or understood."""


@dataclass(frozen=True)
class TocEntry:
    """One contents entry; ``path`` is the decoded zip member it points into."""

    name: str
    path: str
    fragment: str | None = None

    @property
    def url(self) -> str:
        if self.fragment:
            return f"{self.path}#{self.fragment}"
        return self.path


def _zip_read_text(zf: zipfile.ZipFile, name: str) -> str:
    raw = zf.read(name)
    for enc in ("utf-8", "utf-16", "cp1252"):
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="ignore")


def _find_opf_path(zf: zipfile.ZipFile) -> str:
    # META-INF/container.xml -> rootfiles/rootfile@full-path
    try:
        container = _zip_read_text(zf, "META-INF/container.xml")
        root = ET.fromstring(container)
        for rf in root.findall(".//c:rootfile", _CONTAINER_NS):
            full = rf.attrib.get("full-path")
            if full:
                return full
    except (KeyError, ET.ParseError):
        pass
    for n in zf.namelist():
        if n.lower().endswith(".opf"):
            return n
    raise EpubError("OPF package document not found in EPUB")


def _strip_tag(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _get_attr(elem: ET.Element, name: str) -> str | None:
    for attr, value in elem.attrib.items():
        if _strip_tag(attr) == name:
            return value
    return None


def normalize_zip_path(path: str) -> str:
    """Decode percent escapes and collapse ``.``/``..`` segments."""
    decoded = unquote(path)
    normalized = posixpath.normpath(decoded)
    if normalized in (".", "/"):
        return ""
    return normalized.lstrip("/")


def _resolve_href(base_file: str, href: str) -> tuple[str, str | None]:
    # Split on the raw "#" first; an encoded %23 belongs to the file name.
    path, fragment = split_href_fragment(href)
    base = str(PurePosixPath(base_file).parent)
    if base not in ("", ".", "/"):
        path = f"{base}/{path}"
    return normalize_zip_path(path), fragment


def _resolve_relative_path(base_file: str, href: str) -> str:
    return _resolve_href(base_file, href)[0]


def split_href_fragment(href: str) -> tuple[str, str | None]:
    if "#" in href:
        base, frag = href.split("#", 1)
        return base, unquote(frag) or None
    return href, None


def _parse_nav_document(html: str) -> list[tuple[str, str]]:
    soup = BeautifulSoup(html, "html.parser")
    nav_tags = []
    for nav in soup.find_all("nav"):
        nav_type = (nav.get("epub:type") or "").lower()
        role = (nav.get("role") or "").lower()
        if "toc" in nav_type or role == "doc-toc":
            nav_tags.append(nav)
    if not nav_tags:
        nav_tags = soup.find_all("nav")
    entries: list[tuple[str, str]] = []
    for nav in nav_tags:
        for anchor in nav.find_all("a"):
            href = anchor.get("href")
            if not href:
                continue
            entries.append((href, anchor.get_text(" ", strip=True)))
    return entries


def _parse_ncx_document(xml_text: str) -> list[tuple[str, str]]:
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError:
        return []
    ns = {"ncx": root.tag.split("}")[0].strip("{")}

    def _collect_points(elem: ET.Element, acc: list[tuple[str, str]]) -> None:
        for nav_point in elem.findall("ncx:navPoint", ns):
            label_elem = nav_point.find(".//ncx:text", ns)
            content_elem = nav_point.find("ncx:content", ns)
            if content_elem is None:
                continue
            href = content_elem.attrib.get("src")
            if not href:
                continue
            text = ""
            if label_elem is not None:
                text = "".join(label_elem.itertext()).strip()
            acc.append((href, text))
            _collect_points(nav_point, acc)

    entries: list[tuple[str, str]] = []
    nav_map = root.find("ncx:navMap", ns)
    if nav_map is None:
        return entries
    _collect_points(nav_map, entries)
    return entries


def _soup_from_html(html: str) -> BeautifulSoup:
    stripped = html.lstrip()
    lower_head = stripped[:200].lower()
    xmlish = stripped.startswith("<?xml") or ("<html" in lower_head and "xmlns" in lower_head)

    if xmlish:
        try:
            return BeautifulSoup(html, "lxml-xml")
        except FeatureNotFound:
            pass

    for parser in ("lxml", "html.parser"):
        try:
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
                return BeautifulSoup(html, parser)
        except FeatureNotFound:
            continue
    return BeautifulSoup(html, "html.parser")


def html_to_text(html: str) -> str:
    """Collapse an XHTML content document into wrapped-ready plain text."""
    soup = _soup_from_html(html)
    for node in list(soup.contents):
        if isinstance(node, Doctype):
            node.extract()
        elif isinstance(node, NavigableString):
            stripped = str(node).strip()
            if stripped and stripped.upper().startswith("HTML PUBLIC"):
                node.extract()
    for t in soup.find_all(["script", "style", "title", "rp"]):
        t.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    # Block-level elements start on a new line; nested blocks only break for
    # the small set that always should.
    for tag in soup.find_all(BLOCK_LEVEL_TAGS):
        if tag.name in FORCE_BREAK_TAGS or not tag.find_parent(BLOCK_LEVEL_TAGS):
            tag.insert_before("\n")
    body = soup.find("body") or soup
    txt = body.get_text(separator="")
    txt = unicodedata.normalize("NFKC", txt)
    txt = re.sub(r"[ \t]+\n", "\n", txt)
    txt = re.sub(r"\n[ \t]+", "\n", txt)
    txt = re.sub(r"\n{3,}", "\n\n", txt).strip()
    return txt


def _document_label(html: str) -> str | None:
    soup = _soup_from_html(html)
    for name in ("title", "h1", "h2", "h3"):
        tag = soup.find(name)
        if tag is None:
            continue
        text = tag.get_text(" ", strip=True)
        if text:
            return unicodedata.normalize("NFKC", text)
    return None


class EpubContainer:
    """Read-only view over an EPUB zip: metadata, spine, navigation, text."""

    def __init__(self, path: Path, zf: zipfile.ZipFile) -> None:
        self.path = path
        self._zf = zf
        self._opf_path = _find_opf_path(zf)
        try:
            self._opf_root = ET.fromstring(_zip_read_text(zf, self._opf_path))
        except (KeyError, ET.ParseError) as exc:
            raise EpubError(f"Unreadable OPF package document {self._opf_path!r}: {exc}") from exc
        self._ns = {"opf": self._opf_root.tag.split("}")[0].strip("{")}
        self._manifest = self._read_manifest()
        self._spine: list[str] | None = None

    def __enter__(self) -> "EpubContainer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zf.close()

    def _read_manifest(self) -> dict[str, dict[str, str | None]]:
        manifest: dict[str, dict[str, str | None]] = {}
        for item in self._opf_root.findall(".//opf:manifest/opf:item", self._ns):
            item_id = item.attrib.get("id")
            if not item_id:
                continue
            manifest[item_id] = {
                "href": item.attrib.get("href"),
                "media_type": item.attrib.get("media-type"),
                "properties": item.attrib.get("properties"),
            }
        return manifest

    @property
    def title(self) -> str:
        for title_el in self._opf_root.findall(f".//{_DC_NS}title"):
            title_text = "".join(title_el.itertext()).strip()
            if title_text:
                return unicodedata.normalize("NFKC", title_text)
        return self.path.name

    @property
    def author(self) -> str | None:
        authors: list[str] = []
        for creator_el in self._opf_root.findall(f".//{_DC_NS}creator"):
            name = unicodedata.normalize("NFKC", "".join(creator_el.itertext())).strip()
            if not name:
                continue
            role = _get_attr(creator_el, "role")
            if role and role.lower() not in {"aut", "author"}:
                continue
            if name not in authors:
                authors.append(name)
        if not authors:
            return None
        return ", ".join(authors)

    def spine(self) -> list[str]:
        if self._spine is not None:
            return list(self._spine)
        items: list[str] = []
        for ir in self._opf_root.findall(".//opf:spine/opf:itemref", self._ns):
            info = self._manifest.get(ir.attrib.get("idref") or "")
            href = info.get("href") if info else None
            if href:
                items.append(_resolve_relative_path(self._opf_path, href))
        if not items:
            logger.debug("Empty spine in %s; using every HTML file in zip order", self.path)
            items = [n for n in self._zf.namelist() if n.lower().endswith(HTML_EXTS)]
        self._spine = items
        return list(items)

    def _navigation_entries(self) -> list[tuple[str, str | None, str]]:
        nav_candidates: list[str] = []
        ncx_candidates: list[str] = []
        for info in self._manifest.values():
            href = info.get("href")
            if not href:
                continue
            resolved = _resolve_relative_path(self._opf_path, href)
            properties = (info.get("properties") or "").lower().split()
            media_type = (info.get("media_type") or "").lower()
            if "nav" in properties:
                nav_candidates.append(resolved)
            if media_type == "application/x-dtbncx+xml":
                ncx_candidates.append(resolved)
        sources = [(path, _parse_nav_document) for path in nav_candidates]
        sources += [(path, _parse_ncx_document) for path in ncx_candidates]
        for nav_path, parse in sources:
            try:
                raw = _zip_read_text(self._zf, nav_path)
            except KeyError:
                logger.debug("Navigation document %s missing from archive", nav_path)
                continue
            entries = parse(raw)
            if entries:
                return [(*_resolve_href(nav_path, href), title) for href, title in entries]
        return []

    def table_of_contents(self) -> list[TocEntry]:
        entries = [
            TocEntry(
                name=unicodedata.normalize("NFKC", title) or PurePosixPath(path).stem,
                path=path,
                fragment=fragment,
            )
            for path, fragment, title in self._navigation_entries()
        ]
        if entries:
            return entries
        logger.debug("No navigation document in %s; deriving contents from spine", self.path)
        fallback: list[TocEntry] = []
        for path in self.spine():
            try:
                label = _document_label(self.read_html(path))
            except EpubError:
                label = None
            fallback.append(TocEntry(name=label or PurePosixPath(path).stem, path=path))
        return fallback

    def read_html(self, path: str) -> str:
        try:
            return _zip_read_text(self._zf, path)
        except KeyError as exc:
            raise EpubError(f"{path!r} is listed but missing from the archive") from exc

    def read_text(self, path: str) -> str:
        return html_to_text(self.read_html(path))


def open_epub(path: str | Path) -> EpubContainer:
    epub_path = Path(path)
    if not epub_path.is_file():
        raise EpubError(f"EPUB not found: {epub_path}")
    try:
        zf = zipfile.ZipFile(epub_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise EpubError(f"Cannot open {epub_path} as an EPUB: {exc}") from exc
    try:
        return EpubContainer(epub_path, zf)
    except Exception:
        zf.close()
        raise
