"""Content corpus discovery.

Reads authored Markdown documents (posts and drafts) and their YAML front
matter, and derives the public route each published post is served under.

Layout:
    <source_dir>/
    ├── _posts/
    │   └── 2015-04-28-Play-Typed-Action.md   # date-prefixed, published
    └── _drafts/
        └── futures-and-actors.md             # undated, unpublished
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from sitestage.core.resolver import FallbackNotFound, resolve
from sitestage.core.types import URLPath

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")
POST_FILENAME_RE = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})-(?P<slug>.+)$")
_PLACEHOLDER_RE = re.compile(r":(year|month|day|title|slug|categories)")


class DocumentKind(Enum):
    """Where a document lives in the corpus."""

    POST = "post"
    DRAFT = "draft"


@dataclass
class Document:
    """A single authored Markdown document."""

    source_path: Path
    kind: DocumentKind
    slug: str
    title: str
    date: datetime
    layout: str | None = None
    published: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_draft(self) -> bool:
        """Whether the document is left out of a regular build."""
        return self.kind is DocumentKind.DRAFT or not self.published


@dataclass
class BrokenRoute:
    """Published document whose route only reaches the fallback page."""

    document: Document
    route: URLPath


def parse_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """Parse YAML front matter using python-frontmatter.

    Args:
        content: Markdown content that may include front matter

    Returns:
        Tuple of (metadata dict, body string). If parsing fails or metadata is
        not a mapping, metadata is an empty dict and the original content is
        returned as the body.
    """
    try:
        parsed = frontmatter.loads(content)
    except (yaml.YAMLError, ValueError) as e:
        logger.warning(f"Failed to parse front matter: {e}")
        return {}, content

    metadata = parsed.metadata
    if not isinstance(metadata, dict):
        logger.warning(f"Front matter is not a mapping: {type(metadata).__name__}")
        return {}, content

    return dict(metadata), parsed.content


def load_document(path: Path, kind: DocumentKind) -> Document:
    """Load a document from disk.

    Posts take their date and slug from the ``YYYY-MM-DD-slug`` filename;
    drafts take the slug from the filename and the date from the file mtime.
    A ``date`` key in front matter overrides either.

    Args:
        path: Markdown file path
        kind: Whether the file is a post or a draft

    Returns:
        Parsed Document

    Raises:
        OSError: If the file cannot be read
        ValueError: If a post filename has no date prefix
    """
    metadata, _ = parse_front_matter(path.read_text(encoding="utf-8"))
    stem = path.stem

    if kind is DocumentKind.POST:
        match = POST_FILENAME_RE.match(stem)
        if match is None:
            raise ValueError(f"Post filename must start with YYYY-MM-DD-: {path.name}")
        slug = match.group("slug")
        doc_date = datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
        )
    else:
        slug = stem
        doc_date = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).replace(
            tzinfo=None,
        )

    meta_date = _coerce_date(metadata.get("date"))
    if meta_date is not None:
        doc_date = meta_date

    title = metadata.get("title")
    if not isinstance(title, str) or not title.strip():
        title = slug.replace("-", " ")

    layout = metadata.get("layout")
    published = metadata.get("published", True)

    return Document(
        source_path=path,
        kind=kind,
        slug=slug,
        title=title,
        date=doc_date,
        layout=layout if isinstance(layout, str) else None,
        published=published is not False,
        metadata=metadata,
    )


class ContentCorpus:
    """Posts and drafts under a site source directory."""

    def __init__(
        self,
        source_dir: Path,
        *,
        posts_dir: str = "_posts",
        drafts_dir: str = "_drafts",
    ) -> None:
        """Initialize the corpus.

        Args:
            source_dir: Site source root
            posts_dir: Posts directory relative to source_dir
            drafts_dir: Drafts directory relative to source_dir
        """
        self._source_dir = source_dir
        self._posts_dir = source_dir / posts_dir
        self._drafts_dir = source_dir / drafts_dir

    @property
    def source_dir(self) -> Path:
        """Site source root."""
        return self._source_dir

    def posts(self) -> list[Document]:
        """Return published and unpublished posts, newest first."""
        return self._load_all(self._posts_dir, DocumentKind.POST)

    def drafts(self) -> list[Document]:
        """Return drafts, newest first."""
        return self._load_all(self._drafts_dir, DocumentKind.DRAFT)

    def documents(self, *, include_drafts: bool = False) -> list[Document]:
        """Return the documents a build would publish.

        Args:
            include_drafts: Also include drafts and unpublished posts

        Returns:
            Documents sorted newest first, then by slug
        """
        docs = self.posts()
        if include_drafts:
            docs.extend(self.drafts())
        else:
            docs = [doc for doc in docs if not doc.is_draft]
        return _sorted(docs)

    def _load_all(self, directory: Path, kind: DocumentKind) -> list[Document]:
        if not directory.is_dir():
            return []

        docs: list[Document] = []
        for path in directory.rglob("*"):
            if path.suffix not in MARKDOWN_SUFFIXES or not path.is_file():
                continue
            try:
                docs.append(load_document(path, kind))
            except ValueError as e:
                logger.warning(f"Skipping {path}: {e}")
        return _sorted(docs)


def route_for(document: Document, permalink: str) -> URLPath:
    """Compute the public route of a document.

    Supports the ``:year``, ``:month``, ``:day``, ``:title``, ``:slug`` and
    ``:categories`` placeholders. A ``permalink`` key in the document's
    front matter is used verbatim instead.

    Args:
        document: Document to route
        permalink: Site permalink pattern (e.g., "/log/:year/:month/:day/:title")

    Returns:
        URL path without a file extension
    """
    own = document.metadata.get("permalink")
    if isinstance(own, str) and own:
        return URLPath(own if own.startswith("/") else f"/{own}")

    values = {
        "year": f"{document.date.year:04d}",
        "month": f"{document.date.month:02d}",
        "day": f"{document.date.day:02d}",
        "title": document.slug,
        "slug": document.slug,
        "categories": "/".join(_categories(document.metadata)),
    }
    route = _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], permalink)
    route = re.sub(r"/{2,}", "/", route)
    return URLPath(route)


def check_routes(
    corpus: ContentCorpus,
    root: Path,
    permalink: str,
) -> list[BrokenRoute]:
    """Find published documents whose route is not in the artifact set.

    Args:
        corpus: Content corpus
        root: Built site root
        permalink: Site permalink pattern

    Returns:
        Documents that would only be served the fallback page
    """
    broken: list[BrokenRoute] = []
    for document in corpus.documents():
        route = route_for(document, permalink)
        if isinstance(resolve(route, root), FallbackNotFound):
            broken.append(BrokenRoute(document=document, route=route))
    return broken


def _categories(metadata: dict[str, Any]) -> list[str]:
    raw = metadata.get("categories", metadata.get("category"))
    if isinstance(raw, str):
        return raw.split()
    if isinstance(raw, list):
        return [str(item) for item in raw]
    return []


def _coerce_date(value: object) -> datetime | None:
    """Normalize a front matter date to a naive UTC datetime.

    Offsets are converted rather than dropped, matching a generator that
    builds in UTC.
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        # Jekyll style: "2015-04-28 10:00:00 -0700"
        for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d"):
            try:
                return _as_utc(datetime.strptime(value.strip(), fmt))
            except ValueError:
                continue
        logger.warning(f"Unrecognized date in front matter: {value!r}")
    return None


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _sorted(docs: list[Document]) -> list[Document]:
    by_slug = sorted(docs, key=lambda doc: doc.slug)
    return sorted(by_slug, key=lambda doc: doc.date, reverse=True)
