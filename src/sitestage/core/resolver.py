"""Static file resolution against a built artifact set.

Maps a request path onto the built site tree using an ordered list of rules:

    1. <root>/<path>              exact file
    2. <root>/<path>.html         bare route to an HTML page
    3. <root>/<path>/index.html   directory-style route
    4. <root>/index.html          fallback page for anything unmatched

The first three produce a ``Matched`` result; the last one produces
``FallbackNotFound``. Both may carry the same bytes (``/`` and a broken link
both show the site index), but callers can tell them apart.
"""

import logging
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from sitestage.core.types import URLPath

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.html"
HTML_CONTENT_TYPE = "text/html"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Served when even the fallback page cannot be read
EMPTY_FALLBACK_BODY = b"<!DOCTYPE html>\n<html><head><title></title></head><body></body></html>\n"


class MatchRule(Enum):
    """Rule that produced a file match."""

    EXACT = "exact"
    HTML_SUFFIX = "html_suffix"
    DIRECTORY_INDEX = "directory_index"


@dataclass(frozen=True)
class Matched:
    """Request path matched a file in the artifact set."""

    path: Path
    rule: MatchRule
    body: bytes
    content_type: str


@dataclass(frozen=True)
class FallbackNotFound:
    """Request path matched nothing; the fallback page is served instead."""

    requested: URLPath
    body: bytes
    content_type: str = HTML_CONTENT_TYPE


Resolution = Matched | FallbackNotFound


def resolve(path: str, root: Path) -> Resolution:
    """Resolve a request path against a built site root.

    Never raises: unreadable candidates, paths escaping the root and a
    missing root directory all count as "no match".

    Args:
        path: Request path, already percent-decoded (e.g., "/about")
        root: Root directory of the built artifact set

    Returns:
        Matched for the first rule that finds a readable file,
        FallbackNotFound otherwise
    """
    relative = path.lstrip("/")
    base = _resolve_root(root)

    if base is not None:
        for candidate, rule in _candidates(relative):
            found = _read_within(base, candidate)
            if found is not None:
                target, body = found
                return Matched(
                    path=target,
                    rule=rule,
                    body=body,
                    content_type=guess_content_type(target.name),
                )

    return FallbackNotFound(requested=URLPath(path), body=_fallback_body(base))


def guess_content_type(name: str) -> str:
    """Guess the media type of a file from its name.

    Args:
        name: File name or relative path

    Returns:
        Media type, or application/octet-stream when unknown
    """
    if name.endswith(".html") or name.endswith(".htm"):
        return HTML_CONTENT_TYPE
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE


def _candidates(relative: str) -> list[tuple[str, MatchRule]]:
    """List candidate relative paths in resolution order.

    A trailing slash names a directory, so only the index rule applies.
    """
    candidates: list[tuple[str, MatchRule]] = []
    if relative:
        if not relative.endswith("/"):
            candidates.append((relative, MatchRule.EXACT))
            candidates.append((f"{relative}.html", MatchRule.HTML_SUFFIX))
        directory = relative.rstrip("/")
        candidates.append((f"{directory}/{INDEX_FILENAME}", MatchRule.DIRECTORY_INDEX))
    else:
        candidates.append((INDEX_FILENAME, MatchRule.DIRECTORY_INDEX))
    return candidates


def _resolve_root(root: Path) -> Path | None:
    """Resolve the root, following the current-build pointer."""
    try:
        base = root.resolve(strict=True)
    except (OSError, RuntimeError, ValueError):
        logger.debug(f"Site root unavailable: {root}")
        return None
    if not base.is_dir():
        return None
    return base


def _read_within(base: Path, relative: str) -> tuple[Path, bytes] | None:
    """Read a file under base, or return None if it is not a servable file.

    Args:
        base: Resolved root directory
        relative: Candidate path relative to the root

    Returns:
        Tuple of (resolved file path, file bytes), or None for directories,
        missing files, read errors and paths that leave the root
    """
    try:
        target = (base / relative).resolve(strict=True)
    except (OSError, RuntimeError, ValueError):
        return None

    if not target.is_relative_to(base):
        logger.debug(f"Rejected path outside site root: {relative}")
        return None

    if not target.is_file():
        return None

    try:
        return target, target.read_bytes()
    except OSError as e:
        logger.debug(f"Could not read {target}: {e}")
        return None


def _fallback_body(base: Path | None) -> bytes:
    if base is not None:
        found = _read_within(base, INDEX_FILENAME)
        if found is not None:
            return found[1]
    logger.warning("Fallback page missing, serving empty page")
    return EMPTY_FALLBACK_BODY
