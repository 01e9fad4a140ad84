"""
Path Resolver
=============

Maps a site-relative URL path to a concrete file inside the site root and
picks the response headers for it.

Page paths are completed the way static site generators lay out their
output:

    /                 -> index.html
    /notes/           -> notes/index.html
    /notes/article    -> notes/article.html
    /notes/figure.png -> notes/figure.png

Every resolved path is checked to be the root or a descendant of it after
".." segments and symlinks are resolved. Anything else is refused.
"""

import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from .classifier import HTML_EXTENSIONS, is_static_asset, path_extension, strip_query

logger = logging.getLogger(__name__)


PAGE_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


# =============================================================================
# Types
# =============================================================================

class AssetKind(str, Enum):
    PAGE = "page"
    STATIC = "static"


@dataclass(frozen=True)
class ResolvedFile:
    path: Path
    asset_kind: AssetKind
    media_type: str
    headers: Dict[str, str] = field(default_factory=dict)
    status_code: int = 200


class ResolutionError(Exception):
    """Base exception for path resolution failures."""
    pass


class PathTraversalError(ResolutionError):
    """The path resolves outside the site root."""
    pass


class FileNotFoundInSite(ResolutionError):
    """No file exists for the path and no not-found page is available."""
    pass


# =============================================================================
# Helpers
# =============================================================================

def asset_kind_for(path: str) -> AssetKind:
    return AssetKind.STATIC if is_static_asset(path) else AssetKind.PAGE


def page_target(path: str) -> str:
    """
    Apply directory-index and extension completion to a page path.
    """
    if path == "/" or path.endswith("/"):
        return path + "index.html"
    if path_extension(path) == "":
        return path + ".html"
    return path


# =============================================================================
# Resolver
# =============================================================================

class PathResolver:
    """
    Resolve URL paths to files under ``root``.

    Args:
        root: Site root directory
        not_found_page: Page (relative to root) served with 404 for missing pages
        static_max_age: Cache lifetime in seconds for non-HTML files
    """

    def __init__(self, root: Path, not_found_page: Optional[str] = None, static_max_age: int = 31536000):
        self._root = Path(root).resolve()
        self._not_found_page = not_found_page
        self._static_headers = {
            "Cache-Control": f"public, max-age={static_max_age}, immutable",
        }

    @classmethod
    def from_settings(cls, settings) -> "PathResolver":
        return cls(
            root=settings.site_root,
            not_found_page=settings.NOT_FOUND_PAGE,
            static_max_age=settings.STATIC_MAX_AGE_SECONDS,
        )

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str, kind: AssetKind) -> ResolvedFile:
        """
        Resolve ``path`` to a file.

        Args:
            path: URL path, query and fragment allowed
            kind: PAGE applies index/extension completion, STATIC uses the path as-is

        Returns:
            ResolvedFile with headers for the response

        Raises:
            PathTraversalError: Path escapes the site root
            FileNotFoundInSite: Nothing to serve
        """
        clean = strip_query(path) or "/"
        target = page_target(clean) if kind is AssetKind.PAGE else clean

        candidate = self._contain(target)
        if candidate.is_file():
            return self._build(candidate, kind)

        if kind is AssetKind.PAGE and self._not_found_page:
            fallback = self._contain(self._not_found_page)
            if fallback.is_file():
                logger.debug(f"Serving not-found page for {clean}")
                return self._build(fallback, kind, status_code=404)

        raise FileNotFoundInSite(target)

    def headers_for(self, file_path: Path) -> Dict[str, str]:
        """Cache headers picked from the served file's extension."""
        if file_path.suffix.lower() in HTML_EXTENSIONS:
            return dict(PAGE_CACHE_HEADERS)
        return dict(self._static_headers)

    def _contain(self, relative: str) -> Path:
        try:
            candidate = (self._root / relative.lstrip("/")).resolve()
        except (OSError, ValueError, RuntimeError) as e:
            raise FileNotFoundInSite(relative) from e

        if candidate != self._root and self._root not in candidate.parents:
            logger.warning(f"Refused path outside site root: {relative!r}")
            raise PathTraversalError(relative)
        return candidate

    def _build(self, file_path: Path, kind: AssetKind, status_code: int = 200) -> ResolvedFile:
        media_type, _ = mimetypes.guess_type(file_path.name)
        return ResolvedFile(
            path=file_path,
            asset_kind=kind,
            media_type=media_type or "application/octet-stream",
            headers=self.headers_for(file_path),
            status_code=status_code,
        )
