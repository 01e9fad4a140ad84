"""
Unit Tests for Path Resolution
==============================

Tests for gateway/app/site/resolver.py

Test Coverage:
--------------
1. Index and extension completion for page paths
2. Static paths used unchanged
3. Containment inside the site root (.., symlinks)
4. Not-found fallback
5. Cache and content-type headers
"""

import os

import pytest

from gateway.app.site.resolver import (
    AssetKind,
    FileNotFoundInSite,
    PathResolver,
    PathTraversalError,
    page_target,
)


@pytest.fixture
def resolver(settings):
    return PathResolver.from_settings(settings)


# ============================================================================
# Path mapping
# ============================================================================

@pytest.mark.parametrize("path,expected", [
    ("/", "index.html"),
    ("/notes/", "notes/index.html"),
    ("/notes/article", "notes/article.html"),
    ("/notes/article.html", "notes/article.html"),
    ("/notes/article?ref=home", "notes/article.html"),
])
def test_page_paths(resolver, site_root, path, expected):
    resolved = resolver.resolve(path, AssetKind.PAGE)
    assert resolved.path == (site_root / expected).resolve()
    assert resolved.status_code == 200


def test_page_with_extension_used_as_is(resolver, site_root):
    resolved = resolver.resolve("/notes/article.png", AssetKind.PAGE)
    assert resolved.path == (site_root / "notes/article.png").resolve()


def test_static_path_unchanged(resolver, site_root):
    resolved = resolver.resolve("/notes/article.png", AssetKind.STATIC)
    assert resolved.path == (site_root / "notes/article.png").resolve()
    assert resolved.asset_kind is AssetKind.STATIC


@pytest.mark.parametrize("path,expected", [
    ("/", "/index.html"),
    ("/a/b/", "/a/b/index.html"),
    ("/a/b", "/a/b.html"),
    ("/a/b.htm", "/a/b.htm"),
    ("/a/b.css", "/a/b.css"),
])
def test_page_target(path, expected):
    assert page_target(path) == expected


# ============================================================================
# Containment
# ============================================================================

@pytest.mark.parametrize("path", [
    "/../secret",
    "/../secret.html",
    "/notes/../../secret",
    "/notes/../../../../etc/passwd",
])
def test_traversal_is_rejected(resolver, path):
    with pytest.raises(PathTraversalError):
        resolver.resolve(path, AssetKind.PAGE)


def test_traversal_rejected_for_static(resolver):
    with pytest.raises(PathTraversalError):
        resolver.resolve("/../secret.html", AssetKind.STATIC)


def test_dotdot_inside_root_is_collapsed(resolver, site_root):
    resolved = resolver.resolve("/notes/../index.html", AssetKind.PAGE)
    assert resolved.path == (site_root / "index.html").resolve()


def test_symlink_out_of_root_is_rejected(resolver, site_root, tmp_path):
    os.symlink(tmp_path / "secret.html", site_root / "leak.html")

    with pytest.raises(PathTraversalError):
        resolver.resolve("/leak", AssetKind.PAGE)


def test_resolved_paths_stay_under_root(resolver, site_root):
    root = site_root.resolve()
    for path in ["/", "/notes/", "/notes/article", "/static/app.js", "/missing"]:
        try:
            resolved = resolver.resolve(path, AssetKind.PAGE)
        except FileNotFoundInSite:
            continue
        assert root in resolved.path.parents


def test_nul_byte_is_not_found(resolver):
    with pytest.raises(FileNotFoundInSite):
        resolver.resolve("/bad\x00name.js", AssetKind.STATIC)


# ============================================================================
# Not found
# ============================================================================

def test_missing_page_falls_back_to_not_found_page(resolver, site_root):
    resolved = resolver.resolve("/no/such/page", AssetKind.PAGE)
    assert resolved.path == (site_root / "404.html").resolve()
    assert resolved.status_code == 404


def test_directory_is_not_a_file(resolver, site_root):
    # "/notes" maps to notes.html, which does not exist
    resolved = resolver.resolve("/notes", AssetKind.PAGE)
    assert resolved.status_code == 404


def test_missing_static_is_not_found(resolver):
    with pytest.raises(FileNotFoundInSite):
        resolver.resolve("/static/missing.js", AssetKind.STATIC)


def test_missing_page_without_not_found_page(site_root):
    resolver = PathResolver(site_root, not_found_page=None)
    with pytest.raises(FileNotFoundInSite):
        resolver.resolve("/no/such/page", AssetKind.PAGE)


def test_configured_not_found_page_missing_on_disk(site_root):
    resolver = PathResolver(site_root, not_found_page="errors/404.html")
    with pytest.raises(FileNotFoundInSite):
        resolver.resolve("/no/such/page", AssetKind.PAGE)


# ============================================================================
# Headers
# ============================================================================

def test_html_is_never_cached(resolver):
    resolved = resolver.resolve("/notes/article", AssetKind.PAGE)
    assert "no-store" in resolved.headers["Cache-Control"]
    assert resolved.headers["Pragma"] == "no-cache"
    assert resolved.media_type == "text/html"


def test_not_found_page_is_never_cached(resolver):
    resolved = resolver.resolve("/no/such/page", AssetKind.PAGE)
    assert "no-store" in resolved.headers["Cache-Control"]


@pytest.mark.parametrize("path,media_type", [
    ("/static/app.js", ("application/javascript", "text/javascript")),
    ("/static/style.css", ("text/css",)),
    ("/notes/article.png", ("image/png",)),
])
def test_static_is_cached_long(resolver, path, media_type):
    resolved = resolver.resolve(path, AssetKind.STATIC)
    assert resolved.headers["Cache-Control"] == "public, max-age=31536000, immutable"
    assert resolved.media_type in media_type


def test_static_max_age_is_configurable(site_root):
    resolver = PathResolver(site_root, static_max_age=600)
    resolved = resolver.resolve("/static/app.js", AssetKind.STATIC)
    assert resolved.headers["Cache-Control"] == "public, max-age=600, immutable"
