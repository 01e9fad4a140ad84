"""
Unit Tests for Path Classification
==================================

Tests for gateway/app/site/classifier.py
"""

import pytest

from gateway.app.site.classifier import (
    ControlKind,
    PathClassifier,
    RequestKind,
    is_static_asset,
    path_extension,
)

from conftest import build_settings


@pytest.fixture
def classifier(settings):
    return PathClassifier.from_settings(settings)


# ============================================================================
# Static assets
# ============================================================================

ASSET_EXTENSIONS = [
    ".js", ".mjs", ".css", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp",
    ".woff", ".woff2", ".ttf", ".json", ".xml", ".map", ".txt", ".pdf", ".wasm",
    ".JS", ".Css", ".unknownext",
]


@pytest.mark.parametrize("ext", ASSET_EXTENSIONS)
@pytest.mark.parametrize("suffix", ["", "?v=123", "?next=/page.html", "#top"])
def test_any_non_html_extension_is_static(classifier, ext, suffix):
    result = classifier.classify(f"/assets/bundle{ext}{suffix}")
    assert result.kind is RequestKind.STATIC_ASSET


@pytest.mark.parametrize("path", [
    "/",
    "/notes/",
    "/notes/article",
    "/notes/article.html",
    "/notes/article.HTML",
    "/legacy/page.htm",
    "/notes/article?file=app.js",
    "/notes.v2/",
])
def test_pages_are_protected(classifier, path):
    assert classifier.classify(path).kind is RequestKind.PROTECTED_PAGE


def test_extension_from_last_segment_only(classifier):
    assert classifier.classify("/v1.2/changelog").kind is RequestKind.PROTECTED_PAGE
    assert classifier.classify("/v1.2/logo.svg").kind is RequestKind.STATIC_ASSET


def test_query_does_not_change_classification(classifier):
    assert classifier.classify("/static/app.js?x=/a/b") == classifier.classify("/static/app.js")


# ============================================================================
# Allow-list and control endpoints
# ============================================================================

def test_favicon_is_always_allowed(classifier):
    result = classifier.classify("/favicon.ico")
    assert result.kind is RequestKind.ALWAYS_ALLOWED


def test_allow_list_is_exact_match(classifier):
    assert classifier.classify("/sub/favicon.ico").kind is RequestKind.STATIC_ASSET


@pytest.mark.parametrize("path,control", [
    ("/callback", ControlKind.CALLBACK),
    ("/callback?code=abc", ControlKind.CALLBACK),
    ("/logout", ControlKind.LOGOUT),
    ("/healthz", ControlKind.HEALTH),
])
def test_control_endpoints(classifier, path, control):
    result = classifier.classify(path)
    assert result.kind is RequestKind.CONTROL
    assert result.control is control


def test_control_endpoints_are_exact_match(classifier):
    assert classifier.classify("/callback/").kind is RequestKind.PROTECTED_PAGE
    assert classifier.classify("/logout/now").kind is RequestKind.PROTECTED_PAGE


def test_allow_list_wins_over_control():
    classifier = PathClassifier(
        public_paths=["/logout"],
        control_paths={"/logout": ControlKind.LOGOUT},
    )
    assert classifier.classify("/logout").kind is RequestKind.ALWAYS_ALLOWED


def test_configured_public_paths(site_root):
    settings = build_settings(site_root, PUBLIC_PATHS="/favicon.ico, /403.html,/robots.txt")
    classifier = PathClassifier.from_settings(settings)

    assert classifier.classify("/403.html").kind is RequestKind.ALWAYS_ALLOWED
    assert classifier.classify("/robots.txt").kind is RequestKind.ALWAYS_ALLOWED


# ============================================================================
# Helpers
# ============================================================================

@pytest.mark.parametrize("path,expected", [
    ("/", ""),
    ("/notes/", ""),
    ("/notes/article", ""),
    ("/notes/Article.PNG", ".png"),
    ("/archive.tar.gz", ".gz"),
    ("/.htaccess", ".htaccess"),
    ("/a.js?b.css", ".js"),
])
def test_path_extension(path, expected):
    assert path_extension(path) == expected


def test_is_static_asset():
    assert is_static_asset("/x.js")
    assert not is_static_asset("/x.html")
    assert not is_static_asset("/x")
