"""
Request path classification.

Every inbound path is sorted into one of four kinds before any auth check:

    ALWAYS_ALLOWED  - exact match on the public allow-list
    CONTROL         - callback / logout / health endpoints
    STATIC_ASSET    - last segment has a non-HTML extension
    PROTECTED_PAGE  - everything else, including "/" and "dir/"

Static assets must never be answered with an HTML login redirect: a browser
loading them through <script src> or <link href> expects their own content
type. The rule applies to every extension, not a fixed list.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

HTML_EXTENSIONS = frozenset({".html", ".htm"})


class RequestKind(str, Enum):
    CONTROL = "control"
    ALWAYS_ALLOWED = "always_allowed"
    STATIC_ASSET = "static_asset"
    PROTECTED_PAGE = "protected_page"


class ControlKind(str, Enum):
    CALLBACK = "callback"
    LOGOUT = "logout"
    HEALTH = "health"


@dataclass(frozen=True)
class Classification:
    kind: RequestKind
    path: str
    control: Optional[ControlKind] = None


def strip_query(path: str) -> str:
    """Drop any ``?query`` or ``#fragment`` suffix."""
    return path.split("?", 1)[0].split("#", 1)[0]


def path_extension(path: str) -> str:
    """
    Lower-cased extension of the last path segment, or "" if none.

    The extension runs from the last "." of the final segment, so
    ``/a/.htaccess`` has extension ``.htaccess`` and ``/a/b/`` has none.
    """
    segment = strip_query(path).rsplit("/", 1)[-1]
    dot = segment.rfind(".")
    if dot < 0:
        return ""
    return segment[dot:].lower()


def is_static_asset(path: str) -> bool:
    ext = path_extension(path)
    return ext != "" and ext not in HTML_EXTENSIONS


class PathClassifier:
    """
    Classify request paths by the priority rules above.

    Args:
        public_paths: Paths served without authentication (exact match)
        control_paths: Mapping of exact path -> ControlKind
    """

    def __init__(self, public_paths: Iterable[str], control_paths: Dict[str, ControlKind]):
        self._public = frozenset(public_paths)
        self._control = dict(control_paths)

    @classmethod
    def from_settings(cls, settings) -> "PathClassifier":
        return cls(
            public_paths=settings.public_paths_list,
            control_paths={
                settings.CALLBACK_PATH: ControlKind.CALLBACK,
                settings.LOGOUT_PATH: ControlKind.LOGOUT,
                settings.HEALTH_PATH: ControlKind.HEALTH,
            },
        )

    def classify(self, path: str) -> Classification:
        path = strip_query(path) or "/"

        if path in self._public:
            return Classification(RequestKind.ALWAYS_ALLOWED, path)

        control = self._control.get(path)
        if control is not None:
            return Classification(RequestKind.CONTROL, path, control)

        if is_static_asset(path):
            return Classification(RequestKind.STATIC_ASSET, path)

        return Classification(RequestKind.PROTECTED_PAGE, path)
