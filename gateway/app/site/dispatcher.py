"""
Request Dispatcher
==================

Entry point for every request. The dispatcher:

1. Classifies the path (classifier.PathClassifier)
2. Checks the session marker (auth.session.SessionStore)
3. Picks an Action from the transition table (``decide``)
4. Executes it: serve a file, run the code exchange, log out,
   redirect to the provider, or reject

Transition table:

    Classification      Session   Action
    ------------------  --------  -------------------
    ALWAYS_ALLOWED      any       SERVE
    CONTROL(HEALTH)     any       HEALTH
    CONTROL(CALLBACK)   any       EXCHANGE
    CONTROL(LOGOUT)     any       LOGOUT
    STATIC_ASSET        valid     SERVE
    STATIC_ASSET        invalid   REJECT_UNAUTHORIZED
    PROTECTED_PAGE      valid     SERVE
    PROTECTED_PAGE      invalid   REDIRECT_TO_LOGIN

Static assets are never redirected and pages are never answered with 401.
"""

import logging
from enum import Enum
from typing import Optional

import httpx
from fastapi import Request, status
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, RedirectResponse
from starlette.responses import Response

from .. import __version__
from ..auth.credentials import CodeRejectedError, ExchangeFailure, MalformedCredentialError
from ..auth.provider import IdentityProviderClient
from ..auth.session import SessionStore
from ..config import Settings
from ..models import DisplayIdentity, HealthResponse
from .classifier import Classification, ControlKind, PathClassifier, RequestKind
from .resolver import FileNotFoundInSite, PathResolver, PathTraversalError, asset_kind_for

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


class Action(str, Enum):
    SERVE = "serve"
    HEALTH = "health"
    EXCHANGE = "exchange"
    LOGOUT = "logout"
    REJECT_UNAUTHORIZED = "reject_unauthorized"
    REDIRECT_TO_LOGIN = "redirect_to_login"


def decide(classification: Classification, session_valid: bool) -> Action:
    """
    Map a classification and session validity to an Action.

    Pure function; no I/O.
    """
    match (classification.kind, classification.control, session_valid):
        case (RequestKind.ALWAYS_ALLOWED, _, _):
            return Action.SERVE
        case (RequestKind.CONTROL, ControlKind.HEALTH, _):
            return Action.HEALTH
        case (RequestKind.CONTROL, ControlKind.CALLBACK, _):
            return Action.EXCHANGE
        case (RequestKind.CONTROL, ControlKind.LOGOUT, _):
            return Action.LOGOUT
        case (RequestKind.STATIC_ASSET, _, True):
            return Action.SERVE
        case (RequestKind.STATIC_ASSET, _, False):
            return Action.REJECT_UNAUTHORIZED
        case (RequestKind.PROTECTED_PAGE, _, True):
            return Action.SERVE
        case (RequestKind.PROTECTED_PAGE, _, False):
            return Action.REDIRECT_TO_LOGIN
    raise ValueError(f"No transition for {classification!r}")


class Dispatcher:
    """
    Executes the transition table for incoming requests.

    All collaborators are built once from the frozen Settings and shared by
    concurrent requests; none of them hold per-request state.
    """

    def __init__(
        self,
        settings: Settings,
        classifier: PathClassifier,
        resolver: PathResolver,
        sessions: SessionStore,
        provider: IdentityProviderClient,
    ):
        self.settings = settings
        self.classifier = classifier
        self.resolver = resolver
        self.sessions = sessions
        self.provider = provider

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "Dispatcher":
        return cls(
            settings=settings,
            classifier=PathClassifier.from_settings(settings),
            resolver=PathResolver.from_settings(settings),
            sessions=SessionStore(settings),
            provider=IdentityProviderClient(settings, http_client=http_client),
        )

    async def dispatch(self, request: Request) -> Response:
        classification = self.classifier.classify(request.url.path)
        session_valid = self.sessions.is_valid(self.sessions.token_from_request(request))
        action = decide(classification, session_valid)

        match action:
            case Action.SERVE:
                return self._serve(classification)
            case Action.HEALTH:
                return self._health()
            case Action.EXCHANGE:
                return await self._callback(request)
            case Action.LOGOUT:
                return self._logout()
            case Action.REJECT_UNAUTHORIZED:
                logger.info(f"[BLOCK] Unauthorized asset request: {classification.path}")
                return PlainTextResponse("Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)
            case Action.REDIRECT_TO_LOGIN:
                logger.info(f"[AUTH] Redirecting page request to login: {classification.path}")
                return RedirectResponse(
                    self.provider.authorize_url(),
                    status_code=status.HTTP_302_FOUND,
                    headers=NO_STORE,
                )

    # =========================================================================
    # Actions
    # =========================================================================

    def _serve(self, classification: Classification) -> Response:
        try:
            resolved = self.resolver.resolve(classification.path, asset_kind_for(classification.path))
        except PathTraversalError:
            return PlainTextResponse("Forbidden", status_code=status.HTTP_403_FORBIDDEN)
        except FileNotFoundInSite:
            return PlainTextResponse("Not Found", status_code=status.HTTP_404_NOT_FOUND)

        return FileResponse(
            resolved.path,
            status_code=resolved.status_code,
            media_type=resolved.media_type,
            headers=resolved.headers,
        )

    def _health(self) -> Response:
        body = HealthResponse(status="ok", service=self.settings.APP_NAME, version=__version__)
        return JSONResponse(body.model_dump(), headers=NO_STORE)

    async def _callback(self, request: Request) -> Response:
        """
        Complete the authorization-code flow and mint a session.

        A provider that accepted the code but returned an unreadable
        credential still yields a session with the placeholder identity.
        """
        code = request.query_params.get("code", "").strip()
        if not code:
            logger.warning("[AUTH] Callback without authorization code")
            return PlainTextResponse("Code missing", status_code=status.HTTP_400_BAD_REQUEST)

        placeholder = DisplayIdentity(name=self.settings.PLACEHOLDER_IDENTITY, placeholder=True)

        try:
            identity = await self.provider.exchange(code)
        except MalformedCredentialError as e:
            logger.warning(f"[AUTH] Unreadable credential, using placeholder identity: {e}")
            identity = placeholder
        except ExchangeFailure as e:
            if not self.settings.DEGRADE_ON_EXCHANGE_FAILURE:
                logger.warning(f"[AUTH] Token exchange failed: {e}")
                if isinstance(e, CodeRejectedError):
                    return PlainTextResponse(
                        "Invalid authorization code", status_code=status.HTTP_400_BAD_REQUEST
                    )
                return PlainTextResponse(
                    "Identity provider unavailable", status_code=status.HTTP_502_BAD_GATEWAY
                )
            logger.warning(f"[AUTH] Token exchange failed, degrading to placeholder identity: {e}")
            identity = placeholder

        token = self.sessions.issue(identity)
        response = RedirectResponse("/", status_code=status.HTTP_302_FOUND, headers=NO_STORE)
        self.sessions.set_cookies(response, token, identity)

        logger.info(f"[AUTH] User {identity.name} logged in, redirecting to /")
        return response

    def _logout(self) -> Response:
        response = RedirectResponse(
            self.provider.logout_url(),
            status_code=status.HTTP_302_FOUND,
            headers=NO_STORE,
        )
        self.sessions.revoke(response)
        return response
