"""Signed cookie sessions.

Session state is serialized as JSON and signed with ``itsdangerous``.
``session_unit()`` loads the cookie into the ``Session`` component at
the top of a chain and writes it back on the final response, so any
later unit can declare ``session: Session``::

    api.use(session_unit(SessionConfig(secret_key="...")))

    @api.post("/login")
    async def login(session: Session, request: Request) -> dict:
        user = await users.check(await request.json())
        session.login(user.id, grants=[MarkerEntry.for_prefix("/api")])
        return {"id": user.id}

The session's grants seed the request's ``Grants`` component, which
``access_control`` checks.
"""

import logging
import secrets
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from itsdangerous import BadSignature, URLSafeTimedSerializer

from switchyard.chain.units import MiddlewareUnit, as_unit, unit
from switchyard.config import AppConfig
from switchyard.context import ContextStore, component
from switchyard.errors import AuthRequiredError, ConfigurationError
from switchyard.http.cookies import SetCookie
from switchyard.http.meta import ResponseMeta
from switchyard.http.request import Request
from switchyard.http.response import Response
from switchyard.markers import MarkerEntry
from switchyard.middleware.access import Grants

logger = logging.getLogger("switchyard.sessions")


def _new_id() -> str:
    return secrets.token_urlsafe(16)


@component("switchyard.session")
class Session:
    """The caller's session for this request.

    A session always has an ``id``. It is *authenticated* once
    ``login()`` has set a ``user_id``.
    """

    def __init__(
        self,
        id: str | None = None,
        data: Mapping[str, Any] | None = None,
        user_id: str | None = None,
        grants: Iterable[MarkerEntry] = (),
    ) -> None:
        self.id = id or _new_id()
        self.data: dict[str, Any] = dict(data or {})
        self.user_id = user_id
        self.grants: list[MarkerEntry] = list(grants)
        self.modified = False

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    def login(self, user_id: str, grants: Iterable[MarkerEntry] = ()) -> None:
        """Authenticate the session. The id is rotated to prevent fixation."""
        self.id = _new_id()
        self.user_id = str(user_id)
        self.grants = list(grants)
        self.modified = True

    def logout(self) -> None:
        """Drop the user, the grants, and all data. The id is rotated."""
        self.id = _new_id()
        self.user_id = None
        self.grants = []
        self.data.clear()
        self.modified = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "grants": [entry.to_dict() for entry in self.grants],
            "data": self.data,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Session":
        """Rebuild a session from a verified cookie. Bad shapes raise ``ValueError``."""
        grants = [MarkerEntry.from_dict(item) for item in payload.get("grants", ())]
        data = payload.get("data") or {}
        if not isinstance(data, Mapping):
            msg = "Session data must be a mapping."
            raise ValueError(msg)
        user_id = payload.get("user_id")
        return cls(
            id=payload.get("id"),
            data=data,
            user_id=str(user_id) if user_id is not None else None,
            grants=grants,
        )


@dataclass(frozen=True, slots=True)
class SessionConfig:
    """Session cookie configuration.

    An empty ``secret_key`` falls back to ``AppConfig.secret_key``; if
    both are empty the first request raises ``ConfigurationError``.
    """

    secret_key: str = ""
    cookie_name: str = "switchyard_session"
    max_age: int = 86400  # 24 hours
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SessionLoader:
    """Chain unit that loads and saves the session cookie."""

    __slots__ = ("_config", "_serializers")

    def __init__(self, config: SessionConfig) -> None:
        self._config = config
        self._serializers: dict[str, URLSafeTimedSerializer] = {}

    def _serializer(self, app_config: AppConfig) -> URLSafeTimedSerializer:
        secret = self._config.secret_key or app_config.secret_key
        if not secret:
            msg = "Sessions need SessionConfig.secret_key or AppConfig.secret_key."
            raise ConfigurationError(msg)
        serializer = self._serializers.get(secret)
        if serializer is None:
            serializer = URLSafeTimedSerializer(secret, salt="switchyard.session")
            self._serializers[secret] = serializer
        return serializer

    def load(self, serializer: URLSafeTimedSerializer, request: Request) -> Session:
        """Verify and decode the cookie. Anything unverifiable starts a fresh session."""
        raw = request.cookies.get(self._config.cookie_name)
        if not raw:
            return Session()
        try:
            payload = serializer.loads(raw, max_age=self._config.max_age)
            if not isinstance(payload, Mapping):
                msg = "Session payload must be a mapping."
                raise ValueError(msg)
            return Session.from_payload(payload)
        except (BadSignature, ValueError) as exc:
            logger.debug("discarding session cookie: %s", exc)
            return Session()

    def cookie(self, serializer: URLSafeTimedSerializer, session: Session) -> SetCookie:
        cfg = self._config
        return SetCookie(
            name=cfg.cookie_name,
            value=serializer.dumps(session.to_payload()),
            max_age=cfg.max_age,
            path=cfg.path,
            secure=cfg.secure,
            httponly=cfg.httponly,
            samesite=cfg.samesite,
        )

    def __call__(
        self,
        request: Request,
        app_config: AppConfig,
        store: ContextStore,
        grants: Grants,
        meta: ResponseMeta,
    ) -> None:
        serializer = self._serializer(app_config)
        session = self.load(serializer, request)
        store.provide(session)
        grants.grant(*session.grants)

        def save(response: Response) -> Response:
            # Always re-signed so the timestamp slides with activity
            return response.with_cookie(self.cookie(serializer, session))

        meta.before_send(save)


def session_unit(config: SessionConfig | None = None) -> MiddlewareUnit:
    """Build the session loader unit."""
    return as_unit(SessionLoader(config or SessionConfig()), uid="switchyard.session")


@unit(uid="switchyard.require_auth")
def require_auth(session: Session) -> None:
    if not session.authenticated:
        raise AuthRequiredError()
