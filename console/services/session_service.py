from __future__ import annotations

import logging
from collections.abc import Callable

from console.domain.errors import ApiError, AuthError, AuthErrorKind
from console.domain.models import Identity, Session, SessionStatus
from console.domain.permissions import RoleFlags, role_flags
from console.infra.api_client import ApiClient
from console.infra.events import SESSION_CHANGED, EventBus, EventHandler
from console.infra.storage import TOKEN_KEY, ClientStorage
from console.services.notification_service import Notifier

logger = logging.getLogger(__name__)


class SessionStore:
    """Single owner of the token and identity for one running console.

    Every restore/login captures a generation number; logout and newer logins
    bump it, so a response that lands for an older generation is dropped
    instead of repopulating a session the user already left.
    """

    def __init__(
        self,
        api: ApiClient,
        storage: ClientStorage,
        bus: EventBus,
        notifier: Notifier | None = None,
    ) -> None:
        self._api = api
        self._storage = storage
        self._bus = bus
        self._notifier = notifier
        self._session = Session()
        self._generation = 0
        api.set_token_provider(self._current_token)

    def _current_token(self) -> str | None:
        return self._session.token

    @property
    def session(self) -> Session:
        return self._session

    @property
    def identity(self) -> Identity | None:
        return self._session.identity

    @property
    def status(self) -> SessionStatus:
        return self._session.status

    @property
    def flags(self) -> RoleFlags:
        return role_flags(self._session.identity)

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        return self._bus.subscribe(SESSION_CHANGED, handler)

    def _replace(self, session: Session) -> None:
        previous = self._session
        self._session = session
        if previous == session:
            return
        identity = session.identity
        self._bus.publish_dict(
            SESSION_CHANGED,
            {
                "status": str(session.status),
                "previous_status": str(previous.status),
                "identity_id": identity.id if identity else None,
                "identity_changed": (previous.identity != identity),
            },
        )

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def restore(self) -> Session:
        token = self._storage.get(TOKEN_KEY)
        if not token:
            self._replace(Session(status=SessionStatus.ANONYMOUS))
            return self._session

        generation = self._next_generation()
        self._replace(Session(token=token, identity=self._session.identity, status=SessionStatus.CHECKING))
        try:
            identity = await self.fetch_identity(token)
        except AuthError as exc:
            if not self._is_current(generation):
                return self._session
            if exc.kind == AuthErrorKind.NETWORK_ERROR:
                logger.warning("identity fetch failed, staying anonymous: %s", exc.message)
                if self._notifier is not None:
                    self._notifier.warning("No se pudo verificar la sesión", exc.message)
            self._replace(Session(status=SessionStatus.ANONYMOUS))
            return self._session

        if not self._is_current(generation):
            logger.info("discarding identity for a superseded session")
            return self._session
        self._replace(Session(token=token, identity=identity, status=SessionStatus.READY))
        return self._session

    async def fetch_identity(self, token: str) -> Identity:
        try:
            return await self._api.me(token)
        except ApiError as exc:
            if exc.is_network_error or exc.status >= 500:
                raise AuthError(AuthErrorKind.NETWORK_ERROR, exc.message) from exc
            self._invalidate(token)
            raise AuthError(AuthErrorKind.TOKEN_INVALID, exc.message) from exc

    def _invalidate(self, token: str) -> None:
        if self._storage.get(TOKEN_KEY) == token:
            self._storage.remove(TOKEN_KEY)
        if self._session.token == token:
            self._next_generation()
            self._replace(Session(status=SessionStatus.ANONYMOUS))
        logger.info("stored token rejected, session downgraded to anonymous")

    async def login(self, email: str, password: str) -> Identity:
        generation = self._next_generation()
        try:
            token, identity = await self._api.login(email, password)
        except ApiError as exc:
            if exc.is_network_error:
                raise AuthError(AuthErrorKind.NETWORK_ERROR, exc.message) from exc
            if 400 <= exc.status < 500:
                raise AuthError(AuthErrorKind.INVALID_CREDENTIALS, exc.message) from exc
            raise

        if not self._is_current(generation):
            logger.info("login response arrived after the session was reset, discarding")
            raise AuthError(AuthErrorKind.TOKEN_INVALID, "Sesión descartada")
        self._storage.set(TOKEN_KEY, token)
        self._replace(Session(token=token, identity=identity, status=SessionStatus.READY))
        logger.info("login ok for user %s (%s)", identity.id, identity.role)
        return identity

    async def logout(self) -> None:
        token = self._session.token or self._storage.get(TOKEN_KEY)
        self._next_generation()
        self._storage.remove(TOKEN_KEY)
        self._replace(Session(status=SessionStatus.ANONYMOUS))
        if not token:
            return
        try:
            await self._api.logout(token)
        except ApiError as exc:
            logger.debug("backend logout ignored: %s", exc.code)
