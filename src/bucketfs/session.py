import hmac
from collections.abc import Mapping, MutableMapping
from typing import Any, Protocol

from structlog import get_logger

from .config import Settings

logger = get_logger()

SESSION_FLAG = "authenticated"


class SessionGate(Protocol):
    def is_authenticated(self, request: Any) -> bool: ...


def _session_of(request: Any) -> Mapping | None:
    session = getattr(request, "session", None)
    if session is None and isinstance(request, Mapping):
        session = request.get("session")
    if isinstance(session, Mapping):
        return session
    return None


class SessionFlagGate:
    """
    Accepts requests whose session carries a truthy `authenticated` flag.

    Works with any request object exposing a mapping `session` attribute
    (Starlette, Flask, aiohttp-session) or with a plain dict holding one.
    """

    def is_authenticated(self, request: Any) -> bool:
        session = _session_of(request)
        return bool(session and session.get(SESSION_FLAG))


def check_credentials(email: str, password: str, settings: Settings) -> bool:
    if not settings.admin_email or not settings.admin_password:
        logger.warning("Admin credentials not configured, refusing login")
        return False
    email_ok = hmac.compare_digest(email.encode(), settings.admin_email.encode())
    password_ok = hmac.compare_digest(
        password.encode(), settings.admin_password.encode()
    )
    return email_ok and password_ok


def login(
    session: MutableMapping, email: str, password: str, settings: Settings
) -> bool:
    if not check_credentials(email, password, settings):
        logger.warning("Login rejected", email=email)
        return False
    session[SESSION_FLAG] = True
    logger.info("Login accepted", email=email)
    return True


def logout(session: MutableMapping):
    session.pop(SESSION_FLAG, None)
