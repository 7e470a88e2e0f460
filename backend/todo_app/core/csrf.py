"""
Anti-forgery protection for browser form submissions.

The client holds a random secret in an httpOnly cookie. Pages embed a signed
token that names the digest of that secret; a state-changing submission is
accepted only when the submitted token decodes and matches the cookie.
"""
import datetime as dt
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass

import jwt  # PyJWT
from starlette.responses import Response

logger = logging.getLogger(__name__)

CSRF_COOKIE = "csrf_secret"
CSRF_FORM_FIELD = "_csrf"
CSRF_HEADER = "x-csrf-token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
EXEMPT_PREFIXES = ("/graphql", "/static")
EXEMPT_PATHS = frozenset({"/favicon.ico"})


def _digest(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CSRFState:
    """Per-request anti-forgery value handed to the view layer."""

    token: str | None = None
    secret: str | None = None
    is_new: bool = False
    secure: bool = False

    def attach(self, response: Response) -> Response:
        """Set the secret cookie on `response` when this request minted it."""
        if self.is_new and self.secret:
            response.set_cookie(
                CSRF_COOKIE,
                self.secret,
                httponly=True,
                samesite="lax",
                secure=self.secure,
                path="/",
            )
        return response


class CSRFGuard:
    def __init__(self, signing_key: str, ttl: dt.timedelta, secure_cookie: bool = False,
                 algorithm: str = "HS256"):
        self._key = signing_key
        self._ttl = ttl
        self._secure = secure_cookie
        self._algorithm = algorithm

    @staticmethod
    def is_exempt(path: str) -> bool:
        return path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES)

    @staticmethod
    def new_secret() -> str:
        return secrets.token_urlsafe(32)

    def issue(self, secret: str) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        payload = {"type": "csrf", "sid": _digest(secret), "iat": now, "exp": now + self._ttl}
        return jwt.encode(payload, self._key, algorithm=self._algorithm)

    def validate(self, token: str | None, secret: str | None) -> bool:
        if not token or not secret:
            logger.info("csrf validation failed: token_present=%s secret_present=%s",
                        bool(token), bool(secret))
            return False
        try:
            payload = jwt.decode(token, self._key, algorithms=[self._algorithm])
        except jwt.InvalidTokenError as exc:
            logger.info("csrf validation failed: %s", exc)
            return False
        if payload.get("type") != "csrf":
            logger.info("csrf validation failed: type mismatch (got %s)", payload.get("type"))
            return False
        sid = payload.get("sid")
        if not isinstance(sid, str) or not hmac.compare_digest(sid, _digest(secret)):
            logger.info("csrf validation failed: session mismatch")
            return False
        return True

    def state_for(self, secret: str | None) -> CSRFState:
        """Build the state for a request, minting a secret when the client has none."""
        is_new = secret is None
        if is_new:
            secret = self.new_secret()
        return CSRFState(token=self.issue(secret), secret=secret, is_new=is_new, secure=self._secure)
