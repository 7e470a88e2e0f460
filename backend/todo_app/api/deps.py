from dataclasses import dataclass

from fastapi import Depends, Request

from todo_app.config import Settings
from todo_app.core.csrf import CSRF_COOKIE, CSRF_FORM_FIELD, CSRF_HEADER, SAFE_METHODS, CSRFGuard, CSRFState
from todo_app.core.errors import CSRFError, Unauthorized
from todo_app.core.security import TokenService

SESSION_COOKIE = "token"


@dataclass(frozen=True)
class AuthContext:
    """
    Identity resolved for one request.

    `user_id` is either a verified id from the session cookie or None. The
    value is produced once per request and passed to handlers and the GraphQL
    context; nothing is written onto the request object.
    """
    user_id: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def get_csrf_guard(request: Request) -> CSRFGuard:
    return request.app.state.csrf


async def get_auth_context(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
) -> AuthContext:
    """
    FastAPI dependency installed app-wide: reads the session cookie and
    verifies it.

    Never rejects the request. A missing, expired or tampered token yields an
    unauthenticated context and the verification failure is only logged.
    """
    return AuthContext(user_id=tokens.verify(request.cookies.get(SESSION_COOKIE)))


async def require_user(auth: AuthContext = Depends(get_auth_context)) -> str:
    """
    Gate for protected web handlers.

    Returns:
        str: the authenticated user id

    Raises:
        Unauthorized: no identity; the app's exception handler turns this into
            a redirect to /login
    """
    if not auth.is_authenticated:
        raise Unauthorized()
    return auth.user_id


async def csrf_protect(
    request: Request,
    guard: CSRFGuard = Depends(get_csrf_guard),
) -> CSRFState:
    """
    FastAPI dependency installed app-wide: anti-forgery check.

    Exempt paths (GraphQL, static assets, favicon) pass through untouched.
    Everything else must present a valid token on non-safe methods, and gets
    a fresh token for the templates.

    Raises:
        CSRFError: missing or mismatched token on a state-changing request
    """
    if guard.is_exempt(request.url.path):
        return CSRFState()
    secret = request.cookies.get(CSRF_COOKIE)
    if request.method not in SAFE_METHODS:
        submitted = request.headers.get(CSRF_HEADER)
        if not submitted:
            form = await request.form()
            value = form.get(CSRF_FORM_FIELD)
            submitted = value if isinstance(value, str) else None
        if not guard.validate(submitted, secret):
            raise CSRFError()
    return guard.state_for(secret)
