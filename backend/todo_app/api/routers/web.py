# todo_app/api/routers/web.py
"""
Server-rendered web views: register, login, logout and the todo list.

Every handler receives the anti-forgery state and (where protected) the
authenticated user id as injected dependencies.
"""
import datetime as dt
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as PydanticValidationError

from todo_app.api.deps import SESSION_COOKIE, csrf_protect, get_settings, get_token_service, require_user
from todo_app.config import Settings
from todo_app.core.csrf import CSRFState
from todo_app.core.errors import (
    Conflict,
    InvalidCredentials,
    NotFound,
    Unauthorized,
    ValidationError,
    field_errors,
)
from todo_app.core.security import TokenService
from todo_app.schemas.auth import LoginForm, RegisterForm
from todo_app.services import accounts, todos as todo_store

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

router = APIRouter(tags=["web"])


def render(request: Request, name: str, csrf: CSRFState, context: dict | None = None,
           status_code: int = 200) -> HTMLResponse:
    ctx = {"csrf_token": csrf.token, "errors": [], "data": {}}
    ctx.update(context or {})
    response = templates.TemplateResponse(request, name, ctx, status_code=status_code)
    return csrf.attach(response)


def _redirect(url: str) -> RedirectResponse:
    # 303 so a POST is followed by a GET
    return RedirectResponse(url=url, status_code=303)


async def _todos_page(request: Request, csrf: CSRFState, user_id: str,
                      errors: list | None = None, status_code: int = 200) -> HTMLResponse:
    user = await accounts.get_user(user_id)
    if user is None:
        # Token outlived its account
        raise Unauthorized()
    items = await todo_store.list_todos(user_id)
    return render(request, "todos.html", csrf,
                  {"todos": items, "user": user, "errors": errors or []},
                  status_code=status_code)


@router.get("/")
async def root():
    return _redirect("/login")


# ===== Register =====
@router.get("/register", response_class=HTMLResponse)
async def register_form(request: Request, csrf: CSRFState = Depends(csrf_protect)):
    return render(request, "register.html", csrf)


@router.post("/register", response_class=HTMLResponse)
async def register_submit(
    request: Request,
    csrf: CSRFState = Depends(csrf_protect),
    username: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form("", alias="confirmPassword"),
):
    """
    Validate the registration form and create the account.

    Re-renders with itemized messages (400) on rule violations or a taken
    username; redirects to /login on success.
    """
    data = {"username": username}
    try:
        form = RegisterForm.model_validate(
            {"username": username, "password": password, "confirmPassword": confirm_password}
        )
    except PydanticValidationError as exc:
        return render(request, "register.html", csrf,
                      {"errors": field_errors(exc), "data": data}, status_code=400)
    try:
        await accounts.register(form.username, form.password)
    except Conflict as exc:
        return render(request, "register.html", csrf,
                      {"errors": [exc], "data": data}, status_code=400)
    return _redirect("/login")


# ===== Login / Logout =====
@router.get("/login", response_class=HTMLResponse)
async def login_form(request: Request, csrf: CSRFState = Depends(csrf_protect)):
    return render(request, "login.html", csrf)


@router.post("/login", response_class=HTMLResponse)
async def login_submit(
    request: Request,
    csrf: CSRFState = Depends(csrf_protect),
    username: str = Form(""),
    password: str = Form(""),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Check credentials and start a browser session.

    On success the signed token is set as an httpOnly cookie that lives for
    the web session TTL, then the client is sent to /todos.
    """
    data = {"username": username}
    try:
        form = LoginForm(username=username, password=password)
    except PydanticValidationError as exc:
        return render(request, "login.html", csrf,
                      {"errors": field_errors(exc), "data": data}, status_code=400)
    try:
        user = await accounts.authenticate(form.username, form.password)
    except InvalidCredentials as exc:
        return render(request, "login.html", csrf,
                      {"errors": [ValidationError("password", exc.message)], "data": data},
                      status_code=400)

    ttl = dt.timedelta(minutes=settings.web_token_ttl_minutes)
    response = _redirect("/todos")
    response.set_cookie(
        SESSION_COOKIE,
        tokens.issue(str(user.id), ttl),
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
        max_age=int(ttl.total_seconds()),
    )
    logger.info("web login user id=%s", user.id)
    return response


@router.post("/logout")
async def logout(
    csrf: CSRFState = Depends(csrf_protect),
    user_id: str = Depends(require_user),
):
    # Only the client copy is dropped; the token itself stays valid until it expires
    response = _redirect("/login")
    response.delete_cookie(SESSION_COOKIE, path="/")
    logger.info("web logout user id=%s", user_id)
    return response


# ===== Todos (protected) =====
@router.get("/todos", response_class=HTMLResponse)
async def list_page(
    request: Request,
    csrf: CSRFState = Depends(csrf_protect),
    user_id: str = Depends(require_user),
):
    return await _todos_page(request, csrf, user_id)


@router.post("/todos/add", response_class=HTMLResponse)
async def add_todo(
    request: Request,
    csrf: CSRFState = Depends(csrf_protect),
    user_id: str = Depends(require_user),
    text: str = Form(""),
):
    try:
        await todo_store.create_todo(user_id, text)
    except ValidationError as exc:
        return await _todos_page(request, csrf, user_id, errors=[exc], status_code=400)
    return _redirect("/todos")


@router.post("/todos/{todo_id}/toggle", response_class=HTMLResponse)
async def toggle_todo(
    todo_id: str,
    request: Request,
    csrf: CSRFState = Depends(csrf_protect),
    user_id: str = Depends(require_user),
):
    try:
        await todo_store.toggle_todo(user_id, todo_id)
    except NotFound as exc:
        return await _todos_page(request, csrf, user_id, errors=[exc], status_code=404)
    return _redirect("/todos")


@router.post("/todos/{todo_id}/delete", response_class=HTMLResponse)
async def delete_todo(
    todo_id: str,
    request: Request,
    csrf: CSRFState = Depends(csrf_protect),
    user_id: str = Depends(require_user),
):
    try:
        await todo_store.delete_todo(user_id, todo_id)
    except NotFound as exc:
        return await _todos_page(request, csrf, user_id, errors=[exc], status_code=404)
    return _redirect("/todos")
