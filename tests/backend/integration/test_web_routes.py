import datetime as dt
import re
import uuid

import pytest

from todo_app.core.security import TokenService


pytestmark = pytest.mark.asyncio

PASSWORD = "Abcd1234!"
TODO_ID_RE = re.compile(r'data-id="([0-9a-f-]{36})"')


async def register(client, csrf, username: str, password: str = PASSWORD, confirm: str | None = None):
    token = await csrf(client, "/register")
    return await client.post(
        "/register",
        data={
            "username": username,
            "password": password,
            "confirmPassword": password if confirm is None else confirm,
            "_csrf": token,
        },
    )


async def post_form(client, csrf, path: str, data: dict | None = None):
    token = await csrf(client, "/todos")
    return await client.post(path, data={**(data or {}), "_csrf": token})


async def todo_ids(client) -> list[str]:
    resp = await client.get("/todos")
    assert resp.status_code == 200
    return TODO_ID_RE.findall(resp.text)


async def test_root_redirects_to_login(client):
    resp = await client.get("/")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


async def test_forms_render_with_csrf_field(client):
    for path in ("/login", "/register"):
        resp = await client.get(path)
        assert resp.status_code == 200
        assert 'name="_csrf"' in resp.text
    assert "csrf_secret" in client.cookies


async def test_register_then_login_sets_session_cookie(client, csrf, web_login):
    username = f"user_{uuid.uuid4().hex[:6]}"
    resp = await register(client, csrf, username)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"

    login = await web_login(client, username, PASSWORD)
    assert login.headers["location"] == "/todos"
    set_cookie = login.headers["set-cookie"].lower()
    assert "token=" in set_cookie
    assert "httponly" in set_cookie
    assert "max-age=7200" in set_cookie

    page = await client.get("/todos")
    assert page.status_code == 200
    assert username in page.text


async def test_register_validation_errors_are_itemized(client, csrf):
    resp = await register(client, csrf, "ab", password="weak", confirm="nope")
    assert resp.status_code == 400
    assert "Username must be at least 3 characters" in resp.text
    assert "Password must be at least 8 chars" in resp.text
    # The submitted username is kept in the form
    assert 'value="ab"' in resp.text


async def test_register_password_mismatch(client, csrf):
    resp = await register(client, csrf, "charlie", confirm="Abcd1234?")
    assert resp.status_code == 400
    assert "Passwords do not match" in resp.text


async def test_register_duplicate_username(client, csrf):
    assert (await register(client, csrf, "dupe_user")).status_code == 303
    resp = await register(client, csrf, "dupe_user")
    assert resp.status_code == 400
    assert "Username already taken" in resp.text


async def test_login_failures_share_one_message(client, csrf):
    await register(client, csrf, "alice")
    for username, password in (("alice", "Wrong1234!"), ("nobody", PASSWORD)):
        token = await csrf(client, "/login")
        resp = await client.post("/login", data={"username": username, "password": password, "_csrf": token})
        assert resp.status_code == 400
        assert "Invalid username or password" in resp.text
        assert "token" not in client.cookies


async def test_register_overlong_username_is_a_field_error(client, csrf):
    resp = await register(client, csrf, "a" * 80)
    assert resp.status_code == 400
    assert "Username must be at most 64 characters" in resp.text


async def test_login_overlong_username_gets_generic_message(client, csrf):
    token = await csrf(client, "/login")
    resp = await client.post("/login", data={"username": "a" * 80, "password": PASSWORD, "_csrf": token})
    assert resp.status_code == 400
    assert "Invalid username or password" in resp.text


async def test_login_blank_fields(client, csrf):
    token = await csrf(client, "/login")
    resp = await client.post("/login", data={"username": " ", "password": "", "_csrf": token})
    assert resp.status_code == 400
    assert "Username is required" in resp.text
    assert "Password cannot be blank" in resp.text


@pytest.mark.parametrize("method,path", [
    ("GET", "/todos"),
    ("POST", "/todos/add"),
    ("POST", f"/todos/{uuid.uuid4()}/toggle"),
    ("POST", f"/todos/{uuid.uuid4()}/delete"),
    ("POST", "/logout"),
])
async def test_protected_paths_redirect_without_session(client, csrf, method, path):
    if method == "GET":
        resp = await client.get(path)
    else:
        token = await csrf(client, "/login")
        resp = await client.post(path, data={"_csrf": token, "text": "x"})
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


@pytest.mark.parametrize("cookie", ["garbage", "expired", "wrong-secret"])
async def test_invalid_session_cookie_redirects(client, create_user, cookie):
    user, _ = await create_user()
    if cookie == "expired":
        value = TokenService("test-secret").issue(str(user.id), dt.timedelta(seconds=-10))
    elif cookie == "wrong-secret":
        value = TokenService("other-secret").issue(str(user.id), dt.timedelta(hours=2))
    else:
        value = cookie
    client.cookies.set("token", value)
    resp = await client.get("/todos")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


async def test_todo_crud_through_forms(client, csrf, create_user, web_login):
    user, password = await create_user()
    await web_login(client, user.username, password)

    resp = await post_form(client, csrf, "/todos/add", {"text": "  buy milk  "})
    assert resp.status_code == 303
    assert resp.headers["location"] == "/todos"

    page = await client.get("/todos")
    assert "buy milk" in page.text
    ids = TODO_ID_RE.findall(page.text)
    assert len(ids) == 1

    resp = await post_form(client, csrf, f"/todos/{ids[0]}/toggle")
    assert resp.status_code == 303
    page = await client.get("/todos")
    assert 'class="done"' in page.text

    resp = await post_form(client, csrf, f"/todos/{ids[0]}/delete")
    assert resp.status_code == 303
    assert await todo_ids(client) == []


async def test_add_empty_todo_rerenders_with_error(client, csrf, create_user, web_login):
    user, password = await create_user()
    await web_login(client, user.username, password)
    resp = await post_form(client, csrf, "/todos/add", {"text": "   "})
    assert resp.status_code == 400
    assert "Todo text cannot be empty" in resp.text
    assert await todo_ids(client) == []


async def test_other_users_todo_is_not_found(client_factory, csrf, create_user, web_login):
    alice_client, bob_client = client_factory(), client_factory()
    alice, alice_pw = await create_user()
    bob, bob_pw = await create_user()
    await web_login(alice_client, alice.username, alice_pw)
    await web_login(bob_client, bob.username, bob_pw)

    await post_form(alice_client, csrf, "/todos/add", {"text": "alice only"})
    [alice_todo] = await todo_ids(alice_client)

    assert await todo_ids(bob_client) == []
    for action in ("toggle", "delete"):
        resp = await post_form(bob_client, csrf, f"/todos/{alice_todo}/{action}")
        assert resp.status_code == 404
        assert "Todo not found" in resp.text

    page = await alice_client.get("/todos")
    assert alice_todo in page.text
    assert 'class="done"' not in page.text


async def test_logout_clears_session(client, csrf, create_user, web_login):
    user, password = await create_user()
    await web_login(client, user.username, password)
    resp = await post_form(client, csrf, "/logout")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"
    assert "token" not in client.cookies

    after = await client.get("/todos")
    assert after.status_code == 303


# ===== Anti-forgery =====
async def test_form_post_without_csrf_token_is_rejected(client):
    await client.get("/login")  # obtain the secret cookie but ignore the token
    resp = await client.post("/login", data={"username": "alice", "password": PASSWORD})
    assert resp.status_code == 403
    assert "invalid CSRF token" in resp.text


async def test_csrf_token_from_another_session_is_rejected(client_factory, csrf):
    mallory, victim = client_factory(), client_factory()
    foreign_token = await csrf(mallory, "/login")
    await victim.get("/login")
    resp = await victim.post("/register", data={
        "username": "victim", "password": PASSWORD, "confirmPassword": PASSWORD, "_csrf": foreign_token,
    })
    assert resp.status_code == 403


async def test_csrf_without_secret_cookie_is_rejected(client, csrf):
    token = await csrf(client, "/login")
    client.cookies.delete("csrf_secret")
    resp = await client.post("/login", data={"username": "alice", "password": PASSWORD, "_csrf": token})
    assert resp.status_code == 403


async def test_csrf_header_is_accepted(client, csrf, create_user, web_login):
    user, password = await create_user()
    await web_login(client, user.username, password)
    token = await csrf(client, "/todos")
    resp = await client.post("/todos/add", data={"text": "via header"}, headers={"X-CSRF-Token": token})
    assert resp.status_code == 303
    assert len(await todo_ids(client)) == 1


async def test_protected_post_with_bad_csrf_is_rejected_before_auth(client):
    resp = await client.post("/logout", data={"_csrf": "forged"})
    assert resp.status_code == 403
