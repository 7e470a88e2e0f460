"""
Credential store operations: registering accounts and checking passwords.
"""
import logging
import uuid

from tortoise.exceptions import IntegrityError

from todo_app.core.errors import Conflict, InvalidCredentials
from todo_app.core.security import hash_password, verify_password
from todo_app.models.user import USERNAME_MAX_LENGTH, User

logger = logging.getLogger(__name__)

USERNAME_TAKEN = "Username already taken"


async def register(username: str, password: str) -> User:
    """
    Create a new account.

    The username pre-check gives the friendly message; the unique index on
    `users.username` closes the race between two concurrent registrations.

    Raises:
        Conflict: username already registered
    """
    if await User.filter(username=username).exists():
        raise Conflict("username", USERNAME_TAKEN)
    try:
        user = await User.create(username=username, password_hash=hash_password(password))
    except IntegrityError:
        logger.info("register lost a race on username=%s", username)
        raise Conflict("username", USERNAME_TAKEN)
    logger.info("registered user id=%s username=%s", user.id, user.username)
    return user


async def authenticate(username: str, password: str) -> User:
    """
    Return the user whose password matches.

    Raises:
        InvalidCredentials: unknown username or wrong password (same message for both)
    """
    username = username.strip()
    if len(username) > USERNAME_MAX_LENGTH:
        # Could never have been registered; the column rejects it outright
        raise InvalidCredentials()
    user = await User.get_or_none(username=username)
    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    return user


async def get_user(user_id: str) -> User | None:
    try:
        uid = uuid.UUID(str(user_id))
    except ValueError:
        return None
    return await User.get_or_none(id=uid)
