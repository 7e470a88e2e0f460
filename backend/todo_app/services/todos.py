"""
Task store operations. Every function takes the owner id and filters on it,
so a caller can never see or change another user's todos.
"""
import logging
import uuid

from todo_app.core.errors import AppError, NotFound, ValidationError
from todo_app.models.todo import Todo

logger = logging.getLogger(__name__)

EMPTY_TEXT = "Todo text cannot be empty"
# Compare-and-set attempts before giving up on a contended toggle
TOGGLE_ATTEMPTS = 3


def _parse_id(value: str) -> uuid.UUID:
    # Malformed ids are indistinguishable from missing ones
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound()


async def list_todos(owner_id: str, skip: int = 0, take: int | None = None) -> list[Todo]:
    """
    Owner's todos, newest first.

    Args:
        owner_id: Authenticated user id
        skip: Number of items to skip (only applied together with `take`)
        take: Page size; None returns everything

    Raises:
        ValidationError: negative skip/take
    """
    if skip < 0:
        raise ValidationError("skip", "skip must not be negative")
    if take is not None and take < 0:
        raise ValidationError("take", "take must not be negative")
    if take == 0:
        return []
    query = Todo.filter(user_id=_parse_id(owner_id)).order_by("-created_at", "-id")
    if take is not None:
        query = query.offset(skip).limit(take)
    return await query


async def create_todo(owner_id: str, text: str) -> Todo:
    """
    Raises:
        ValidationError: text is empty after trimming
    """
    text = (text or "").strip()
    if not text:
        raise ValidationError("text", EMPTY_TEXT)
    todo = await Todo.create(user_id=_parse_id(owner_id), text=text)
    logger.info("todo created id=%s owner=%s", todo.id, owner_id)
    return todo


async def toggle_todo(owner_id: str, todo_id: str) -> Todo:
    """
    Flip `completed` on one of the owner's todos.

    The write is conditional on the value just read, so two concurrent
    toggles each take effect instead of one overwriting the other.

    Raises:
        NotFound: no todo with that id belongs to the owner
    """
    owner = _parse_id(owner_id)
    tid = _parse_id(todo_id)
    for _ in range(TOGGLE_ATTEMPTS):
        todo = await Todo.get_or_none(id=tid, user_id=owner)
        if not todo:
            raise NotFound()
        flipped = not todo.completed
        updated = await Todo.filter(id=tid, user_id=owner, completed=todo.completed).update(completed=flipped)
        if updated:
            todo.completed = flipped
            return todo
    logger.warning("toggle gave up after %d contended attempts id=%s", TOGGLE_ATTEMPTS, todo_id)
    raise AppError("Failed to toggle todo")


async def delete_todo(owner_id: str, todo_id: str) -> bool:
    """
    Raises:
        NotFound: no todo with that id belongs to the owner
    """
    deleted = await Todo.filter(id=_parse_id(todo_id), user_id=_parse_id(owner_id)).delete()
    if not deleted:
        raise NotFound()
    logger.info("todo deleted id=%s owner=%s", todo_id, owner_id)
    return True
