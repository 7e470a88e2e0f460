# todo_app/api/routers/graphql_api.py
"""
GraphQL API mounted at /graphql.

A thin resolver set over the same account and todo stores as the web views.
Identity comes from the session cookie through the shared AuthContext; every
todo operation requires it.
"""
import datetime as dt
import logging

import strawberry
from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError
from strawberry.extensions import MaskErrors
from strawberry.fastapi import BaseContext, GraphQLRouter
from strawberry.types import Info

from todo_app.api.deps import AuthContext, get_auth_context, get_settings, get_token_service
from todo_app.config import Settings
from todo_app.core.errors import AppError, Unauthorized, ValidationError, field_errors
from todo_app.core.security import TokenService
from todo_app.schemas.auth import Credentials
from todo_app.services import accounts, todos as todo_store

logger = logging.getLogger(__name__)

MASKED_ERROR_MESSAGE = "Unexpected error."


class GraphQLContext(BaseContext):
    def __init__(self, auth: AuthContext, settings: Settings, tokens: TokenService):
        super().__init__()
        self.auth = auth
        self.settings = settings
        self.tokens = tokens


async def get_graphql_context(
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> GraphQLContext:
    return GraphQLContext(auth=auth, settings=settings, tokens=tokens)


def _require_user(info: Info) -> str:
    user_id = info.context.auth.user_id
    if not user_id:
        raise Unauthorized()
    return user_id


def iso_utc(value: dt.datetime) -> str:
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


# ===== Types =====
@strawberry.type
class Todo:
    id: strawberry.ID
    text: str
    completed: bool
    created_at: str

    @classmethod
    def from_model(cls, todo) -> "Todo":
        return cls(
            id=strawberry.ID(str(todo.id)),
            text=todo.text,
            completed=todo.completed,
            created_at=iso_utc(todo.created_at),
        )


@strawberry.type
class User:
    id: strawberry.ID
    username: str


# ===== Resolvers =====
@strawberry.type
class Query:
    @strawberry.field
    async def todos(self, info: Info, skip: int = 0, take: int = 10) -> list[Todo]:
        """The caller's todos, newest first."""
        user_id = _require_user(info)
        max_take = info.context.settings.max_page_size
        if take > max_take:
            raise ValidationError("take", f"take must not exceed {max_take}")
        rows = await todo_store.list_todos(user_id, skip=skip, take=take)
        return [Todo.from_model(row) for row in rows]


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def register(self, username: str, password: str) -> User:
        try:
            creds = Credentials(username=username, password=password)
        except PydanticValidationError as exc:
            raise field_errors(exc)[0]
        user = await accounts.register(creds.username, creds.password)
        return User(id=strawberry.ID(str(user.id)), username=user.username)

    @strawberry.mutation
    async def login(self, info: Info, username: str, password: str) -> str:
        """Returns a bearer token for the `token` cookie, valid for the API token TTL."""
        user = await accounts.authenticate(username, password)
        ttl = dt.timedelta(minutes=info.context.settings.api_token_ttl_minutes)
        return info.context.tokens.issue(str(user.id), ttl)

    @strawberry.mutation
    async def add_todo(self, info: Info, text: str) -> Todo:
        todo = await todo_store.create_todo(_require_user(info), text)
        return Todo.from_model(todo)

    @strawberry.mutation
    async def toggle_todo(self, info: Info, id: strawberry.ID) -> Todo:
        todo = await todo_store.toggle_todo(_require_user(info), id)
        return Todo.from_model(todo)

    @strawberry.mutation
    async def delete_todo(self, info: Info, id: strawberry.ID) -> bool:
        return await todo_store.delete_todo(_require_user(info), id)


# ===== Schema / router =====
def _is_unexpected(error) -> bool:
    return not isinstance(getattr(error, "original_error", None), AppError)


class TodoSchema(strawberry.Schema):
    def process_errors(self, errors, execution_context=None) -> None:
        for error in errors:
            original = getattr(error, "original_error", None)
            if isinstance(original, AppError):
                logger.info("GraphQL %s at %s: %s", original.code, error.path, original.message)
            else:
                logger.error("GraphQL error at %s: %s", error.path, error.message, exc_info=original)


def build_schema(settings: Settings) -> strawberry.Schema:
    """
    Build the schema. In production unexpected resolver errors are masked;
    AppError messages always reach the caller.
    """
    extensions = []
    if settings.is_production:
        extensions.append(MaskErrors(should_mask_error=_is_unexpected, error_message=MASKED_ERROR_MESSAGE))
    return TodoSchema(query=Query, mutation=Mutation, extensions=extensions)


def build_graphql_router(settings: Settings) -> GraphQLRouter:
    return GraphQLRouter(build_schema(settings), context_getter=get_graphql_context)
