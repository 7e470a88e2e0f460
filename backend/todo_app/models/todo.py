"""
Database model for todos.
A single task owned by exactly one user.
"""
import uuid
from tortoise import fields, models

class Todo(models.Model):
    """
    Todo database model.

    Relationships:
    - Belongs to a User (many-to-one); every read and write is filtered by owner

    Only `completed` changes after creation.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    user = fields.ForeignKeyField(
        "models.User",
        related_name="todos",
        on_delete=fields.CASCADE
    )  # Owner; cascade delete with the user
    text = fields.TextField()  # Trimmed, non-empty
    completed = fields.BooleanField(default=False)
    created_at = fields.DatetimeField(auto_now_add=True, index=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "todos"
