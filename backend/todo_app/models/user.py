"""
Database model for users.
Represents a registered account: a unique username and a one-way password hash.
"""
import uuid
from tortoise import fields, models

USERNAME_MAX_LENGTH = 64

class User(models.Model):
    """
    User database model.

    Relationships:
    - Has many Todos (one-to-many, via related_name="todos")

    Security:
    - Password is stored as a hash (never store plain text passwords)
    - Username uniqueness is enforced by the store (unique index), not only by the application
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)  # Primary key: store-assigned identifier
    username = fields.CharField(
        max_length=USERNAME_MAX_LENGTH,
        unique=True,
        index=True
    )  # Login name (unique, indexed for fast lookups)
    password_hash = fields.CharField(max_length=255)  # Argon2 hash
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        """Tortoise ORM metadata configuration."""
        table = "users"
