"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports.

Models exported:
- User: Account and credentials
- Todo: Task owned by a User
"""
from .user import User
from .todo import Todo
