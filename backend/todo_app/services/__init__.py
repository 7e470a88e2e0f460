"""
Services Module

Store operations used by both the web views and the GraphQL API:
- accounts: Credential store (register, authenticate, lookup)
- todos: Owner-scoped task store (list, create, toggle, delete)
"""
from . import accounts, todos

__all__ = ["accounts", "todos"]
