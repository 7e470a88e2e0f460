"""Todo list web app with a GraphQL API."""

__version__ = "0.1.0"
