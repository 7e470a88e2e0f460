"""Routers: server-rendered web views and the GraphQL API."""
