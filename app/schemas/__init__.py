"""
schemas/ — Pydantic request/response models for the parking API

Provides input validation, auto-generated OpenAPI docs, and
consistent error messages across all endpoints. Routers with one or two
small bodies keep their models inline instead.
"""
