"""Routers package — HTTP endpoint definitions.

Files:
  resource.py  — resource_router() factory + request/response translation
  v1/          — Versioned API routes (/api/v1/*)
"""
