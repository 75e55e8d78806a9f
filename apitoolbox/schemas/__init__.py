"""Pydantic schemas package.

Folder intent:
  common.py   — CamelModel base, FileOut, HealthResponse (all schemas inherit CamelModel)
  article.py  — REFERENCE pattern (copy when adding new resources)
"""
