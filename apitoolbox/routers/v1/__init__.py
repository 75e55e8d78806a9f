"""v1 router package — all /api/v1/* endpoints live here.

Files:
  articles.py  — REFERENCE resource router (copy when adding resources)
  auth.py      — /auth/check and /auth/csrf-token

Rule: Routers only handle HTTP (request parsing, response shaping).
      All resource logic lives in app controllers (apitoolbox/controllers/).
"""
