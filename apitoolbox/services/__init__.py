"""Services package — infrastructure the controllers use through protocols.

Files:
  files.py  — LocalFileStore: uploaded bytes on disk + SystemFile rows

Rule: services never import FastAPI.
"""
