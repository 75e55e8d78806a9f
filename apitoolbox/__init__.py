"""API Toolbox — generic CRUD resource controllers for FastAPI services."""

__version__ = "1.0.0"
