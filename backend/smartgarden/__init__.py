"""Smart garden CRUD backend."""

__version__ = "1.0.0"
