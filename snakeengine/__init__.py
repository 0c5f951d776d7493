"""Game model, lockable in-memory and Redis game stores, call timing and an HTTP client for a snake game engine."""

__version__ = "0.1.0"

__all__ = ["client", "metrics", "models", "redis_store", "store"]