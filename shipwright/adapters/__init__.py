from .memory import InMemoryTaskStore

__all__ = ["InMemoryTaskStore"]
