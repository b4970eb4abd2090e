"""Task models, the task management client and batch, concurrent, watching and query operations."""

__all__ = ["models", "client", "operations"]