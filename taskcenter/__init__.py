"""Client library for a task center service that runs scheduled HTTP callbacks."""

__version__ = "0.1.0"

__all__ = ["errors", "types", "transport", "tasks", "task"]