"""todomirror: checkbox-markdown mirror for a personal task list."""

__version__ = "0.1.0"
