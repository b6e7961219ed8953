"""Exceptions raised by the task timer."""


class TaskTimerError(Exception):
    """Base class for task timer errors."""


class TaskConfigError(TaskTimerError, ValueError):
    """A task was given invalid options (e.g. no callback)."""


class TaskExistsError(TaskTimerError, KeyError):
    """A task with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"A task with name '{name}' already exists.")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class TaskNotFoundError(TaskTimerError, KeyError):
    """No task is registered under the given name."""

    def __init__(self, name: str | None):
        super().__init__(f"No tasks exist with name '{name}'.")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class ConfigError(TaskTimerError):
    """A timer definition file could not be loaded."""
