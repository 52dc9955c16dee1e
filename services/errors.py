"""Error taxonomy for the task store.

HTTP mapping lives in main.py: NotFoundError -> 404, PersistError -> 500.
"""


class TaskStoreError(Exception):
    """Base class for task store failures."""


class NotFoundError(TaskStoreError):
    """Unknown task, parent or subtask id."""

    def __init__(self, message: str, task_id: str = ""):
        super().__init__(message)
        self.task_id = task_id


class PersistError(TaskStoreError):
    """The store file (or its directory) could not be read or written."""


class DirectoryCreateError(PersistError):
    """The directory holding the store file could not be created."""
