"""
File-backed task store.

The whole collection lives in memory and is written to a single JSON file:
  data/tasks.json  ->  {"tasks": [Task, ...]}

Every successful mutation rewrites the full file while holding the write
lock. Subtasks are embedded in their parent's "subtasks" list, one level deep.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from pydantic import ValidationError

from models.task_models import Task, TaskFile
from services.cycles import calculate_due_at
from services.errors import DirectoryCreateError, NotFoundError, PersistError
from utils.rwlock import ReadWriteLock
from utils.sse import UpdateNotifier

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStore:
    """Authoritative holder of the task collection."""

    def __init__(
        self,
        db_path: Union[str, Path] = "data/tasks.json",
        notifier: Optional[UpdateNotifier] = None,
        auto_complete_parent: bool = True,
        sort_tasks: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db_path = Path(db_path)
        self.notifier = notifier
        self.auto_complete_parent = auto_complete_parent
        self.sort_tasks = sort_tasks
        self._clock = clock
        self._tasks: List[Task] = []
        self._lock = ReadWriteLock()

    # ---------- Persistence ----------

    def load(self) -> None:
        """Load the store file, tolerating missing, empty or malformed content."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreateError(f"failed to create directory {self.db_path.parent}: {e}") from e

        with self._lock.write():
            if not self.db_path.exists():
                self._tasks = []
                self._save()
                logger.info(f"Created new task store at {self.db_path}")
                return

            try:
                raw = self.db_path.read_bytes()
            except OSError as e:
                raise PersistError(f"failed to read {self.db_path}: {e}") from e

            if not raw.strip():
                self._tasks = []
                logger.info(f"Task store {self.db_path} is empty, starting fresh")
                return

            try:
                self._tasks = TaskFile.model_validate_json(raw.decode("utf-8")).tasks
            except (UnicodeDecodeError, ValidationError) as e:
                self._tasks = []
                logger.warning(f"Error parsing tasks file {self.db_path}: {e}. Starting with empty task list.")
                return

            logger.info(f"Loaded {len(self._tasks)} tasks from {self.db_path}")

    def _save(self) -> None:
        """Rewrite the whole file. Caller must hold the write lock."""
        document = {"tasks": [t.to_dict() for t in self._tasks]}
        try:
            with open(self.db_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
        except OSError as e:
            raise PersistError(f"failed to write {self.db_path}: {e}") from e
        logger.info(f"Saved {len(self._tasks)} tasks to {self.db_path}")

    def _notify(self) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier.notify()
        except Exception as e:
            logger.warning(f"Update notification failed: {e}")

    # ---------- Lookup helpers (caller holds a lock) ----------

    def _new_task(self, text: str, cycle: str) -> Task:
        created_at = self._clock()
        return Task(
            id=str(uuid.uuid4()),
            text=text,
            created_at=created_at,
            cycle=cycle,
            due_at=calculate_due_at(created_at, cycle),
        )

    def _find_top(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def _find_any(self, task_id: str) -> Tuple[Optional[Task], Optional[Task]]:
        """Return (task, parent). parent is None for top-level tasks."""
        for task in self._tasks:
            if task.id == task_id:
                return task, None
            for subtask in task.subtasks:
                if subtask.id == task_id:
                    return subtask, task
        return None, None

    def _set_complete(self, task: Task, complete: bool) -> None:
        task.completed_at = self._clock() if complete else None

    def _recompute_parent(self, parent: Task) -> None:
        if not self.auto_complete_parent:
            return
        self._set_complete(parent, all(s.is_complete for s in parent.subtasks))

    # ---------- Mutations ----------

    def add_task(self, text: str, cycle: str = "") -> Task:
        """Append a new top-level task and return a copy of it."""
        with self._lock.write():
            task = self._new_task(text, cycle)
            self._tasks.append(task)
            self._save()
            result = task.model_copy(deep=True)
        logger.info(f"Added new task: {text}, ID: {task.id}, Cycle: {cycle}")
        self._notify()
        return result

    def add_subtask(self, parent_id: str, text: str, cycle: str = "") -> Task:
        """Append a subtask to a top-level task."""
        with self._lock.write():
            parent = self._find_top(parent_id)
            if parent is None:
                raise NotFoundError(f"parent task not found: {parent_id}", parent_id)
            subtask = self._new_task(text, cycle)
            parent.subtasks.append(subtask)
            self._save()
            result = subtask.model_copy(deep=True)
        logger.info(f"Added new subtask: {text} to parent {parent_id}")
        self._notify()
        return result

    def update_status(self, task_id: str, complete: bool) -> Task:
        """Mark a task or subtask (found anywhere) complete or incomplete."""
        with self._lock.write():
            task, parent = self._find_any(task_id)
            if task is None:
                raise NotFoundError(f"task not found: {task_id}", task_id)
            self._set_complete(task, complete)
            if parent is not None:
                self._recompute_parent(parent)
            self._save()
            result = task.model_copy(deep=True)
        logger.info(f"Set task {task_id} complete={complete}")
        self._notify()
        return result

    def update_subtask_status(self, parent_id: str, subtask_id: str, complete: bool) -> Task:
        """Status update addressed by parent and subtask id."""
        with self._lock.write():
            parent = self._find_top(parent_id)
            if parent is None:
                raise NotFoundError(f"parent task not found: {parent_id}", parent_id)
            subtask = next((s for s in parent.subtasks if s.id == subtask_id), None)
            if subtask is None:
                raise NotFoundError(f"subtask not found: {subtask_id}", subtask_id)
            self._set_complete(subtask, complete)
            self._recompute_parent(parent)
            self._save()
            result = subtask.model_copy(deep=True)
        logger.info(f"Set subtask {subtask_id} of {parent_id} complete={complete}")
        self._notify()
        return result

    def delete_task(self, task_id: str) -> None:
        """Remove a top-level task with its subtasks, or a subtask with that id."""
        with self._lock.write():
            for i, task in enumerate(self._tasks):
                if task.id == task_id:
                    del self._tasks[i]
                    break
                index = next((j for j, s in enumerate(task.subtasks) if s.id == task_id), None)
                if index is not None:
                    del task.subtasks[index]
                    break
            else:
                raise NotFoundError(f"task not found: {task_id}", task_id)
            self._save()
        logger.info(f"Deleted task {task_id}")
        self._notify()

    def delete_subtask(self, parent_id: str, subtask_id: str) -> None:
        with self._lock.write():
            parent = self._find_top(parent_id)
            if parent is None:
                raise NotFoundError(f"parent task not found: {parent_id}", parent_id)
            index = next((j for j, s in enumerate(parent.subtasks) if s.id == subtask_id), None)
            if index is None:
                raise NotFoundError(f"subtask not found: {subtask_id}", subtask_id)
            del parent.subtasks[index]
            self._save()
        logger.info(f"Deleted subtask {subtask_id} of {parent_id}")
        self._notify()

    # ---------- Reads ----------

    def get_task(self, task_id: str) -> Task:
        with self._lock.read():
            task, _ = self._find_any(task_id)
            if task is None:
                raise NotFoundError(f"task not found: {task_id}", task_id)
            return task.model_copy(deep=True)

    def list_tasks(self) -> List[Task]:
        """Snapshot of the collection.

        With sort_tasks on: incomplete first, then oldest first. The sort is
        stable so equal creation times keep their stored order.
        """
        with self._lock.read():
            tasks = [t.model_copy(deep=True) for t in self._tasks]
        if self.sort_tasks:
            tasks.sort(key=lambda t: (t.is_complete, t.created_at))
        return tasks

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._tasks)
