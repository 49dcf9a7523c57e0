"""File-backed task metadata and the list of recently used tasks."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import TaskID

logger = logging.getLogger(__name__)

TASK_ID_NONE = TaskID(0)


class StoryType(str, Enum):
    FEATURE = "feature"
    BUG = "bug"
    CHORE = "chore"


class Task(BaseModel):
    id: int
    shortcut_id: Optional[int] = Field(default=None, alias="shortcutId")
    title: str = ""
    description: str = ""
    story_type: StoryType = Field(default=StoryType.FEATURE, alias="storyType")
    starred: bool = False

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class Recents(BaseModel):
    starred: list[int] = Field(default_factory=list)
    other: list[int] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    def without(self, task_id: int) -> "Recents":
        return Recents(
            starred=[item for item in self.starred if item != task_id],
            other=[item for item in self.other if item != task_id],
        )


class TaskStore:
    """Stores one JSON file per task plus ``recents.json`` and ``next-id``."""

    def __init__(self, tasks_dir: Path) -> None:
        self.tasks_dir = Path(tasks_dir)
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._recents = self._load_recents()
        self._next_id = self._load_next_id()

    @property
    def _recents_path(self) -> Path:
        return self.tasks_dir / "recents.json"

    @property
    def _next_id_path(self) -> Path:
        return self.tasks_dir / "next-id"

    def _task_path(self, task_id: int) -> Path:
        return self.tasks_dir / f"{task_id}.json"

    def _load_recents(self) -> Recents:
        if not self._recents_path.exists():
            return Recents()
        return Recents.model_validate_json(self._recents_path.read_text(encoding="utf-8"))

    def _load_next_id(self) -> int:
        if not self._next_id_path.exists():
            return 1
        return int(self._next_id_path.read_text(encoding="utf-8").strip())

    def _save_recents(self) -> None:
        self._recents_path.write_text(self._recents.model_dump_json(), encoding="utf-8")

    def next_task_id(self) -> TaskID:
        with self._lock:
            task_id = self._next_id
            self._next_id += 1
            self._next_id_path.write_text(str(self._next_id), encoding="utf-8")
        return TaskID(task_id)

    def save_task(self, task: Task) -> None:
        if task.id == TASK_ID_NONE:
            raise ValueError("Task id 0 is reserved")
        self._task_path(task.id).write_text(
            task.model_dump_json(by_alias=True), encoding="utf-8"
        )

    def load_task(self, task_id: int) -> Task:
        path = self._task_path(task_id)
        if not path.exists():
            raise KeyError(task_id)
        return Task.model_validate_json(path.read_text(encoding="utf-8"))

    def create_task(
        self,
        title: str,
        description: str = "",
        story_type: StoryType = StoryType.FEATURE,
        shortcut_id: Optional[int] = None,
        starred: bool = False,
    ) -> Task:
        task = Task(
            id=self.next_task_id(),
            shortcut_id=shortcut_id,
            title=title,
            description=description,
            story_type=story_type,
            starred=starred,
        )
        self.save_task(task)
        self.make_recent(task.id, starred)
        logger.info("Created task %d: %s", task.id, title)
        return task

    def make_recent(self, task_id: int, starred: bool) -> None:
        """Move ``task_id`` to the end of the starred or other list."""
        with self._lock:
            recents = self._recents.without(task_id)
            if starred:
                recents.starred.append(task_id)
            else:
                recents.other.append(task_id)
            self._recents = recents
            self._save_recents()

    def archive(self, task_id: int) -> None:
        with self._lock:
            self._recents = self._recents.without(task_id)
            self._save_recents()

    def get_recents(self) -> Recents:
        with self._lock:
            return self._recents.model_copy(deep=True)
