import json

import pytest

from work_warden.tasks import Recents, StoryType, Task, TaskStore


@pytest.fixture
def store(tmp_path):
    return TaskStore(tmp_path / "tasks")


def test_ids_start_at_one_and_survive_reload(store, tmp_path):
    assert store.next_task_id() == 1
    assert store.next_task_id() == 2

    assert TaskStore(tmp_path / "tasks").next_task_id() == 3


def test_create_and_load_task(store):
    task = store.create_task("Fix login", description="SSO", story_type=StoryType.BUG, shortcut_id=42)

    loaded = store.load_task(task.id)

    assert loaded == task
    assert loaded.story_type is StoryType.BUG
    raw = json.loads((store.tasks_dir / f"{task.id}.json").read_text(encoding="utf-8"))
    assert raw["shortcutId"] == 42
    assert raw["storyType"] == "bug"


def test_load_missing_task_raises_key_error(store):
    with pytest.raises(KeyError):
        store.load_task(99)


def test_reserved_id_is_rejected(store):
    with pytest.raises(ValueError):
        store.save_task(Task(id=0, title="nothing"))


def test_make_recent_moves_task_to_the_end(store):
    store.make_recent(1, starred=False)
    store.make_recent(2, starred=False)
    store.make_recent(1, starred=False)
    store.make_recent(3, starred=True)
    store.make_recent(2, starred=True)

    assert store.get_recents() == Recents(starred=[3, 2], other=[1])


def test_archive_removes_from_recents(store, tmp_path):
    store.create_task("a")
    store.create_task("b", starred=True)

    store.archive(1)

    assert store.get_recents() == Recents(starred=[2], other=[])
    assert TaskStore(tmp_path / "tasks").get_recents() == Recents(starred=[2], other=[])
    assert store.load_task(1).title == "a"
