import sqlite3

import pytest

from taskplanner.db import Task, TaskNotFound, TaskStore


@pytest.fixture
def store(tmp_path):
    with TaskStore(tmp_path / "scheduler.db") as opened:
        yield opened


def _count(path):
    with sqlite3.connect(path) as conn:
        return conn.execute("SELECT count(id) FROM scheduler").fetchone()[0]


def test_insert_get_delete_round_trip(tmp_path):
    path = tmp_path / "scheduler.db"
    with TaskStore(path) as store:
        before = _count(path)
        task_id = store.add_task(Task(date="20240126", title="Todo", comment="Комментарий"))
        task = store.get_task(task_id)
        assert task.id == str(task_id)
        assert task.title == "Todo"
        assert task.comment == "Комментарий"
        store.delete_task(task_id)
        assert _count(path) == before


def test_get_missing_task(store):
    with pytest.raises(TaskNotFound):
        store.get_task("12345")


def test_delete_missing_task(store):
    with pytest.raises(TaskNotFound):
        store.delete_task("wjhgese")


def test_update_task(store):
    task_id = store.add_task(Task(date="20240126", title="A"))
    store.update_task(
        Task(id=str(task_id), date="20240201", title="B", comment="c", repeat="d 7")
    )
    assert store.get_task(task_id) == Task(
        id=str(task_id), date="20240201", title="B", comment="c", repeat="d 7"
    )


def test_update_missing_task(store):
    with pytest.raises(TaskNotFound):
        store.update_task(Task(id="7645346343", date="20240201", title="B"))


def test_update_date(store):
    task_id = store.add_task(Task(date="20240126", title="A", repeat="d 3"))
    store.update_date("20240129", str(task_id))
    assert store.get_task(task_id).date == "20240129"


def test_tasks_empty(store):
    assert store.tasks() == []


def test_tasks_ordered_by_date_and_limited(store):
    for day in ["20240305", "20240101", "20240210"]:
        store.add_task(Task(date=day, title=f"t{day}"))
    assert [t.date for t in store.tasks()] == ["20240101", "20240210", "20240305"]
    assert [t.date for t in store.tasks(limit=2)] == ["20240101", "20240210"]


def test_tasks_search_by_text_and_date(store):
    store.add_task(Task(date="20240127", title="Поплавать", comment="Бассейн с тренером"))
    store.add_task(Task(date="20240127", title="Позвонить в УК", comment=""))
    store.add_task(Task(date="20240128", title="Фильм", comment="с попкорном"))
    assert [t.title for t in store.tasks(search="УК")] == ["Позвонить в УК"]
    assert [t.title for t in store.tasks(search="попкорн")] == ["Фильм"]
    assert len(store.tasks(date_search="20240127")) == 2


def test_task_to_dict(store):
    task_id = store.add_task(Task(date="20240126", title="A", comment="b", repeat="y"))
    assert store.get_task(task_id).to_dict() == {
        "id": str(task_id),
        "date": "20240126",
        "title": "A",
        "comment": "b",
        "repeat": "y",
    }


def test_data_persists_between_opens(tmp_path):
    path = tmp_path / "scheduler.db"
    with TaskStore(path) as first:
        task_id = first.add_task(Task(date="20240126", title="Keep"))
    with TaskStore(path) as second:
        assert second.get_task(task_id).title == "Keep"