import sqlite3
from unittest import mock

import pytest

from taskplanner.cli import main


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.delenv("TODO_PASSWORD", raising=False)
    monkeypatch.setenv("TODO_PORT", "0")
    return tmp_path


@mock.patch("socketserver.BaseServer.serve_forever", return_value=None)
def test_main_creates_database(serve, env, monkeypatch):
    db_file = env / "tasks.db"
    monkeypatch.setenv("TODO_DBFILE", str(db_file))
    assert main([]) == 0
    assert serve.call_count == 1
    with sqlite3.connect(db_file) as conn:
        names = {row[0] for row in conn.execute("SELECT name FROM sqlite_master")}
    assert {"scheduler", "idx_date"} <= names


@mock.patch("socketserver.BaseServer.serve_forever", return_value=None)
def test_main_bad_database(serve, env, monkeypatch):
    monkeypatch.setenv("TODO_DBFILE", str(env))
    assert main([]) == 1
    assert serve.call_count == 0


@mock.patch("socketserver.BaseServer.serve_forever", return_value=None)
def test_main_bad_port(serve, env, monkeypatch):
    monkeypatch.setenv("TODO_DBFILE", str(env / "tasks.db"))
    monkeypatch.setenv("TODO_PORT", "abc")
    assert main([]) == 1
    assert serve.call_count == 0