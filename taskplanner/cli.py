"""Command that starts the scheduler server."""

from __future__ import annotations

import argparse
import logging
import os
import sqlite3

from .api import SchedulerApp, run
from .db import TaskStore

DEFAULT_PORT = "7540"
DEFAULT_DB_FILE = "scheduler.db"
WEB_DIR = "./web"

log = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Start the server configured from TODO_* environment variables."""
    parser = argparse.ArgumentParser(
        prog="taskplanner",
        description="Task scheduler server. Configured by TODO_DBFILE, TODO_PORT, "
        "TODO_PASSWORD and TODO_SECRET.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")

    db_file = os.environ.get("TODO_DBFILE") or DEFAULT_DB_FILE
    try:
        store = TaskStore(db_file)
    except sqlite3.Error as exc:
        log.error("cannot initialise database: %s", exc)
        return 1

    port = os.environ.get("TODO_PORT") or DEFAULT_PORT
    app = SchedulerApp(
        store,
        web_dir=WEB_DIR,
        password=os.environ.get("TODO_PASSWORD", ""),
        secret=os.environ.get("TODO_SECRET") or None,
    )
    with store:
        try:
            run(app, port)
        except (OSError, ValueError) as exc:
            log.error("server error: %s", exc)
            return 1
        except KeyboardInterrupt:
            pass
    return 0