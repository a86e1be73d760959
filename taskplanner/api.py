"""HTTP interface of the scheduler: a WSGI application and a server runner."""

from __future__ import annotations

import html
import json
import logging
import mimetypes
import posixpath
import re
import secrets
import socketserver
import sqlite3
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from http import HTTPStatus
from http.cookies import CookieError, SimpleCookie
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIServer, make_server

from .auth import AuthError, generate_token, verify_token
from .db import Task, TaskNotFound, TaskStore
from .nextdate import RuleError, format_date, next_date, parse_date

log = logging.getLogger(__name__)

TASKS_LIMIT = 50

_SEARCH_DATE_RE = re.compile(r"([0-9]{2})\.([0-9]{2})\.([0-9]{4})")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_TASK_FIELDS = ("id", "date", "title", "comment", "repeat")


def _day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def after_now(now: date | datetime, date: date | datetime) -> bool:
    """True when date falls on the same day as now or later."""
    return _day(date) >= _day(now)


def check_date(task: Task, now: date | datetime | None = None) -> Task:
    """Fill in and correct the task's date so it does not lie in the past."""
    if now is None:
        now = datetime.now(timezone.utc)
    today = format_date(_day(now))

    if not task.date:
        task.date = today
        log.info("no date given, using today: %s", task.date)

    try:
        start = parse_date(task.date)
    except ValueError as exc:
        raise RuleError(f"invalid date format: {exc}") from None

    if after_now(now, start):
        return task

    if not task.repeat:
        task.date = today
        return task

    try:
        following = next_date(now, task.date, task.repeat)
    except RuleError as exc:
        raise RuleError(f"invalid repeat rule: {exc}") from None
    following_day = parse_date(following)

    if task.repeat == "d 1":
        task.date = today
    elif task.repeat == "y":
        if not after_now(now, following_day):
            try:
                bumped = following_day.replace(year=following_day.year + 1)
            except ValueError:
                bumped = date(following_day.year + 1, 3, 1)
            task.date = format_date(bumped)
    else:
        task.date = following
    return task


@dataclass
class _Request:
    method: str
    path: str
    query: dict[str, list[str]]
    form: dict[str, list[str]]
    body: bytes
    cookies: dict[str, str]

    @classmethod
    def from_environ(cls, environ: dict[str, Any]) -> _Request:
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        body = environ["wsgi.input"].read(length) if length > 0 else b""
        query = parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)
        form: dict[str, list[str]] = {}
        content_type = environ.get("CONTENT_TYPE", "").split(";")[0].strip().lower()
        if content_type == "application/x-www-form-urlencoded" and environ["REQUEST_METHOD"] in (
            "POST",
            "PUT",
            "PATCH",
        ):
            form = parse_qs(body.decode("utf-8", "replace"), keep_blank_values=True)
        cookies: dict[str, str] = {}
        raw_cookie = environ.get("HTTP_COOKIE")
        if raw_cookie:
            jar = SimpleCookie()
            try:
                jar.load(raw_cookie)
            except CookieError:
                pass
            cookies = {name: morsel.value for name, morsel in jar.items()}
        return cls(
            method=environ.get("REQUEST_METHOD", "GET").upper(),
            path=environ.get("PATH_INFO", "/") or "/",
            query=query,
            form=form,
            body=body,
            cookies=cookies,
        )

    def query_value(self, name: str) -> str:
        values = self.query.get(name)
        return values[0] if values else ""

    def form_value(self, name: str) -> str:
        for source in (self.form, self.query):
            values = source.get(name)
            if values:
                return values[0]
        return ""


@dataclass
class _Response:
    status: int
    body: bytes = b""
    headers: list[tuple[str, str]] = field(default_factory=list)


def _json(data: Any, status: int = 200) -> _Response:
    log.debug("response: %r", data)
    payload = (json.dumps(data, ensure_ascii=False) + "\n").encode("utf-8")
    return _Response(status, payload, [("Content-Type", "application/json; charset=UTF-8")])


def _error(status: int, message: str) -> _Response:
    return _json({"error": message}, status)


def _text_error(status: int, message: str) -> _Response:
    return _Response(
        status,
        (message + "\n").encode("utf-8"),
        [("Content-Type", "text/plain; charset=utf-8"), ("X-Content-Type-Options", "nosniff")],
    )


def _decode_fields(body: bytes, fields: Iterable[str], loose: Iterable[str] = ()) -> dict[str, Any]:
    """Decode a JSON object whose listed fields must be strings or null."""
    if not body.strip():
        raise ValueError("empty request body")
    data = json.loads(body.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("request body is not a JSON object")
    loose = set(loose)
    result: dict[str, Any] = {}
    for name in fields:
        value = data.get(name)
        if name in loose:
            result[name] = value
        elif value is None:
            result[name] = ""
        elif isinstance(value, str):
            result[name] = value
        else:
            raise ValueError(f"field {name!r} must be a string")
    return result


Handler = Callable[[_Request], _Response]


class SchedulerApp:
    """WSGI application serving the task API and the static web front end."""

    def __init__(
        self,
        store: TaskStore,
        web_dir: str | Path = "./web",
        password: str = "",
        secret: str | bytes | None = None,
    ) -> None:
        self.store = store
        self.web_dir = Path(web_dir)
        self.password = password
        self.secret = secret if secret is not None else secrets.token_bytes(32)
        self._routes: dict[str, Handler] = {
            "/api/nextdate": self._next_date,
            "/api/signin": self._sign_in,
            "/api/task": self._authorised(self._task),
            "/api/tasks": self._authorised(self._tasks),
            "/api/task/done": self._authorised(self._done),
            "/api/task/delete": self._authorised(self._delete),
        }

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> list[bytes]:
        request = _Request.from_environ(environ)
        handler = self._routes.get(request.path, self._static)
        response = handler(request)
        status = HTTPStatus(response.status)
        headers = list(response.headers)
        headers.append(("Content-Length", str(len(response.body))))
        start_response(f"{status.value} {status.phrase}", headers)
        return [response.body]

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _authorised(self, handler: Handler) -> Handler:
        def wrapper(request: _Request) -> _Response:
            if not self.password:
                return handler(request)
            token = request.cookies.get("token")
            if token is None:
                return _text_error(401, "Authentication required")
            try:
                verify_token(token, self.password, self.secret)
            except AuthError as exc:
                return _text_error(401, str(exc))
            return handler(request)

        return wrapper

    def _sign_in(self, request: _Request) -> _Response:
        try:
            data = _decode_fields(request.body, ("password",))
        except ValueError:
            return _error(400, "Bad request")
        if not self.password:
            return _error(400, "Authentication is disabled")
        if data["password"] != self.password:
            return _error(401, "Wrong password")
        return _json({"token": generate_token(self.password, self.secret)})

    def _next_date(self, request: _Request) -> _Response:
        now_text = request.form_value("now")
        date_text = request.form_value("date")
        repeat = request.form_value("repeat")
        log.info("nextdate: now=%s date=%s repeat=%s", now_text, date_text, repeat)
        try:
            now = parse_date(now_text)
        except ValueError:
            return _text_error(400, "cannot parse now")
        try:
            start = parse_date(date_text)
        except ValueError:
            return _text_error(400, "cannot parse date")
        try:
            result = next_date(now, format_date(start), repeat)
        except RuleError as exc:
            return _text_error(500, f"cannot compute next date: {exc}")
        return _Response(200, result.encode("utf-8"), [("Content-Type", "text/plain; charset=utf-8")])

    def _task(self, request: _Request) -> _Response:
        handlers = {
            "POST": self._add,
            "GET": self._get,
            "PUT": self._update,
            "DELETE": self._delete,
        }
        handler = handlers.get(request.method)
        if handler is None:
            return _text_error(405, "Method not allowed")
        return handler(request)

    def _add(self, request: _Request) -> _Response:
        try:
            data = _decode_fields(request.body, _TASK_FIELDS)
        except ValueError as exc:
            return _error(400, f"cannot decode JSON: {exc}")
        task = Task(**data)
        if not task.title:
            return _error(400, "field 'title' is required")
        try:
            check_date(task, self._now())
        except RuleError as exc:
            return _error(400, str(exc))
        try:
            task_id = self.store.add_task(task)
        except sqlite3.Error as exc:
            return _error(500, f"cannot add task: {exc}")
        return _json({"id": task_id})

    def _get(self, request: _Request) -> _Response:
        task_id = request.query_value("id")
        if not task_id:
            return _error(400, "No id given")
        try:
            task = self.store.get_task(task_id)
        except (TaskNotFound, sqlite3.Error):
            return _error(404, "Task not found")
        return _json(task.to_dict())

    def _update(self, request: _Request) -> _Response:
        try:
            data = _decode_fields(request.body, _TASK_FIELDS, loose=("id",))
        except ValueError:
            # A body that is not valid JSON is answered with the default status.
            return _json({"error": "Invalid request body"})

        raw_id = data["id"]
        if isinstance(raw_id, str):
            id_text = raw_id
        elif isinstance(raw_id, (int, float)) and not isinstance(raw_id, bool):
            id_text = f"{float(raw_id):.0f}"
        else:
            return _error(400, "Invalid ID type")

        if not _INT_RE.fullmatch(id_text) or int(id_text) <= 0 or int(id_text) >= 2**63:
            return _error(400, "Invalid ID")
        task_id = int(id_text)

        if not data["date"] or not data["title"]:
            return _error(400, "Missing required fields")
        try:
            day = parse_date(data["date"])
        except ValueError:
            return _error(400, "Invalid date format")
        now = self._now()
        if day < _day(now):
            return _error(400, "Date cannot be in the past")
        if data["repeat"]:
            try:
                next_date(now, data["date"], data["repeat"])
            except RuleError:
                return _error(400, "Invalid repeat rule")

        task = Task(
            id=str(task_id),
            date=data["date"],
            title=data["title"],
            comment=data["comment"],
            repeat=data["repeat"],
        )
        try:
            self.store.update_task(task)
        except TaskNotFound:
            pass  # a missing row is not reported
        except sqlite3.Error as exc:
            return _error(500, f"Failed to update task: {exc}")
        return _json({"status": "success", "id": id_text})

    def _delete(self, request: _Request) -> _Response:
        task_id = request.query_value("id")
        if not task_id:
            return _error(400, "Missing task ID")
        try:
            self.store.delete_task(task_id)
        except (TaskNotFound, sqlite3.Error):
            return _error(404, "Task not found")
        return _json({})

    def _done(self, request: _Request) -> _Response:
        task_id = request.form_value("id")
        if not task_id:
            return _error(400, "missing id")
        try:
            task = self.store.get_task(task_id)
        except (TaskNotFound, sqlite3.Error):
            return _error(404, "task not found")
        if not task.repeat:
            try:
                self.store.delete_task(task_id)
            except (TaskNotFound, sqlite3.Error):
                return _error(500, "delete failed")
            return _json({})
        try:
            start = parse_date(task.date)
        except ValueError:
            return _error(500, "invalid task date")
        try:
            following = next_date(start, task.date, task.repeat)
        except RuleError as exc:
            return _error(400, str(exc))
        try:
            self.store.update_date(following, task_id)
        except sqlite3.Error:
            return _error(500, "update failed")
        return _json({})

    def _tasks(self, request: _Request) -> _Response:
        search = request.query_value("search")
        date_search = ""
        match = _SEARCH_DATE_RE.fullmatch(search)
        if match:
            day_text, month_text, year_text = match.groups()
            try:
                day = date(int(year_text), int(month_text), int(day_text))
            except ValueError:
                pass
            else:
                date_search = format_date(day)
                search = ""
        try:
            tasks = self.store.tasks(TASKS_LIMIT, search, date_search)
        except sqlite3.Error as exc:
            return _error(500, f"cannot fetch tasks: {exc}")
        return _json({"tasks": [task.to_dict() for task in tasks]})

    def _static(self, request: _Request) -> _Response:
        relative = posixpath.normpath("/" + request.path.lstrip("/")).lstrip("/")
        root = self.web_dir.resolve()
        target = (root / relative).resolve() if relative else root
        if target != root and root not in target.parents:
            return _text_error(404, "404 page not found")
        if target.is_dir():
            index = target / "index.html"
            if index.is_file():
                target = index
            else:
                entries = sorted(
                    entry.name + ("/" if entry.is_dir() else "") for entry in target.iterdir()
                )
                links = "".join(
                    f'<a href="{html.escape(name)}">{html.escape(name)}</a>\n' for name in entries
                )
                body = f"<pre>\n{links}</pre>\n".encode("utf-8")
                return _Response(200, body, [("Content-Type", "text/html; charset=utf-8")])
        if not target.is_file():
            return _text_error(404, "404 page not found")
        content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        if content_type.startswith("text/"):
            content_type += "; charset=utf-8"
        return _Response(200, target.read_bytes(), [("Content-Type", content_type)])


class _ThreadingServer(socketserver.ThreadingMixIn, WSGIServer):
    daemon_threads = True


def run(app: Callable[..., Any], port: str | int) -> None:
    """Serve the application on all interfaces until interrupted."""
    with make_server("", int(port), app, server_class=_ThreadingServer) as server:
        log.info("server started on http://localhost:%s/", server.server_port)
        server.serve_forever()