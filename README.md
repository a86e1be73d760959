# taskplanner

A small task scheduler served over HTTP. Tasks live in an SQLite file. Each
task has a date (`YYYYMMDD`), a title, an optional comment and an optional
repeat rule. When a repeating task is marked done, it moves to its next date
instead of being removed.

## Installing

```
pip install .
```

## Running the server

```
taskplanner
```

The server reads its settings from the environment:

| Variable        | Meaning                                          | Default        |
|-----------------|--------------------------------------------------|----------------|
| `TODO_DBFILE`   | Path of the SQLite database file                 | `scheduler.db` |
| `TODO_PORT`     | Port to listen on                                | `7540`         |
| `TODO_PASSWORD` | Password for sign-in; leave unset to turn it off | unset          |

The database file and its table are created on first start. Static files are
served from `./web` at `/`.

## HTTP API

| Method | Path               | What it does                                                 |
|--------|--------------------|--------------------------------------------------------------|
| GET    | `/api/nextdate`    | Next date for `now`, `date` and `repeat` query parameters    |
| POST   | `/api/signin`      | Takes `{"password": ...}`, returns `{"token": ...}`          |
| POST   | `/api/task`        | Adds a task, returns `{"id": ...}`                           |
| GET    | `/api/task?id=N`   | Returns one task                                             |
| PUT    | `/api/task`        | Updates a task                                               |
| DELETE | `/api/task?id=N`   | Deletes a task                                               |
| GET    | `/api/tasks`       | Up to 50 tasks ordered by date; `search` filters them        |
| POST   | `/api/task/done?id=N` | Marks a task done: removes it or moves it to its next date |

`search` matches the title or comment, or, when written as `DD.MM.YYYY`, the
exact date.

When `TODO_PASSWORD` is set, every `/api/task*` route needs the token from
`/api/signin` in a cookie named `token`. Tokens are valid for eight hours.

## Repeat rules

| Rule              | Meaning                                                          |
|-------------------|------------------------------------------------------------------|
| `d N`             | Every N days, 1 ≤ N ≤ 400                                        |
| `y`               | Every year                                                       |
| `w 1,3,5`         | On the given weekdays, 1 = Monday … 7 = Sunday                   |
| `m 1,15,-1`       | On the given days of the month; `-1` is the last day, `-2` the one before |
| `m 10,17 12,8,1`  | On the given days of the given months only                       |

## Using it from Python

```python
from taskplanner.nextdate import next_date, parse_date

print(next_date(parse_date("20240126"), "20240113", "d 7"))  # 20240127
```

```python
from taskplanner.db import TaskStore
from taskplanner.api import SchedulerApp, run

password = "password"
secret = "secret"

store = TaskStore("scheduler.db")
app = SchedulerApp(store, "./web", password, secret)
run(app, 7540)
```

`SchedulerApp` is a plain WSGI application and can be mounted in any WSGI
server.