[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "taskplanner"
version = "0.1.0"
description = "A small task scheduler web service with repeat rules, SQLite storage and token sign-in"
requires-python = ">=3.10"
keywords = ["scheduler", "todo", "tasks", "repeat rules", "wsgi", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Office/Business :: Scheduling",
]
dependencies = [
    "pyjwt",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
taskplanner = "taskplanner.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["taskplanner"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
