[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fishermans"
version = "0.1.0"
description = "Service for registering fishing clients, locations and fishing applications over an HTTP API backed by a SQL database"
requires-python = ">=3.10"
keywords = ["fishing", "applications", "registry", "http", "api", "service"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Database :: Front-Ends",
]
dependencies = [
    "sqlalchemy>=2.0",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
fishermans = "fishermans.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fishermans"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
