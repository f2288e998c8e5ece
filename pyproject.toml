[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "walletapi"
version = "0.1.0"
description = "HTTP wallet service with deposits, withdrawals, transfers and transaction history backed by a SQL database"
requires-python = ">=3.10"
keywords = ["wallet", "ledger", "payments", "accounting", "rest", "flask", "sqlalchemy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Office/Business :: Financial :: Accounting",
]
dependencies = [
    "flask",
    "sqlalchemy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
walletapi-server = "walletapi.server:main"

[tool.hatch.build.targets.wheel]
packages = ["walletapi"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
