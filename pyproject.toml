[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slimrmm"
version = "0.1.0"
description = "Agent-side building blocks for remote monitoring and management: command sandboxing, path validation, safe archives, mTLS, service control and release handling."
requires-python = ">=3.10"
keywords = [
    "rmm",
    "agent",
    "monitoring",
    "systemd",
    "launchd",
    "sandbox",
    "mtls",
    "zip-slip",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: System :: Monitoring",
    "Topic :: Security",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["slimrmm"]

[tool.hatch.build.targets.sdist]
include = ["slimrmm", "tests", "README.md"]

[tool.pytest.ini_options]
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
