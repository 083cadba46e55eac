[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "corerad"
version = "1.0.0"
description = "IPv6 Neighbor Discovery router advertisement tooling: consistency checks, monitoring metrics and link state watching"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "ipv6",
    "ndp",
    "neighbor-discovery",
    "router-advertisement",
    "netlink",
    "metrics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: System :: Networking :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["corerad"]

[tool.hatch.build.targets.sdist]
include = ["corerad", "tests", "README.md", "pyproject.toml"]

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
