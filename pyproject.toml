[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "towerlink"
version = "0.1.0"
description = "Hand a validator's tower file from the primary node to a standby node over a TLS stream, with slot-lag watching and a Workers KV client."
requires-python = ">=3.10"
keywords = ["validator", "failover", "tower", "tls", "rpc", "key-value"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "httpx",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[project.scripts]
towerlink = "towerlink.app:main"

[tool.hatch.build.targets.wheel]
packages = ["towerlink"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
