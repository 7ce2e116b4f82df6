[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "geyserkafka"
version = "4.0.0"
description = "Configuration, subscribe-request building, deduplication and metrics for bridging a Geyser gRPC stream and Kafka"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["geyser", "grpc", "kafka", "solana", "deduplication", "prometheus", "metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Monitoring",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["geyserkafka"]

[tool.hatch.build.targets.sdist]
include = ["geyserkafka", "tests"]

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
