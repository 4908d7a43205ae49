[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kindkit"
version = "0.20.0"
description = "Toolkit for local Kubernetes-in-container clusters: command execution, error aggregation, node helpers and image loading."
requires-python = ">=3.11"
dependencies = []
keywords = [
    "kubernetes",
    "containers",
    "docker",
    "containerd",
    "cluster",
    "images",
    "subprocess",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kindkit-version = "kindkit.version:main"

[tool.hatch.build.targets.wheel]
packages = ["kindkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
