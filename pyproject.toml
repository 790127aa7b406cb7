[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "opascore"
version = "0.1.0"
description = "Posture risk scoring for Kubernetes controls and helpers for Rego policy dependencies"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "security", "posture", "rego", "opa", "scoring"]
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
    "Topic :: Security",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["opascore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
