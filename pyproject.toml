[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "k0sctl"
version = "0.1.0"
description = "Building blocks and a command line for bootstrapping and managing k0s Kubernetes clusters"
requires-python = ">=3.10"
keywords = ["k0s", "kubernetes", "cluster", "kubeconfig", "devops"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
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
    "Topic :: System :: Clustering",
]
dependencies = [
    "pyyaml>=6.0",
    "platformdirs>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
k0sctl = "k0sctl.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["k0sctl"]

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
