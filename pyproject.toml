[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rvos"
version = "0.1.0"
description = "Console, printf/scanf, paging, trap and system call model of a small RISC-V teaching operating system, with its user programs and shell"
requires-python = ">=3.10"
dependencies = []
keywords = ["operating-system", "risc-v", "shell", "syscall", "teaching", "printf", "scanf", "elf", "sv39"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rvos-shell = "rvos.shell:main"

[tool.hatch.build.targets.wheel]
packages = ["rvos"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
