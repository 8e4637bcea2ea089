[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pduchat"
version = "0.1.0"
description = "Length-prefixed PDU chat over TCP: a handle-based chat server and client, and an echo server and client"
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "tcp", "pdu", "sockets", "poll", "echo"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
pduchat-server = "pduchat.chatserver:main"
pduchat-client = "pduchat.chatclient:main"
pduchat-echo-server = "pduchat.echo:server_main"
pduchat-echo-client = "pduchat.echo:client_main"

[tool.hatch.build.targets.wheel]
packages = ["pduchat"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
