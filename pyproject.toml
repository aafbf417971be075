[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "phantomband"
version = "0.1.0"
description = "Encrypted client/relay circuit protocol over TCP with ChaCha20-Poly1305 sealing"
requires-python = ">=3.10"
keywords = ["relay", "circuit", "proxy", "chacha20-poly1305", "asyncio"]
classifiers = [
    "Development Status :: 2 - Pre-Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
phantomband-relay = "phantomband.relay:main"
phantomband-client = "phantomband.client:main"

[tool.hatch.build.targets.wheel]
packages = ["phantomband"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
strict = true
packages = ["phantomband"]
