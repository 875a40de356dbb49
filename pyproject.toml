[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "contentwatch"
version = "0.1.0"
description = "Small HTTP services for uploading, moderating, storing and reviewing user content"
requires-python = ">=3.10"
keywords = ["moderation", "content", "upload", "redis-streams", "api-gateway", "flask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "flask>=2.3",
    "redis>=5.0",
    "requests>=2.31",
    "sqlalchemy>=2.0",
    "pyjwt>=2.8",
    "python-dotenv>=1.0",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[project.scripts]
contentwatch-gateway = "contentwatch.gateway:main"
contentwatch-upload = "contentwatch.upload:main"
contentwatch-analysis = "contentwatch.consumer:main"
contentwatch-storage = "contentwatch.storage:main"
contentwatch-review = "contentwatch.review:main"

[tool.hatch.build.targets.wheel]
packages = ["contentwatch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
