[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memlab"
version = "0.1.0"
description = "Runnable simulations of operating-system memory management: paging with valid-invalid bits, slab and buddy allocators, pools, caches and a pooled logger."
requires-python = ">=3.10"
dependencies = [
    "werkzeug",
]
keywords = [
    "memory-management",
    "paging",
    "page-fault",
    "valid-invalid-bit",
    "slab-allocator",
    "buddy-system",
    "lru-cache",
    "memory-pool",
    "connection-pool",
    "education",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
memlab-paging = "memlab.paging_demo:main"
memlab-safe-buffer = "memlab.safe_buffer:main"
memlab-boundary = "memlab.boundary:main"
memlab-allocators = "memlab.allocators:main"
memlab-lru-cache = "memlab.lru_cache:main"
memlab-memory-pool = "memlab.memory_pool:main"
memlab-benchmark = "memlab.benchmark:main"
memlab-load-client = "memlab.load_client:main"
memlab-db-pool = "memlab.db_pool:main"
memlab-http-server = "memlab.http_server:main"
memlab-logger = "memlab.log_buffer:main"

[tool.hatch.build.targets.wheel]
packages = ["memlab"]

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
