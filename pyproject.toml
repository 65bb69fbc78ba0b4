[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rtping"
version = "0.2.0"
description = "Latency-adjusted Roughtime querier: timestamp a hash against Roughtime beacons"
requires-python = ">=3.10"
dependencies = []
keywords = ["roughtime", "time", "timestamp", "merkle", "udp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Time Synchronization",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rtping = "rtping.probe:main"
rtping-single = "rtping.single:main"
rtping-compare = "rtping.compare:main"

[tool.hatch.build.targets.wheel]
packages = ["rtping"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
