[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gocg"
version = "0.1.0"
description = "Call-graph analysis of benchmark profiles: structural overlap, microbenchmark suite minimization and recommendation"
requires-python = ">=3.10"
dependencies = []
keywords = ["benchmark", "call graph", "pprof", "profiling", "test suite minimization"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
gocg-minimization = "gocg.cli:minimization_main"
gocg-overlap = "gocg.cli:overlap_main"
gocg-recommendation = "gocg.cli:recommendation_main"
gocg-transform-profiles = "gocg.cli:transform_profiles_main"

[tool.hatch.build.targets.wheel]
packages = ["gocg"]

[tool.pytest.ini_options]
addopts = "-ra"
