"""Call-graph overlap, minimization and recommendation for benchmark suites."""

__version__ = "0.1.0"