"""Resource janitor - mark, notify and sweep idle cloud and cluster resources."""

__version__ = "0.1.0"
