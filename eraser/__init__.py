"""Find and remove unused or non-compliant container images on a node."""

__version__ = "1.1.0"