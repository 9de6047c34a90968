"""self21-build - container image harness for the self21 media server.

This package clones the upstream self21 source, builds a container image
from it, and optionally publishes the result to a registry.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
