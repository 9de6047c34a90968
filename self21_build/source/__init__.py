"""Source acquisition module.

This module handles:
- Git access behind the VersionControl protocol
- Cloning and fast-forwarding the upstream checkout
- Locking the checkout against concurrent runs
"""

from self21_build.source.checkout import (
    acquire_source,
    checkout_lock,
    remove_checkout,
)
from self21_build.source.git import GitClient, VersionControl

__all__ = [
    "GitClient",
    "VersionControl",
    "acquire_source",
    "checkout_lock",
    "remove_checkout",
]
