"""Environment-driven configuration."""

import os
import socket

from branchkv.constants import AUTHOR_ENV


def default_author() -> str:
    """Return the commit author, ``$BRANCHKV_AUTHOR`` or ``user@hostname``."""
    author = os.getenv(AUTHOR_ENV)
    if author:
        return author
    username = os.getenv("USER") or os.getenv("USERNAME") or "unknown"
    return f"{username}@{socket.gethostname()}"
