"""
Adapters the Status Lab service depends on.

- user_directory: in-memory store for the user resource
- upstream: simulated downstream service for the 502/504 demos
"""

from .upstream import UpstreamSimulator
from .user_directory import User, UserDirectory

__all__ = [
    "UpstreamSimulator",
    "User",
    "UserDirectory",
]
