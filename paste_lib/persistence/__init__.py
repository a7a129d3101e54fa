"""Small pieces of installation-wide state kept in the paste store."""

from .purge_limiter import PurgeLimiter
from .server_salt import ServerSalt

__all__ = ["PurgeLimiter", "ServerSalt"]
