"""
Rate limiting configuration using slowapi.

Two tiers:
  • auth    – 10/min  (register / login, slows down credential stuffing)
  • default – 100/min (everything else, applied globally by middleware)

The limiter keys on client IP.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

# Named rate strings for use in @limiter.limit() decorators
AUTH = "10/minute"       # register / login
DEFAULT = "100/minute"   # general API
