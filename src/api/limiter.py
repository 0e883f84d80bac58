"""Request rate limiting."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Rate limiter - key by IP address
limiter = Limiter(key_func=get_remote_address)
