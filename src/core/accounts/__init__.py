"""Linked accounts.

The registry lives in ``src.core.accounts.registry``; it depends on the
credential helpers, which in turn depend on the models here.
"""

from .models import LinkedAccount, is_wallet_type
from .naming import display_name

__all__ = [
    "LinkedAccount",
    "is_wallet_type",
    "display_name",
]
