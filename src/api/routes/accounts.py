"""Account connection API route."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body

from src.core.credentials import parse_connection

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/connect")
def connect_account(payload: Dict[str, Any] = Body(...)):
    """Normalize a Mesh Link success payload into a linked account.

    The result is what a client stores in its account registry.
    """
    account = parse_connection(payload)
    logger.info(f"Connected {account.broker_type} account {account.account_id}")
    return account.to_dict()
