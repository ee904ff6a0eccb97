"""
Module: status.py
Description: Status endpoint for running accounts.

Reports each account's inbound delivery state: whether its poll loop is
running, whether the webhook was registered, and the last error.
"""

from typing import List

from fastapi import APIRouter, HTTPException, Request
from fastapi import status as status_codes

from clawtell.models.response import AccountStatus
from clawtell.utils.logger import get_logger

router = APIRouter(prefix="/status", tags=["status"])
logger = get_logger(__name__)


def _runtimes(request: Request):
    return getattr(request.app.state, "runtimes", {})


@router.get("", response_model=List[AccountStatus])
async def list_status(request: Request) -> List[AccountStatus]:
    """List status for every configured account."""
    return [runtime.context.status for runtime in _runtimes(request).values()]


@router.get("/{account_id}", response_model=AccountStatus)
async def get_status(account_id: str, request: Request) -> AccountStatus:
    """
    Get one account's status.

    Raises:
        HTTPException: 404 if the account is not configured
    """
    runtime = _runtimes(request).get(account_id)
    if runtime is None:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Account not found: {account_id}"
        )
    return runtime.context.status
