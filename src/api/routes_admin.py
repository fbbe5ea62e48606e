"""Admin endpoints — manual blocklist management."""

import hmac
import logging

from fastapi import APIRouter, Depends, Header, HTTPException

from src.api.deps import get_blocklist, get_config_dep
from src.api.models import BlockRequest
from src.config import Config
from src.guard.blocklist import Blocklist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def require_admin(
    x_admin_token: str | None = Header(default=None),
    config: Config = Depends(get_config_dep),
) -> None:
    """Reject the request unless X-Admin-Token matches ADMIN_TOKEN."""
    if not config.admin_token:
        raise HTTPException(status_code=403, detail="Admin endpoints are disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, config.admin_token):
        raise HTTPException(status_code=403, detail="Invalid admin token")


@router.post("/block", dependencies=[Depends(require_admin)])
async def block(
    req: BlockRequest,
    blocklist: Blocklist = Depends(get_blocklist),
    config: Config = Depends(get_config_dep),
):
    duration = config.block_duration_seconds if req.duration_seconds is None else req.duration_seconds
    await blocklist.block(req.identifier, duration)
    logger.info("Admin blocked %s for %ds", req.identifier, duration)
    return {"identifier": req.identifier, "duration_seconds": duration}


@router.delete("/block/{identifier}", dependencies=[Depends(require_admin)])
async def unblock(identifier: str, blocklist: Blocklist = Depends(get_blocklist)):
    await blocklist.unblock(identifier)
    return {"identifier": identifier, "blocked": False}


@router.get("/block/{identifier}", dependencies=[Depends(require_admin)])
async def block_status(identifier: str, blocklist: Blocklist = Depends(get_blocklist)):
    return {"identifier": identifier, "blocked": await blocklist.is_blocked(identifier)}
