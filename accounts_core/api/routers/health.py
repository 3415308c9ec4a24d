"""
Accounts core router module for health checks
"""

import time

from fastapi import APIRouter, Depends

from ..base import startup
from ..dependency import MinimalRequestData
from ..etag import ETag
from ... import schemas


router = APIRouter(tags=["Health"])


@router.get("/health", response_model=schemas.Health)
async def get_health(local: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Return the health status of the API, which must never be cached
    """

    ETag(local.request, local.response, local.engine).uncached()
    local.session.connection()
    return schemas.Health(status="ok", uptime=round(time.time() - startup, 3))
