"""
NoteSync Backend — Health Check Route
======================================

What:  Liveness/readiness probe for Docker and load balancers.
How:   Probes the database (SELECT 1) and asks the generation strategy's
       provider client for its state; no tokens are spent.

Status levels:
    healthy    database connected and generation usable
    degraded   database connected, generation unavailable (circuit open,
               provider unreachable or credentials missing); HTTP 200
    unhealthy  database unreachable; HTTP 503
"""

import logging
import time

from fastapi import APIRouter, Response, status

from notesync import __version__
from notesync.dependencies import ContainerDep
from notesync.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(container: ContainerDep, response: Response) -> HealthResponse:
    overall = "healthy"

    database = container.database
    db_ok = database.is_open and await database.ping()
    if not db_ok:
        overall = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    strategy = container.strategy
    if not strategy.is_external:
        generation = "basic"
    else:
        generation = await strategy.client.health_check()
        if generation != "available" and overall == "healthy":
            overall = "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database="connected" if db_ok else "disconnected",
        generation=generation,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
