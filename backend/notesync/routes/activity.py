"""
NoteSync Backend — Activity Route
==================================

What:  GET /api/activity returns the caller's recent activity records
       (most recent first), as collected by the ActivityTracker observer.
"""

from typing import List

from fastapi import APIRouter, Query

from notesync.dependencies import ActivityTrackerDep, OwnerId
from notesync.schemas.common import ActivityRecordResponse

router = APIRouter(prefix="/api/activity", tags=["Activity"])


@router.get("", response_model=List[ActivityRecordResponse], summary="Recent activity for the caller")
async def list_activity(
    tracker: ActivityTrackerDep,
    owner_id: OwnerId,
    limit: int = Query(default=50, ge=1, le=500),
) -> List[ActivityRecordResponse]:
    return [ActivityRecordResponse.model_validate(r) for r in tracker.for_owner(owner_id, limit=limit)]
