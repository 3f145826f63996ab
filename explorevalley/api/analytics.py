"""
ExploreValley API - Client analytics events

Events are appended under the `analytics` label, which skips the operational
rules and the backup snapshot.
"""
from fastapi import APIRouter, status

from explorevalley.db.jsondb import mutate_data
from explorevalley.models.document import Database
from explorevalley.schemas.compat import AnalyticsTrackRequest
from explorevalley.services.user_profiles import record_analytics_event

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.post("/track", status_code=status.HTTP_202_ACCEPTED)
async def track(payload: AnalyticsTrackRequest):
    recorded: list[str] = []

    def mutator(db: Database) -> None:
        event = record_analytics_event(
            db, payload.type, payload.category, payload.user_id,
            payload.phone, payload.email, payload.meta,
        )
        recorded.append(event.id)

    await mutate_data(mutator, label="analytics")
    return {"success": True, "id": recorded[0]}
