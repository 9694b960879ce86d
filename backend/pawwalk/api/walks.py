from datetime import datetime
from typing import Optional

import gpxpy
import gpxpy.gpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from pawwalk.api.deps import get_current_user_id
from pawwalk.core.time_utils import ms_to_datetime
from pawwalk.db import get_db
from pawwalk.schemas.stats import StatsPeriod, StatsReport, UserStatisticsRead
from pawwalk.schemas.walk import WalkHistory, WalkSaved, WalkSessionCreate, WalkSessionRead
from pawwalk.services.stats_query import get_user_stats, get_walk_stats
from pawwalk.services.walk_sessions import get_walk_session, list_walk_sessions, save_walk_session

router = APIRouter(prefix="/walks", tags=["walks"])


@router.post("/sessions", response_model=WalkSaved)
def submit_walk_session(
    payload: WalkSessionCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    walk, stats_updated = save_walk_session(db, user_id, payload)
    return WalkSaved(id=walk.id, statistics_updated=stats_updated)


@router.get("/sessions", response_model=WalkHistory)
def list_sessions(
    limit: int = Query(20, gt=0, le=100),
    offset: int = Query(0, ge=0),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    completed_only: bool = Query(True),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Walk history, most recent first.

      GET /walks/sessions?limit=20&offset=0&start_date=2025-01-06T00:00:00Z
    """
    walks, total = list_walk_sessions(
        db, user_id,
        limit=limit, offset=offset,
        start_date=start_date, end_date=end_date,
        completed_only=completed_only,
    )
    return WalkHistory(
        walks=[WalkSessionRead.model_validate(w) for w in walks],
        total=total,
        has_more=(offset + limit) < total,
    )


@router.get("/sessions/{session_id}", response_model=WalkSessionRead)
def get_session(
    session_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_walk_session(db, user_id, session_id)


def _route_to_gpx(walk) -> str:
    """Render a stored route as a single-track GPX document."""
    gpx = gpxpy.gpx.GPX()
    track = gpxpy.gpx.GPXTrack(name=f"Walk {walk.id}")
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)
    for p in walk.route_points or []:
        segment.points.append(
            gpxpy.gpx.GPXTrackPoint(
                p["latitude"],
                p["longitude"],
                time=ms_to_datetime(p["timestamp"]),
            )
        )
    return gpx.to_xml()


@router.get("/sessions/{session_id}/gpx")
def export_session_gpx(
    session_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    walk = get_walk_session(db, user_id, session_id)
    return Response(
        content=_route_to_gpx(walk),
        media_type="application/gpx+xml",
        headers={"Content-Disposition": f'attachment; filename="walk-{walk.id}.gpx"'},
    )


@router.get("/stats", response_model=StatsReport)
def walk_stats(
    period: StatsPeriod = Query(StatsPeriod.week),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_walk_stats(db, user_id, period, start_date=start_date, end_date=end_date)


@router.get("/user-stats", response_model=UserStatisticsRead)
def user_stats(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return get_user_stats(db, user_id)
