import argparse
import math
import random
from datetime import datetime, time, timedelta

from pawwalk.core.config import settings
from pawwalk.core.constants import KCAL_PER_KM, STRIDE_M
from pawwalk.core.time_utils import local_today, localize, to_local_datetime, to_utc_naive
from pawwalk.db import Base, SessionLocal, engine
from pawwalk.models.user_statistics import UserStatistics
from pawwalk.models.walk_schedule import WalkSchedule  # noqa: F401  (FK target must be registered)
from pawwalk.models.walk_session import WalkSession
from pawwalk.services.stats_aggregator import WalkMetrics, apply_walk


def clear_user(db, user_id: str) -> None:
    """Delete the user's walks and totals so we can reseed cleanly."""
    db.query(WalkSession).filter(WalkSession.user_id == user_id).delete()
    db.query(UserStatistics).filter(UserStatistics.user_id == user_id).delete()
    db.commit()


def _route(start: datetime, distance_km: float, minutes: int) -> list[dict]:
    """A straight-ish track north from a park entrance, one point per ~20 m."""
    lat, lon = 40.7812, -73.9665
    n = max(2, int(distance_km * 1000 / 20))
    step_ms = int(minutes * 60_000 / n)
    t0 = int(start.timestamp() * 1000)
    return [
        {
            "latitude": lat + i * (distance_km / 111.0) / n,
            "longitude": lon + random.uniform(-0.00005, 0.00005),
            "timestamp": t0 + i * step_ms,
        }
        for i in range(n + 1)
    ]


def seed_demo_walks(db, user_id: str, weeks: int = 8) -> None:
    """Two walks most days (morning + evening), skipping a random day now and then."""
    today = local_today(settings.timezone)
    start_day = today - timedelta(weeks=weeks)

    walks = []
    d = start_day
    while d <= today:
        if random.random() < 0.15:
            d += timedelta(days=1)
            continue
        for hour, lo, hi in [(7, 1.0, 2.5), (18, 1.5, 4.0)]:
            local_start = localize(datetime.combine(d, time(hour, random.randint(0, 45))), settings.timezone)
            start = to_utc_naive(local_start)
            distance_km = round(random.uniform(lo, hi), 2)
            minutes = int(distance_km / random.uniform(3.5, 5.0) * 60)
            meters = distance_km * 1000
            route = _route(local_start, distance_km, minutes)
            walks.append(
                WalkSession(
                    user_id=user_id,
                    dog_id="demo-dog",
                    start_time=start,
                    end_time=start + timedelta(minutes=minutes),
                    duration_minutes=minutes,
                    distance_km=distance_km,
                    steps=math.floor(meters / STRIDE_M),
                    calories_burned=math.floor(distance_km * KCAL_PER_KM),
                    route_points=route,
                    start_location={"latitude": route[0]["latitude"], "longitude": route[0]["longitude"]},
                    end_location={"latitude": route[-1]["latitude"], "longitude": route[-1]["longitude"]},
                    notes="Seeded demo walk",
                    is_completed=True,
                )
            )
        d += timedelta(days=1)

    db.add_all(walks)
    db.commit()

    # replay in order so totals and streaks match what live submissions would produce
    for w in sorted(walks, key=lambda w: w.start_time):
        apply_walk(
            db,
            user_id,
            WalkMetrics(w.distance_km, w.duration_minutes, w.steps, w.calories_burned),
            today=to_local_datetime(w.start_time, settings.timezone).date(),
        )

    print(f"Seeded {len(walks)} demo walks for {user_id}")


def main():
    parser = argparse.ArgumentParser(description="Seed demo walks for one user")
    parser.add_argument("--user", default="demo-user")
    parser.add_argument("--weeks", type=int, default=8)
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        clear_user(db, args.user)
        seed_demo_walks(db, args.user, weeks=args.weeks)
    finally:
        db.close()


if __name__ == "__main__":
    main()
