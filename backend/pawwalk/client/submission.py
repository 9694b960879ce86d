"""Sends finished walks from the device to the backend.

Each submission is applied to the local ledger before the request goes out,
so the user's totals move immediately. The outcome then decides what happens
to that entry:

- accepted: the entry is confirmed with the server id
- rejected as invalid: the entry is rolled back and `ValidationError` raised
- auth/server/network trouble: the entry stays unsynced and `SyncDeferred`
  is raised; `retry_pending()` tries those again on request
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

import httpx

from pawwalk.client.ledger import LocalLedger
from pawwalk.core.config import settings
from pawwalk.core.constants import MIN_SUBMIT_DISTANCE_KM, MIN_SUBMIT_DURATION_MINUTES
from pawwalk.core.errors import (
    ServerError,
    SyncDeferred,
    Unauthorized,
    ValidationError,
    WalkAppError,
)
from pawwalk.tracking.models import WalkSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    walk_id: int
    statistics_updated: bool
    pending_id: str


def _isoformat(dt) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def clamped(session: WalkSession) -> WalkSession:
    """Copy of `session` raised to the smallest duration and distance the server accepts."""
    return replace(
        session,
        duration_minutes=max(session.duration_minutes, MIN_SUBMIT_DURATION_MINUTES),
        distance_km=max(session.distance_km, MIN_SUBMIT_DISTANCE_KM),
    )


def to_payload(session: WalkSession) -> dict:
    """Request body for `POST /walks/sessions`, with the minimums applied."""
    session = clamped(session)
    return {
        "dog_id": session.dog_id,
        "scheduled_walk_id": session.scheduled_walk_id,
        "start_time": _isoformat(session.start_time),
        "end_time": _isoformat(session.end_time),
        "duration_minutes": session.duration_minutes,
        "distance_km": session.distance_km,
        "steps": session.steps,
        "calories_burned": session.calories_burned,
        "route_points": [p.as_dict() for p in session.route_points],
        "start_location": session.start_location.as_dict() if session.start_location else None,
        "end_location": session.end_location.as_dict() if session.end_location else None,
        "notes": session.notes,
        "is_completed": session.is_completed,
    }


def _reason(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text or f"HTTP {r.status_code}"
    if isinstance(body, dict):
        if "reason" in body:
            return str(body["reason"])
        if "detail" in body:
            return str(body["detail"])
    return str(body)


def error_for_response(r: httpx.Response) -> WalkAppError:
    if r.status_code == 401:
        return Unauthorized(_reason(r))
    if r.status_code in (400, 422):
        return ValidationError(_reason(r))
    return ServerError(f"HTTP {r.status_code}: {_reason(r)}")


class WalkSubmissionClient:
    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        ledger: Optional[LocalLedger] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.ledger = ledger if ledger is not None else LocalLedger()
        self._client = httpx.Client(
            base_url=base_url or settings.api_base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=settings.submission_timeout_seconds if timeout is None else timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _post(self, session: WalkSession) -> dict:
        try:
            r = self._client.post("/walks/sessions", json=to_payload(session))
        except httpx.TimeoutException as e:
            raise ServerError(f"Timed out talking to the server: {e}") from e
        except httpx.HTTPError as e:
            raise ServerError(f"Could not reach the server: {e}") from e
        if r.status_code != 200:
            raise error_for_response(r)
        try:
            body = r.json()
        except ValueError as e:
            raise ServerError(f"Unexpected response from the server: {r.text[:200]!r}") from e
        if not isinstance(body, dict) or "id" not in body:
            raise ServerError(f"Unexpected response from the server: {r.text[:200]!r}")
        return body

    def _send(self, pending_id: str, session: WalkSession) -> SubmissionResult:
        try:
            body = self._post(session)
        except ValidationError:
            self.ledger.rollback(pending_id)
            raise
        except (Unauthorized, ServerError) as e:
            self.ledger.mark_unsynced(pending_id)
            logger.warning("Walk %s kept locally: %s", pending_id, e.reason)
            raise SyncDeferred(pending_id, e) from e

        self.ledger.confirm(pending_id, body["id"])
        logger.info("Walk %s synced as %s", pending_id, body["id"])
        return SubmissionResult(
            walk_id=body["id"],
            statistics_updated=body.get("statistics_updated", True),
            pending_id=pending_id,
        )

    def submit(self, session: WalkSession) -> SubmissionResult:
        # the ledger holds exactly what the server will store
        session = clamped(session)
        pending_id = self.ledger.apply_tentative(session)
        return self._send(pending_id, session)

    def retry_pending(self) -> tuple[list[SubmissionResult], list[SyncDeferred]]:
        """Re-send every unsynced walk once. Rejected walks are dropped from the ledger."""
        synced, deferred = [], []
        for entry in self.ledger.unsynced():
            try:
                synced.append(self._send(entry.pending_id, entry.session))
            except SyncDeferred as e:
                deferred.append(e)
            except ValidationError as e:
                logger.warning("Dropping local walk %s: %s", entry.pending_id, e.reason)
        return synced, deferred
