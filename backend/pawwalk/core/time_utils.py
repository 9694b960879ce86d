from datetime import date, datetime, time, timedelta, timezone


def hhmm_to_time(hhmm: str):
    """Parse time strings into datetime.time.

    Accepts common formats:
      - 'HH:MM' (24h)
      - 'HH:MM:SS' (24h)
      - 'H:MM AM/PM' (12h), case-insensitive
      - 'H AM/PM'

    Returns None for empty strings.
    """
    if hhmm is None:
        return None
    s = hhmm.strip()
    if s == "":
        return None

    candidates = [
        "%H:%M",
        "%H:%M:%S",
        "%I:%M %p",
        "%I %p",
    ]
    for fmt in candidates:
        try:
            return datetime.strptime(s, fmt).time()
        except ValueError:
            continue
    raise ValueError("Scheduled time must be in formats like 'HH:MM' or '10:00 AM'")


def time_to_hhmm(t) -> str | None:
    """Format datetime.time -> 'HH:MM'. Returns None if t is None."""
    if t is None:
        return None
    return f"{t.hour:02d}:{t.minute:02d}"


def to_local_datetime(dt, tz_name: str | None = None):
    """Convert a datetime from source tz (assume UTC if naive) to local or given tz.

    - If `tz_name` is 'local' or None: use system local timezone.
    - If `tz_name` is IANA tz name (e.g., 'America/New_York'): use that.
    - If `dt` has no tzinfo, assume UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if tz_name and tz_name != "local":
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            return dt.astimezone(ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    return dt.astimezone()


def localize(dt: datetime, tz_name: str | None = None) -> datetime:
    """Attach the local or given tz to a naive wall-clock datetime."""
    if dt.tzinfo is not None:
        return dt
    if tz_name and tz_name != "local":
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
        try:
            return dt.replace(tzinfo=ZoneInfo(tz_name))
        except ZoneInfoNotFoundError:
            return dt.astimezone()
    # naive astimezone() reads dt as system local time
    return dt.astimezone()


def to_utc_naive(dt: datetime) -> datetime:
    """Normalize to naive UTC, the storage convention for session timestamps."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_now(tz_name: str | None = None) -> datetime:
    return to_local_datetime(datetime.now(timezone.utc), tz_name)


def local_today(tz_name: str | None = None) -> date:
    return local_now(tz_name).date()


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Epoch milliseconds -> aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)


def week_start_of(d: date) -> date:
    # Weeks start on Sunday: weekday() is Monday=0 .. Sunday=6
    return d - timedelta(days=(d.weekday() + 1) % 7)


def period_window(period: str, now: datetime) -> tuple[datetime, datetime]:
    """Return (start, end) for a named stats period ending at `now`.

    `now` should already be in the display timezone; the start keeps its tzinfo.
    """
    today = now.date()
    if period == "day":
        start_day = today
    elif period == "week":
        start_day = week_start_of(today)
    elif period == "month":
        start_day = today.replace(day=1)
    elif period == "year":
        start_day = date(today.year, 1, 1)
    else:
        raise ValueError(f"Unknown period: {period}")
    start = datetime.combine(start_day, time.min, tzinfo=now.tzinfo)
    return start, now
