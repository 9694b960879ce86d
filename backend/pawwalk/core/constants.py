"""Shared walk-tracking constants.

Centralizes the heuristics used by live session tracking and statistics so
we can document and adjust them in one place.
"""

# Mean Earth radius in meters (haversine)
EARTH_RADIUS_M = 6371000.0

# GPS noise window for a single segment, inclusive (meters).
# Below the floor is jitter, above the ceiling is an implausible jump.
MIN_SEGMENT_M = 2.0
MAX_SEGMENT_M = 50.0

# Average adult stride length (meters per step)
STRIDE_M = 0.75

# Rough energy cost of walking for an average adult
KCAL_PER_KM = 50

# Average speed is only computed after GPS has had time to settle
SPEED_SETTLING_SECONDS = 30

# Realistic walking speed band (km/h)
MIN_WALK_SPEED_KMH = 1.0
MAX_WALK_SPEED_KMH = 8.0

# Submission clamps so no zero-value walk is ever stored
MIN_SUBMIT_DURATION_MINUTES = 1
MIN_SUBMIT_DISTANCE_KM = 0.01

# Group walk duration bounds (minutes)
GROUP_WALK_MIN_MINUTES = 15
GROUP_WALK_MAX_MINUTES = 300

DEFAULT_MAX_PARTICIPANTS = 2
