"""
SM-2 algorithm constants.

This module contains the static parameters of the SM-2 variant used by
studycore. No runtime configuration or path defaults - pure constants only.
"""
from typing import Tuple

# Ease factor assigned to a card that has never been reviewed.
DEFAULT_EASE_FACTOR: float = 2.5

# Floor for the ease factor; no transition may produce a lower value.
MINIMUM_EASE_FACTOR: float = 1.3

# Intervals (in days) for the first and second successful repetitions.
FIRST_INTERVAL_DAYS: int = 1
SECOND_INTERVAL_DAYS: int = 6

# Interval assigned after a lapse.
LAPSE_INTERVAL_DAYS: int = 1

# Number of decimal places kept on the ease factor.
EASE_PRECISION: int = 2

# Closed rating range accepted by the scheduler and the lowest passing grade.
MIN_RATING: int = 0
MAX_RATING: int = 3
PASSING_RATING: int = 2

# Closed range accepted by the 0-5 UI scale.
UI_RATING_RANGE: Tuple[int, int] = (0, 5)

# Repetition count thresholds for the study statistics buckets.
LEARNING_MIN_REPETITIONS: int = 1
LEARNING_MAX_REPETITIONS: int = 3
MASTERED_MIN_REPETITIONS: int = 4

# Default size of a study queue.
DEFAULT_QUEUE_LIMIT: int = 20

# Upper bound on any scheduled interval (about a century).
MAXIMUM_INTERVAL_DAYS: int = 36500
