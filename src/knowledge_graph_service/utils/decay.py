"""
Time-decay relevance scoring for observations.

Each observation's relevance fades with a fixed half-life and is lifted back
up by how often and how recently it has been read:

    score = max(min_relevance,
                relevance
                * 0.5 ** (age_days / half_life_days)      # decay
                * (1 + access_count * access_boost)       # frequency
                * recency_boost)                          # recency

``recency_boost`` ramps linearly from 1.5 at the moment of the last access
down to 1.0 at ``recency_window_days``, and is 1.0 outside that window.

Expiry is a separate binary gate (``is_expired``); it does not feed the score.

All functions are pure. ``now`` is always passed in, so every score computed
for one response is taken against the same instant.
"""

from __future__ import annotations

from datetime import datetime

from ..models.graph import Observation
from .timestamps import days_between

HALF_LIFE_DAYS = 30.0
ACCESS_BOOST_PER_HIT = 0.1
RECENCY_WINDOW_DAYS = 7.0
RECENCY_MAX_BOOST = 0.5
MIN_RELEVANCE = 0.01


def recency_boost(
    last_accessed: datetime | None,
    now: datetime,
    window_days: float = RECENCY_WINDOW_DAYS,
) -> float:
    """
    Linear boost for recently-read facts.

    Returns 1.5 when read at ``now``, falling to 1.0 at ``window_days``;
    1.0 if never read or read longer ago than the window.
    """
    if last_accessed is None:
        return 1.0
    last_access_days = days_between(last_accessed, now)
    if last_access_days >= window_days:
        return 1.0
    return 1.0 + (1.0 - last_access_days / window_days) * RECENCY_MAX_BOOST


def decay_score(
    observation: Observation,
    now: datetime,
    *,
    half_life_days: float = HALF_LIFE_DAYS,
    access_boost: float = ACCESS_BOOST_PER_HIT,
    recency_window_days: float = RECENCY_WINDOW_DAYS,
    min_relevance: float = MIN_RELEVANCE,
) -> float:
    """
    Compute the relevance score of an observation at ``now``.

    A missing ``observed_at`` counts as observed at ``now``.

    Args:
        observation: Observation to score
        now: The instant to score against (one per request)
        half_life_days: Days after which the decay factor halves
        access_boost: Multiplier added per recorded access (unbounded)
        recency_window_days: Width of the recency ramp
        min_relevance: Floor; the score never reaches zero

    Returns:
        Score in ``[min_relevance, +inf)``
    """
    observed_at = observation.observed_at or now
    age_days = days_between(observed_at, now)
    decay = 0.5 ** (age_days / half_life_days)
    frequency = 1.0 + observation.access_count * access_boost
    recency = recency_boost(observation.last_accessed, now, recency_window_days)
    return max(min_relevance, observation.relevance * decay * frequency * recency)


def is_expired(expires_at: datetime | None, now: datetime) -> bool:
    """True once ``expires_at`` has been reached. Items without one never expire."""
    return expires_at is not None and expires_at <= now


def mean_score(scores: list[float]) -> float:
    """Arithmetic mean, 0.0 for no scores."""
    if not scores:
        return 0.0
    return sum(scores) / len(scores)
