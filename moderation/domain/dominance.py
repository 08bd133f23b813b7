"""Dominance scoring for talk-time imbalance."""

from __future__ import annotations

from typing import Mapping, Sequence

_EPSILON = 1e-6


# dominance_score: how far the top speaker sits above the mean, relative to total talk.
def dominance_score(
    talk_time: Mapping[str, float],
    speakers: Sequence[str],
    total_talk_time: float,
) -> float:
    # Zero when there is nobody to compare or nothing has been said yet.
    if not speakers or total_talk_time <= 0:
        return 0.0
    top = max(talk_time.get(s, 0) for s in speakers)
    mean = total_talk_time / len(speakers)
    return (top - mean) / (total_talk_time + _EPSILON)
