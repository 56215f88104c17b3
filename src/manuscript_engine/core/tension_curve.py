"""Three-act tension trajectory helpers shared by scoring and suggestion."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final, Literal

ActStage = Literal["setup", "confrontation", "climax", "resolution"]

MIN_TENSION: Final = 1
MAX_TENSION: Final = 10

# (progress, tension) keypoints: rising setup, midpoint peak with a short dip,
# climax near 85% and a resolution dip on the last chapter.
TARGET_TENSION_KEYPOINTS: Final[tuple[tuple[float, float], ...]] = (
    (0.0, 3.0),
    (0.25, 5.0),
    (0.5, 7.0),
    (0.6, 6.0),
    (0.85, 10.0),
    (1.0, 5.0),
)
CLIMAX_EARLIEST_PROGRESS: Final = 0.6


def progress_for(position: int, total: int) -> float:
    """Map a zero-based position to a 0..1 progress ratio."""
    if total <= 1:
        return 0.0
    return position / (total - 1)


def target_tension(position: int, total: int) -> float:
    """Interpolate the target tension for a zero-based position."""
    progress = progress_for(position, total)
    previous_x, previous_y = TARGET_TENSION_KEYPOINTS[0]
    for x, y in TARGET_TENSION_KEYPOINTS[1:]:
        if progress <= x:
            span = x - previous_x
            ratio = 0.0 if span <= 0 else (progress - previous_x) / span
            return round(previous_y + (y - previous_y) * ratio, 6)
        previous_x, previous_y = x, y
    return TARGET_TENSION_KEYPOINTS[-1][1]


def stage_for_position(position: int, total: int) -> ActStage:
    if total <= 3:
        if position == 0:
            return "setup"
        if position == total - 1:
            return "resolution"
        return "climax"
    progress = progress_for(position, total)
    if progress < 0.25:
        return "setup"
    if progress < CLIMAX_EARLIEST_PROGRESS:
        return "confrontation"
    if progress < 0.95:
        return "climax"
    return "resolution"


def rises_through_midpoint(history: Sequence[int]) -> bool:
    """True when tension never falls from the opening up to the midpoint."""
    if len(history) < 3:
        return False
    first_half = history[: len(history) // 2 + 1]
    never_falls = all(later >= earlier for earlier, later in zip(first_half, first_half[1:]))
    return never_falls and first_half[-1] > first_half[0]


def peak_index(history: Sequence[int]) -> int:
    """Index of the last maximum tension value."""
    peak = max(history)
    return max(index for index, value in enumerate(history) if value == peak)


def has_late_climax_and_resolution(history: Sequence[int]) -> bool:
    """True when the peak lands in the final act and a resolution dip follows."""
    if len(history) < 3:
        return False
    index = peak_index(history)
    late = progress_for(index, len(history)) >= CLIMAX_EARLIEST_PROGRESS
    return late and index < len(history) - 1 and history[-1] < history[index]
