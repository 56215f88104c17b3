from __future__ import annotations

import pytest

from manuscript_engine.core.tension_curve import (
    has_late_climax_and_resolution,
    peak_index,
    progress_for,
    rises_through_midpoint,
    stage_for_position,
    target_tension,
)


def test_target_tension_follows_keypoints() -> None:
    assert target_tension(0, 5) == pytest.approx(3.0)
    assert target_tension(2, 5) == pytest.approx(7.0)
    assert target_tension(4, 5) == pytest.approx(5.0)
    assert target_tension(0, 1) == pytest.approx(3.0)


def test_target_tension_peaks_in_final_act() -> None:
    total = 21
    targets = [target_tension(position, total) for position in range(total)]
    peak = targets.index(max(targets))
    assert progress_for(peak, total) >= 0.6
    assert targets[-1] < targets[peak]


def test_stage_for_position_covers_three_acts() -> None:
    stages = [stage_for_position(position, 20) for position in range(20)]
    assert stages[0] == "setup"
    assert "confrontation" in stages
    assert "climax" in stages
    assert stages[-1] == "resolution"
    assert stage_for_position(1, 3) == "climax"


def test_rises_through_midpoint() -> None:
    assert rises_through_midpoint([2, 4, 6, 3, 8]) is True
    assert rises_through_midpoint([5, 5, 5, 5]) is False
    assert rises_through_midpoint([4, 2, 6, 8]) is False
    assert rises_through_midpoint([1, 2]) is False


def test_late_climax_with_resolution() -> None:
    assert has_late_climax_and_resolution([3, 5, 7, 10, 4]) is True
    assert has_late_climax_and_resolution([10, 5, 4, 3, 2]) is False
    assert has_late_climax_and_resolution([3, 5, 7, 8, 10]) is False
    assert peak_index([3, 9, 2, 9, 1]) == 3
