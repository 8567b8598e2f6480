from __future__ import annotations

import pytest

from calibration import ExerciseKind
from exercise_registry import get_exercise_entries
from exercises import HoldTimer, NeckRotationCounter, NeckTiltCounter, SitTallMonitor
from exercises.base import ExerciseBase


def _run(exercise, frames):
    state = None
    for frame in frames:
        state = exercise.update(frame)
    return state


def test_hold_timer_counts_once_per_hold():
    timer = HoldTimer(hold_ms=1000)
    assert timer.update(True, 0) is False
    assert timer.remaining_ms(400) == 600
    assert timer.update(True, 999) is False
    assert timer.update(True, 1000) is True
    assert timer.update(True, 1500) is False
    assert timer.phase == "COUNTED"
    timer.update(False, 1600)
    assert timer.phase == "READY"
    assert timer.total_hold_ms == 1000


def test_hold_timer_broken_hold_restarts():
    timer = HoldTimer(hold_ms=1000)
    timer.update(True, 0)
    timer.update(False, 500)
    timer.update(True, 600)
    assert timer.update(True, 1500) is False
    assert timer.update(True, 1600) is True


def test_neck_tilt_rep(make_frame, make_baseline):
    counter = NeckTiltCounter()
    assert counter.update(make_frame()).phase == "CALIBRATING"
    counter.set_baseline(make_baseline(ExerciseKind.NECK_TILT))

    assert counter.update(make_frame(0.0)).warnings == ["Tilt head up"]
    state = counter.update(make_frame(0.0, nose=(0.5, 0.29)))
    assert state.warnings == ["Hold 3.0s"]

    up = [make_frame(t * 100.0, nose=(0.5, 0.29)) for t in range(1, 31)]
    assert _run(counter, up).phase == "DOWN"

    down = [make_frame(3100.0 + t * 100.0, nose=(0.5, 0.31)) for t in range(31)]
    state = _run(counter, down)
    assert state.rep_count == 1
    assert state.phase == "UP"


def test_neck_tilt_lost_face_resets_hold(make_frame, make_baseline):
    counter = NeckTiltCounter(hold_ms=1000)
    counter.set_baseline(make_baseline(ExerciseKind.NECK_TILT))
    counter.update(make_frame(0.0, nose=(0.5, 0.29)))
    state = counter.update(make_frame(500.0, hidden=("nose",)))
    assert state.warnings == ["Face or shoulders not visible"]
    counter.update(make_frame(600.0, nose=(0.5, 0.29)))
    assert counter.update(make_frame(1000.0, nose=(0.5, 0.29))).phase == "UP"


def test_neck_tilt_completes_after_max_reps(make_frame, make_baseline):
    counter = NeckTiltCounter(hold_ms=100, max_reps=1)
    counter.set_baseline(make_baseline(ExerciseKind.NECK_TILT))
    _run(counter, [make_frame(t, nose=(0.5, 0.29)) for t in (0.0, 100.0)])
    state = _run(counter, [make_frame(t, nose=(0.5, 0.31)) for t in (200.0, 300.0)])
    assert state.completed
    assert state.progress == 100.0
    assert counter.update(make_frame(400.0)).phase == "COMPLETED"


def test_neck_rotation_rep(make_frame, make_baseline):
    counter = NeckRotationCounter(hold_ms=1000)
    counter.set_baseline(make_baseline(ExerciseKind.NECK_ROTATION))
    assert counter.ratio_change(make_frame()) == pytest.approx(0.0)
    assert counter.update(make_frame(0.0)).warnings == ["Turn head left"]

    left = [make_frame(t * 100.0, nose=(0.55, 0.3)) for t in range(1, 12)]
    assert _run(counter, left).phase == "RIGHT"

    right = [make_frame(1200.0 + t * 100.0, nose=(0.45, 0.3)) for t in range(11)]
    state = _run(counter, right)
    assert state.rep_count == 1
    assert state.phase == "LEFT"


def test_neck_rotation_needs_usable_baseline(make_frame, make_baseline):
    counter = NeckRotationCounter()
    counter.set_baseline(make_baseline(ExerciseKind.NECK_ROTATION, right=0.0))
    assert counter.update(make_frame()).phase == "CALIBRATING"


def test_sit_tall_deviation_and_correction(make_frame, make_baseline):
    monitor = SitTallMonitor(meditation_ms=5000)
    monitor.set_baseline(make_baseline())

    state = _run(monitor, [make_frame(t * 100.0) for t in range(11)])
    assert state.phase == "MEDITATION"
    assert monitor.meditation_elapsed_ms == 1000

    slouch = [make_frame(1100.0 + t * 100.0, nose=(0.5, 0.28)) for t in range(21)]
    state = _run(monitor, slouch)
    assert state.phase == "CORRECTION"
    assert not state.is_rep_valid
    assert state.warnings == ["Sit up straight"]
    assert monitor.total_deviations == 1

    state = monitor.update(make_frame(3200.0))
    assert state.phase == "MEDITATION"
    assert monitor.total_correction_ms == 2100

    state = _run(monitor, [make_frame(3200.0 + t * 100.0) for t in range(1, 20)])
    assert state.completed
    assert state.progress == 100.0


def test_sit_tall_brief_deviation_is_tolerated(make_frame, make_baseline):
    monitor = SitTallMonitor()
    monitor.set_baseline(make_baseline())
    _run(monitor, [make_frame(t * 100.0, nose=(0.5, 0.28)) for t in range(10)])
    state = monitor.update(make_frame(1000.0))
    assert state.phase == "MEDITATION"
    assert monitor.total_deviations == 0


def test_sit_tall_before_baseline(make_frame):
    state = SitTallMonitor().update(make_frame())
    assert state.phase == "CALIBRATING"
    assert state.warnings == ["Calibrating..."]


def test_base_hooks_must_be_overridden(make_frame, make_baseline):
    base = ExerciseBase()
    with pytest.raises(NotImplementedError):
        base.set_baseline(make_baseline())
    with pytest.raises(NotImplementedError):
        base.update(make_frame())
    with pytest.raises(NotImplementedError):
        base.reset()


@pytest.mark.parametrize("entry", get_exercise_entries(), ids=lambda entry: entry.kind.value)
def test_baseline_lifecycle(entry, make_frame, make_baseline):
    exercise = entry.create()
    assert exercise.update(make_frame()).phase == "CALIBRATING"

    exercise.set_baseline(make_baseline(entry.kind))
    assert exercise.baseline is not None
    assert exercise.phase != "CALIBRATING"
    assert exercise.update(make_frame(100.0)).phase != "CALIBRATING"

    exercise.reset()
    assert exercise.baseline is None
    assert exercise.rep_count == 0
    assert exercise.update(make_frame(200.0)).phase == "CALIBRATING"
