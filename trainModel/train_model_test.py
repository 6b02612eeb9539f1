import sys
import os
import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(ROOT)

from trainModel.train_model_backend import (
    KinematicState,
    SegmentTransfer,
    Train,
    TrainSchedule,
    update_position,
    update_speed,
)
from universal.universal import (
    PerformanceEnvelope,
    ScheduleExhausted,
    SegmentHandle,
    TrainCommand,
    TrainHandle,
)

SEG_A = SegmentHandle(0, 1)
SEG_B = SegmentHandle(1, 1)
SEG_C = SegmentHandle(2, 1)


@pytest.fixture
def envelope():
    return PerformanceEnvelope(acceleration=1.0, brake_deceleration=2.0,
                               max_speed=10.0)


@pytest.fixture
def train(envelope):
    return Train(TrainHandle(0, 1), "Train 1", envelope,
                 TrainSchedule([SEG_A, SEG_B]))


def test_schedule_cursor():
    schedule = TrainSchedule([SEG_A, SEG_B, SEG_C])
    assert schedule.current() == SEG_A
    assert schedule.peek_previous() is None
    assert schedule.peek_next() == SEG_B
    assert not schedule.at_end

    assert schedule.advance() == SEG_B
    assert schedule.peek_previous() == SEG_A
    schedule.advance()
    assert schedule.at_end
    assert schedule.peek_next() is None


def test_schedule_advance_past_end_raises():
    schedule = TrainSchedule([SEG_A])
    with pytest.raises(ScheduleExhausted):
        schedule.advance()
    assert schedule.current_index == 0


def test_schedule_validation():
    with pytest.raises(ValueError):
        TrainSchedule([])
    with pytest.raises(ValueError):
        TrainSchedule([SEG_A, SEG_B], start_index=2)
    assert TrainSchedule([SEG_A, SEG_B], start_index=1).current() == SEG_B


def test_new_train_holds(train):
    assert train.command == TrainCommand.hold()
    assert train.kinematics == KinematicState()
    assert not train.faulted


def test_report_state_contains_ids(train):
    state = train.report_state()
    assert state["name"] == "Train 1"
    assert state["segment"] == SEG_A
    assert state["velocity"] == 0.0
    assert state["faulted"] is False


def test_accelerate_caps_at_max_speed(envelope):
    state = KinematicState(velocity=9.5)
    assert update_speed(state, TrainCommand.accelerate(), envelope, 1.0) == 10.0
    assert update_speed(state, TrainCommand.accelerate(), envelope, 1.0) == 10.0


def test_brake_never_goes_negative(envelope):
    state = KinematicState(velocity=3.0)
    update_speed(state, TrainCommand.brake(), envelope, 1.0)
    assert state.velocity == 1.0
    update_speed(state, TrainCommand.brake(), envelope, 1.0)
    assert state.velocity == 0.0


def test_hold_keeps_velocity(envelope):
    state = KinematicState(velocity=4.0)
    update_speed(state, TrainCommand.hold(), envelope, 0.5)
    assert state.velocity == 4.0


@pytest.mark.parametrize("custom, expected", [(3.0, 10.0), (-1.0, 3.0),
                                              (-20.0, 0.0)])
def test_custom_acceleration_is_clamped(envelope, custom, expected):
    state = KinematicState(velocity=5.0)
    update_speed(state, TrainCommand.custom(custom), envelope, 2.0)
    assert state.velocity == pytest.approx(expected)


def test_position_inside_segment(train):
    train.kinematics.position = 10.0
    train.kinematics.velocity = 5.0
    assert update_position(train, 50.0, 1.0) is None
    assert train.kinematics.position == 15.0
    assert train.kinematics.previous_position == 10.0


def test_position_crossing_returns_transfer(train):
    train.kinematics.position = 48.0
    train.kinematics.velocity = 6.0
    transfer = update_position(train, 50.0, 1.0)
    assert transfer == SegmentTransfer(train.handle, SEG_A, SEG_B, 4.0)
    # applied later, the train itself is untouched
    assert train.kinematics.position == 48.0
    assert train.schedule.current() == SEG_A


def test_position_exactly_on_boundary_crosses(train):
    train.kinematics.position = 45.0
    train.kinematics.velocity = 5.0
    transfer = update_position(train, 50.0, 1.0)
    assert transfer is not None
    assert transfer.carry_over == 0.0


def test_train_at_rest_on_boundary_does_not_cross(train):
    train.kinematics.position = 50.0
    train.kinematics.velocity = 0.0
    assert update_position(train, 50.0, 1.0) is None
    assert train.kinematics.position == 50.0
    assert train.schedule.current() == SEG_A


def test_position_clamped_at_end_of_schedule(envelope):
    train = Train(TrainHandle(0, 1), "Train 1", envelope,
                  TrainSchedule([SEG_A]))
    train.kinematics.position = 98.0
    train.kinematics.velocity = 5.0
    assert update_position(train, 100.0, 1.0) is None
    assert train.kinematics.position == 100.0
    assert train.kinematics.previous_position == 98.0


def test_set_fault_stops_train(train):
    train.kinematics.position = 30.0
    train.kinematics.velocity = 7.0
    train.set_fault("boom", position=50.0)
    assert train.faulted
    assert train.fault == "boom"
    assert train.kinematics.velocity == 0.0
    assert train.kinematics.position == 50.0
    assert train.report_state()["fault"] == "boom"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
