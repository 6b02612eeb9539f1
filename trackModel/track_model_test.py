"""
Track Model Testing
"""
import pytest
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from universal.universal import (
    InvalidHandle,
    InvariantViolation,
    SegmentAlreadyOccupied,
    SegmentHandle,
    TrainHandle,
)
from trackModel.track_model_backend import TrackNetwork, Segment

DEMO_LINE = os.path.join(os.path.dirname(os.path.abspath(__file__)),
                         "demo_line.csv")


@pytest.fixture
def network() -> TrackNetwork:
    net = TrackNetwork("Test")
    net.add_segment("A", [(0, 0), (50, 0)])
    net.add_segment("B", [(50, 0), (80, 0), (80, 40)])
    return net


@pytest.fixture
def train_a() -> TrainHandle:
    return TrainHandle(0, 99)


@pytest.fixture
def train_b() -> TrainHandle:
    return TrainHandle(1, 99)


"""
Segment Individual Testing
"""
def test_segment_length_is_path_length(network: TrackNetwork) -> None:
    a, b = network.handles()
    assert network.length_of(a) == pytest.approx(50.0)
    assert network.length_of(b) == pytest.approx(70.0)
    assert network.segment(b).name == "B"


def test_segment_is_immutable(network: TrackNetwork) -> None:
    segment = network.segments[0]
    with pytest.raises(AttributeError):
        segment.length = 10.0


def test_segment_rejects_degenerate_paths() -> None:
    with pytest.raises(ValueError):
        Segment(SegmentHandle(0, 1), "X", [(0, 0)])
    with pytest.raises(ValueError):
        Segment(SegmentHandle(0, 1), "X", [(3, 3), (3, 3)])


def test_point_at_walks_the_path(network: TrackNetwork) -> None:
    segment = network.segment(network.find("B"))
    assert segment.point_at(0.0) == (50.0, 0.0)
    assert segment.point_at(30 / 70) == pytest.approx((80.0, 0.0))
    assert segment.point_at(50 / 70) == pytest.approx((80.0, 20.0))
    assert segment.point_at(2.0) == (80.0, 40.0)


"""
Topology Testing
"""
def test_duplicate_segment_name_rejected(network: TrackNetwork) -> None:
    with pytest.raises(ValueError):
        network.add_segment("A", [(0, 0), (1, 0)])


def test_from_polyline_shares_boundary_points() -> None:
    coords = [(-60, 0), (-50, 0), (-40, 0), (-30, -5), (-20, -5), (-10, 0),
              (0, 0), (10, 5), (20, 5), (30, 0), (40, 0), (50, 5), (60, 5)]
    net = TrackNetwork.from_polyline(coords, scale=10.0)
    assert len(net) == 4
    segments = net.segments
    for prev, nxt in zip(segments, segments[1:]):
        assert prev.path[-1] == nxt.path[0]
    assert segments[0].path[0] == (-600.0, 0.0)
    assert all(len(seg.path) == 4 for seg in segments)


def test_from_polyline_too_short() -> None:
    with pytest.raises(ValueError):
        TrackNetwork.from_polyline([(0, 0), (1, 0)], points_per_segment=4)


def test_load_demo_layout() -> None:
    net = TrackNetwork()
    net.load_track_layout(DEMO_LINE)
    assert net.line_name == "demo_line"
    assert [seg.name for seg in net.segments] == ["S1", "S2", "S3", "S4"]
    assert net.length_of(net.find("S1")) == pytest.approx(
        200.0 + (100.0 ** 2 + 50.0 ** 2) ** 0.5)


def test_load_layout_reports_bad_row(tmp_path) -> None:
    layout = tmp_path / "bad.csv"
    layout.write_text("segment,x,y\nA,0,0\nA,ten,0\n")
    with pytest.raises(ValueError, match="row 2"):
        TrackNetwork().load_track_layout(str(layout))


def test_load_layout_rejects_split_segment(tmp_path) -> None:
    layout = tmp_path / "split.csv"
    layout.write_text("segment,x,y\nA,0,0\nA,1,0\nB,1,0\nB,2,0\nA,3,0\n")
    with pytest.raises(ValueError, match="not consecutive"):
        TrackNetwork().load_track_layout(str(layout))


def test_foreign_handle_is_invalid(network: TrackNetwork) -> None:
    other = TrackNetwork()
    other.add_segment("A", [(0, 0), (1, 0)])
    foreign = other.handles()[0]
    with pytest.raises(InvalidHandle):
        network.occupant_of(foreign)
    with pytest.raises(InvalidHandle):
        network.segment(SegmentHandle(5, network.generation))
    assert network.is_free(foreign) is False


"""
Occupancy Registry Testing
"""
def test_reserve_and_release(network: TrackNetwork, train_a) -> None:
    a, b = network.handles()
    assert network.is_free(a)
    network.reserve(a, train_a)
    assert network.occupant_of(a) == train_a
    assert not network.is_free(a)
    assert network.is_free(b)

    network.release(a, train_a)
    assert network.occupant_of(a) is None


def test_reserve_by_same_train_is_noop(network: TrackNetwork, train_a) -> None:
    a, _ = network.handles()
    network.reserve(a, train_a)
    network.reserve(a, train_a)
    assert network.occupant_of(a) == train_a


def test_reserve_occupied_segment_raises(network: TrackNetwork, train_a,
                                        train_b) -> None:
    a, _ = network.handles()
    network.reserve(a, train_a)
    with pytest.raises(SegmentAlreadyOccupied):
        network.reserve(a, train_b)
    assert network.occupant_of(a) == train_a


def test_release_by_non_occupant_raises(network: TrackNetwork, train_a,
                                       train_b) -> None:
    a, b = network.handles()
    network.reserve(a, train_a)
    with pytest.raises(InvariantViolation):
        network.release(a, train_b)
    with pytest.raises(InvariantViolation):
        network.release(b, train_a)
    assert network.occupant_of(a) == train_a


def test_occupancy_snapshot(network: TrackNetwork, train_b) -> None:
    a, b = network.handles()
    network.reserve(b, train_b)
    snapshot = network.occupancy()
    assert list(snapshot) == [a, b]
    assert snapshot[a] is None
    assert snapshot[b] == train_b

    network.release(b, train_b)
    assert snapshot[b] == train_b


def test_network_status(network: TrackNetwork, train_a) -> None:
    a, _ = network.handles()
    network.reserve(a, train_a)
    status = network.get_network_status()
    assert status["line_name"] == "Test"
    first, second = status["segments"]
    assert first["name"] == "A"
    assert first["occupied"] is True
    assert first["occupant"] == train_a
    assert second["occupied"] is False
    assert second["length"] == pytest.approx(70.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
