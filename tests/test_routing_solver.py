import random

import pytest

from src.sequencer.models.domain import Coordinate, Stop
from src.sequencer.services.geospatial import haversine_km
from src.sequencer.services.routing.distance import DistanceMatrix, symmetrize_matrix
from src.sequencer.services.routing.errors import ValidationError
from src.sequencer.services.routing.models import OptimizerOptions
from src.sequencer.services.routing.solver import (
    build_waypoint_plan,
    compare_routes,
    compute_improvement,
    optimize_route,
)


def _stop(sid: str, lat: float, lon: float) -> Stop:
    return Stop(
        stop_id=sid,
        label=f"Customer {sid}",
        coordinate=Coordinate(latitude=lat, longitude=lon),
        order_id=f"ORD-{sid}",
    )


def _random_stops(seed: int, count: int) -> list[Stop]:
    rng = random.Random(seed)
    return [
        _stop(f"S{index:02d}", -1.35 + rng.random() * 0.15, 36.70 + rng.random() * 0.20)
        for index in range(count)
    ]


def _square_stops() -> list[Stop]:
    # Fed in crossing order: (0,0) -> (10,10) -> (0,10) -> (10,0)
    return [_stop("A", 0, 0), _stop("B", 10, 10), _stop("C", 0, 10), _stop("D", 10, 0)]


def test_crossing_square_is_reordered_to_perimeter_walk():
    stops = _square_stops()

    result = optimize_route(stops)

    assert result.stop_ids == ["A", "C", "B", "D"]
    assert [route_stop.sequence for route_stop in result.stops] == [1, 2, 3, 4]

    side = haversine_km(0, 0, 0, 10)
    top = haversine_km(10, 10, 10, 0)
    diagonal = haversine_km(0, 0, 10, 10)
    assert result.total_distance_km == pytest.approx(2 * side + top)
    assert result.baseline_distance_km == pytest.approx(2 * diagonal + side)
    assert all(route_stop.distance_from_prev_km < diagonal * 0.9 for route_stop in result.stops)
    assert result.improvement.distance_saved_km > 0
    assert result.improvement.distance_saved_km == pytest.approx(
        result.baseline_distance_km - result.total_distance_km
    )


def test_first_stop_has_no_inbound_leg_without_origin():
    result = optimize_route(_square_stops())

    first = result.stops[0]
    assert first.distance_from_prev_km == 0.0
    assert first.cumulative_distance_km == 0.0
    assert result.stops[-1].cumulative_distance_km == pytest.approx(result.total_distance_km)
    assert result.stops[-1].cumulative_duration_min == pytest.approx(result.total_duration_min)


@pytest.mark.parametrize("seed", [1, 7, 42])
@pytest.mark.parametrize("with_origin", [False, True])
def test_result_is_permutation_and_never_worse_than_input(seed, with_origin):
    stops = _random_stops(seed, 25)
    origin = Coordinate(-1.2921, 36.8219) if with_origin else None

    result = optimize_route(stops, origin=origin)

    assert len(result.stops) == len(stops)
    assert sorted(result.stop_ids) == sorted(stop.stop_id for stop in stops)
    assert len(set(result.stop_ids)) == len(stops)
    assert result.total_distance_km <= result.baseline_distance_km
    assert result.improvement.distance_saved_km >= 0
    assert 0 <= result.improvement.percentage_improved <= 100


def test_repeated_invocations_are_identical():
    stops = _random_stops(3, 30)
    origin = Coordinate(-1.30, 36.78)

    first = optimize_route(stops, origin=origin)
    second = optimize_route(list(stops), origin=origin)

    assert first == second


def test_input_order_does_not_mutate_stops():
    stops = _square_stops()
    snapshot = list(stops)

    optimize_route(stops)

    assert stops == snapshot


def test_origin_is_never_returned_as_a_stop():
    stops = [_stop("S1", 0, 3), _stop("S2", 0, 1), _stop("S3", 0, 2)]

    result = optimize_route(stops, origin=Coordinate(0, 0))

    assert result.stop_ids == ["S2", "S3", "S1"]
    assert result.stops[0].distance_from_prev_km == pytest.approx(haversine_km(0, 0, 0, 1))
    assert result.total_distance_km == pytest.approx(haversine_km(0, 0, 0, 3))


def test_input_order_seed_wins_when_nearest_neighbour_is_greedy():
    # Origin at lon 0; stops on the equator at lon 1, -1.5, 3.2.
    # Greedy goes 0 -> 1 -> 3.2 -> -1.5; the better walk is 0 -> -1.5 -> 1 -> 3.2.
    stops = [_stop("E1", 0, 1), _stop("W", 0, -1.5), _stop("E3", 0, 3.2)]

    result = optimize_route(stops, origin=Coordinate(0, 0))

    assert result.stop_ids == ["W", "E1", "E3"]
    assert result.metadata["seed"] == "input"
    assert result.total_distance_km == pytest.approx(haversine_km(0, 0, 0, 6.2))
    assert result.metadata["initial_distance_km"] > result.total_distance_km


def _custom_matrix() -> DistanceMatrix:
    rows = (
        (0.0, 1.0, 5.0, 5.0),
        (1.0, 0.0, 2.0, 3.0),
        (5.0, 2.0, 0.0, 10.0),
        (5.0, 3.0, 10.0, 0.0),
    )
    return DistanceMatrix(distances_km=rows, durations_min=rows, source="custom")


def test_precomputed_matrix_is_used():
    stops = [_stop(f"S{i}", 1.0, 1.0 + i * 0.01) for i in range(4)]

    result = optimize_route(stops, matrix=_custom_matrix())

    assert result.stop_ids == ["S0", "S2", "S1", "S3"]
    assert result.total_distance_km == pytest.approx(10.0)
    assert result.total_duration_min == pytest.approx(10.0)
    assert result.baseline_distance_km == pytest.approx(13.0)
    assert result.improvement.distance_saved_km == pytest.approx(3.0)
    assert result.improvement.percentage_improved == pytest.approx(300 / 13)
    assert result.metadata["distance_source"] == "custom"
    assert result.budget_exceeded is False


def test_exhausted_budget_still_returns_complete_route():
    stops = [_stop(f"S{i}", 1.0, 1.0 + i * 0.01) for i in range(4)]

    result = optimize_route(stops, matrix=_custom_matrix(), options=OptimizerOptions(max_iterations=0))

    assert result.budget_exceeded is True
    assert sorted(result.stop_ids) == ["S0", "S1", "S2", "S3"]
    assert result.total_distance_km <= result.baseline_distance_km


def test_matrix_with_wrong_size_is_rejected():
    stops = [_stop("S0", 1.0, 1.0), _stop("S1", 1.0, 1.1)]

    with pytest.raises(ValidationError):
        optimize_route(stops, matrix=_custom_matrix())


def test_asymmetric_matrix_is_averaged_before_sequencing():
    stops = [_stop(f"S{i}", 1.0, 1.0 + i * 0.01) for i in range(4)]
    rows = (
        (0.0, 5.0, 1.0, 8.0),
        (5.0, 0.0, 0.0, 1.0),
        (1.0, 100.0, 0.0, 9.0),
        (8.0, 1.0, 9.0, 0.0),
    )

    result = optimize_route(stops, matrix=DistanceMatrix(distances_km=rows, durations_min=rows))

    # Averaged legs: 0-2 = 1, 2-3 = 9, 3-1 = 1; the input order pays 1-2 = 50.
    assert result.stop_ids == ["S0", "S2", "S3", "S1"]
    assert result.total_distance_km == pytest.approx(11.0)
    assert result.baseline_distance_km == pytest.approx(64.0)
    assert result.total_distance_km <= result.baseline_distance_km
    assert result.stops[2].distance_from_prev_km == pytest.approx(9.0)


def test_symmetrize_matrix_averages_pairs_and_zeroes_diagonal():
    rows = ((1.0, 2.0), (4.0, 0.0))

    matrix = symmetrize_matrix(DistanceMatrix(distances_km=rows, durations_min=rows, source="road"))

    assert matrix.distances_km == ((0.0, 3.0), (3.0, 0.0))
    assert matrix.durations_min == ((0.0, 3.0), (3.0, 0.0))
    assert matrix.source == "road"


@pytest.mark.parametrize("value", [-1.0, float("nan"), float("inf")])
def test_matrix_with_invalid_cell_is_rejected(value):
    stops = [_stop(f"S{i}", 1.0, 1.0 + i * 0.01) for i in range(4)]
    rows = [list(row) for row in _custom_matrix().distances_km]
    rows[2][3] = value
    matrix = DistanceMatrix(distances_km=tuple(map(tuple, rows)), durations_min=_custom_matrix().durations_min)

    with pytest.raises(ValidationError) as excinfo:
        optimize_route(stops, matrix=matrix)

    assert excinfo.value.field == "matrix"


def test_iteration_cap_is_shared_by_both_seeds():
    stops = [_stop(f"S{i}", 1.0, 1.0 + i * 0.01) for i in range(4)]

    # Both seeds start from S0, S1, S2, S3 and need one reversal each.
    result = optimize_route(stops, matrix=_custom_matrix(), options=OptimizerOptions(max_iterations=1))

    assert result.metadata["iterations"] == 1
    assert result.metadata["seed"] == "nearest_neighbor"
    assert result.stop_ids == ["S0", "S2", "S1", "S3"]
    assert result.budget_exceeded is False


def test_empty_input_returns_zero_metric_route():
    result = optimize_route([])

    assert result.stops == []
    assert result.total_distance_km == 0.0
    assert result.total_duration_min == 0.0
    assert result.improvement.distance_saved_km == 0.0
    assert result.improvement.percentage_improved == 0.0
    assert result.budget_exceeded is False


def test_single_stop_without_origin():
    result = optimize_route([_stop("ONLY", -1.29, 36.82)])

    assert result.stop_ids == ["ONLY"]
    assert result.stops[0].sequence == 1
    assert result.total_distance_km == 0.0
    assert result.improvement.percentage_improved == 0.0


def test_single_stop_with_origin_counts_origin_leg():
    origin = Coordinate(-1.2921, 36.8219)
    result = optimize_route([_stop("ONLY", -1.30, 36.78)], origin=origin)

    expected = haversine_km(-1.2921, 36.8219, -1.30, 36.78)
    assert result.total_distance_km == pytest.approx(expected)
    assert result.stops[0].distance_from_prev_km == pytest.approx(expected)
    assert result.improvement.distance_saved_km == 0.0
    assert result.improvement.percentage_improved == 0.0


def test_duration_follows_average_speed():
    stops = _random_stops(11, 8)

    result = optimize_route(stops, options=OptimizerOptions(average_speed_kmh=40.0))

    assert result.total_duration_min == pytest.approx(result.total_distance_km / 40.0 * 60.0)


def test_coincident_stops_have_zero_improvement():
    stops = [_stop("A", 5, 5), _stop("B", 5, 5), _stop("C", 5, 5)]

    result = optimize_route(stops)

    assert result.baseline_distance_km == 0.0
    assert result.total_distance_km == 0.0
    assert result.improvement.percentage_improved == 0.0
    assert result.stop_ids == ["A", "B", "C"]


def test_invalid_latitude_aborts_whole_computation():
    stops = [_stop("S1", 10, 10), _stop("S2", 95, 10), _stop("S3", 11, 11)]

    with pytest.raises(ValidationError) as excinfo:
        optimize_route(stops)

    assert excinfo.value.stop_id == "S2"


def test_invalid_origin_is_reported_as_origin():
    with pytest.raises(ValidationError) as excinfo:
        optimize_route([_stop("S1", 10, 10)], origin=Coordinate(0, 200))

    assert excinfo.value.stop_id == "origin"


def test_duplicate_stop_ids_are_rejected():
    with pytest.raises(ValidationError) as excinfo:
        optimize_route([_stop("S1", 10, 10), _stop("S1", 11, 11)])

    assert excinfo.value.stop_id == "S1"


@pytest.mark.parametrize(
    "options",
    [
        OptimizerOptions(average_speed_kmh=0),
        OptimizerOptions(average_speed_kmh=-5),
        OptimizerOptions(max_iterations=-1),
        OptimizerOptions(epsilon=0),
        OptimizerOptions(average_speed_kmh=float("nan")),
        OptimizerOptions(average_speed_kmh=float("inf")),
        OptimizerOptions(epsilon=float("nan")),
        OptimizerOptions(tie_tolerance_km=float("nan")),
        OptimizerOptions(tie_tolerance_km=0),
        OptimizerOptions(time_limit_seconds=float("nan")),
        OptimizerOptions(time_limit_seconds=0),
    ],
)
def test_bad_options_are_rejected(options):
    with pytest.raises(ValidationError):
        optimize_route([_stop("S1", 10, 10), _stop("S2", 11, 11)], options=options)


def test_improvement_math():
    improvement = compute_improvement(100.0, 80.0, 5)
    assert improvement.distance_saved_km == 20.0
    assert improvement.percentage_improved == 20.0


def test_improvement_with_zero_baseline():
    improvement = compute_improvement(0.0, 0.0, 4)
    assert improvement.distance_saved_km == 0.0
    assert improvement.percentage_improved == 0.0


def test_improvement_is_floored_at_zero():
    improvement = compute_improvement(80.0, 100.0, 4)
    assert improvement.distance_saved_km == 0.0
    assert improvement.percentage_improved == 0.0


def test_improvement_below_two_stops_is_zero():
    assert compute_improvement(10.0, 5.0, 1).percentage_improved == 0.0


def test_compare_routes_reports_both_orders():
    stops = _square_stops()
    result = optimize_route(stops)

    comparison = compare_routes(stops, result)

    assert [stop.stop_id for stop in comparison.original_stops] == ["A", "B", "C", "D"]
    assert [stop.stop_id for stop in comparison.optimized_stops] == ["A", "C", "B", "D"]
    assert comparison.original_distance_km == result.baseline_distance_km
    assert comparison.optimized_distance_km == result.total_distance_km
    assert comparison.improvement == result.improvement


def test_waypoint_plan_without_origin():
    result = optimize_route(_square_stops())

    plan = build_waypoint_plan(result)

    assert plan.origin == Coordinate(0, 0)
    assert plan.destination == Coordinate(10, 0)
    assert plan.waypoints == [Coordinate(0, 10), Coordinate(10, 10)]


def test_waypoint_plan_with_origin():
    origin = Coordinate(0, 0)
    result = optimize_route([_stop("S1", 0, 2), _stop("S2", 0, 1)], origin=origin)

    plan = build_waypoint_plan(result, origin)

    assert plan.origin == origin
    assert plan.destination == Coordinate(0, 2)
    assert plan.waypoints == [Coordinate(0, 1)]


def test_waypoint_plan_requires_stops():
    with pytest.raises(ValidationError):
        build_waypoint_plan(optimize_route([]))
