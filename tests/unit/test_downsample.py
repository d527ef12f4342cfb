import pytest

from pulseboard.core.exceptions import QueryValidationError
from pulseboard.services.downsample import limit


def test_under_budget_is_unchanged():
    points = list(range(5))
    assert limit(points, 10) == points


def test_exact_budget_is_unchanged():
    assert limit(list(range(10)), 10) == list(range(10))


def test_stride_keeps_first_point():
    # stride = ceil(10 / 4) = 3
    assert limit(list(range(10)), 4) == [0, 3, 6, 9]


def test_stride_may_undershoot_budget():
    # stride = ceil(7 / 3) = 3 -> indices 0, 3, 6
    assert limit(list(range(7)), 3) == [0, 3, 6]


def test_budget_of_one_keeps_first_point():
    assert limit(list(range(100)), 1) == [0]


def test_day_of_minutes_to_hundred_points():
    result = limit(list(range(1440)), 100)
    assert len(result) <= 100
    assert result[:3] == [0, 15, 30]


def test_empty_input():
    assert limit([], 5) == []


def test_returns_a_copy():
    points = [1, 2, 3]
    result = limit(points, 10)
    result.append(4)
    assert points == [1, 2, 3]


@pytest.mark.parametrize("budget", [0, -5])
def test_budget_below_one_is_rejected(budget):
    with pytest.raises(QueryValidationError):
        limit([1, 2, 3], budget)


def test_thousand_points_to_hundred_keeps_order():
    points = list(range(1000))
    result = limit(points, 100)
    assert len(result) == 100
    assert result[0] == 0
    assert result == sorted(result)
