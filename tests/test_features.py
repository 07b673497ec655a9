import pytest

from yearcast.core.errors import InsufficientDataError
from yearcast.core.features import build_windows, split_chronological, windows_to_arrays


def test_window_count_and_targets():
    x = [0.0, 0.1, 0.2, 0.3, 0.4]
    windows = build_windows(x, 2)
    assert len(windows) == 3
    assert windows[0].inputs == (0.0, 0.1)
    assert windows[0].target == 0.2
    assert windows[-1].inputs == (0.2, 0.3)
    assert windows[-1].target == 0.4


def test_lookback_equal_to_length_gives_no_windows():
    assert build_windows([1.0, 2.0, 3.0], 3) == []


def test_lookback_longer_than_series_fails():
    with pytest.raises(InsufficientDataError) as exc:
        build_windows([1.0, 2.0], 3)
    assert exc.value.required == 3
    assert exc.value.available == 2


def test_ten_points_lookback_three_splits_five_two(short_series):
    windows = build_windows(short_series.scaled, 3)
    assert len(windows) == 7
    train, test = split_chronological(windows, 0.8)
    assert len(train) == 5
    assert len(test) == 2
    # test is the most recent tail, in order
    assert test == windows[5:]


@pytest.mark.parametrize("n,expected_train", [(10, 8), (7, 5), (13, 10), (1, 0)])
def test_split_rounds_train_down(n, expected_train):
    windows = build_windows([float(i) for i in range(n + 1)], 1)
    train, test = split_chronological(windows, 0.8)
    assert len(train) == expected_train
    assert len(test) == n - expected_train


def test_split_fraction_float_error():
    windows = build_windows([float(i) for i in range(11)], 1)
    train, _ = split_chronological(windows, 0.7)
    assert len(train) == 7


def test_windows_to_arrays():
    X, y = windows_to_arrays(build_windows([1.0, 2.0, 3.0, 4.0], 2))
    assert X.shape == (2, 2)
    assert y.tolist() == [3.0, 4.0]
