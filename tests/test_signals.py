from datetime import timedelta

import pytest

from staymarket.ingest.models import PriceSample
from staymarket.logic import signals


def test_trend_needs_two_samples(now, make_history):
    assert signals.price_trend((), 30, now) == 0.0
    assert signals.price_trend(make_history((3, 100.0)), 30, now) == 0.0


def test_trend_uses_first_and_last_in_window(now, make_history):
    samples = make_history((20, 100.0), (10, 300.0), (5, 50.0), (1, 120.0))
    assert signals.price_trend(samples, 30, now) == pytest.approx(20.0)


def test_trend_sorts_unordered_input(now, make_history):
    samples = make_history((1, 150.0), (10, 100.0))
    assert signals.price_trend(samples, 30, now) == pytest.approx(50.0)


def test_trend_can_be_negative(now, make_history):
    assert signals.price_trend(make_history((6, 200.0), (1, 150.0)), 7, now) == pytest.approx(-25.0)


def test_samples_outside_window_do_not_change_trend(now, make_history):
    inside = make_history((6, 100.0), (2, 110.0))
    baseline = signals.price_trend(inside, 7, now)
    with_old = inside + make_history((8, 10.0), (40, 1.0))
    future = (PriceSample(timestamp=now + timedelta(days=1), price=999.0),)
    assert signals.price_trend(with_old, 7, now) == baseline
    assert signals.price_trend(with_old + future, 7, now) == baseline


def test_old_sample_alone_gives_no_signal(now, make_history):
    samples = make_history((10, 100.0), (2, 150.0))
    assert signals.price_trend(samples, 7, now) == 0.0


def test_zero_first_price_is_neutral(now, make_history):
    assert signals.price_trend(make_history((5, 0.0), (1, 100.0)), 7, now) == 0.0


def test_window_boundary_is_inclusive(now, make_history):
    samples = make_history((7, 100.0), (0, 110.0))
    assert signals.price_trend(samples, 7, now) == pytest.approx(10.0)


def test_invalid_window_rejected(now):
    with pytest.raises(ValueError):
        signals.price_trend((), 0, now)


def test_is_fresh(now, make_listing):
    assert signals.is_fresh(make_listing(scraped_hours_ago=23), now)
    assert not signals.is_fresh(make_listing(scraped_hours_ago=25), now)
    assert not signals.is_fresh(make_listing(scraped_hours_ago=None), now)


def test_share():
    assert signals.share(1, 4) == 25.0
    assert signals.share(3, 0) == 0.0
