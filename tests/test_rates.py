# Tests for syncshell.sync.rates
# Directional transfer rates from staging counters

import pytest
from conftest import make_session

from syncshell.engine.models import StagingProgress
from syncshell.sync.rates import RateEstimator, normalize_rate, receiving_side


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def staging(identifier="s", *, side="beta", received=0, local_is_alpha=True):
    status = "staging-beta" if side == "beta" else "staging-alpha"
    return make_session(
        identifier,
        status=status,
        local_is_alpha=local_is_alpha,
        stagingProgress={"receivedSize": received, "expectedSize": 10_000},
    )


class TestReceivingSide:
    """Tests for receiving_side."""

    def test_from_status(self):
        assert receiving_side(make_session(status="staging-alpha")) == "alpha"
        assert receiving_side(make_session(status="staging-beta")) == "beta"

    def test_from_exclusive_endpoint_progress(self):
        session = make_session(status="transitioning")
        assert receiving_side(session) is None
        session.beta.staging_progress = StagingProgress(received_size=5)
        assert receiving_side(session) == "beta"

    def test_ambiguous_progress(self):
        session = make_session(status="transitioning")
        session.alpha.staging_progress = StagingProgress()
        session.beta.staging_progress = StagingProgress()
        assert receiving_side(session) is None


class TestRateEstimator:
    """Tests for RateEstimator."""

    def test_first_sample_is_baseline(self):
        estimator = RateEstimator(clock=FakeClock())
        state = estimator.sample(staging(received=100))
        assert state.has_sample
        assert state.upload_rate is None
        assert state.download_rate is None

    def test_remote_receiving_is_upload(self):
        clock = FakeClock()
        estimator = RateEstimator(clock=clock)
        estimator.sample(staging(side="beta", received=0))
        clock.now += 2
        state = estimator.sample(staging(side="beta", received=2048))
        assert state.upload_rate == pytest.approx(1024)
        assert state.download_rate == 0

    def test_local_receiving_is_download(self):
        clock = FakeClock()
        estimator = RateEstimator(clock=clock)
        estimator.sample(staging(side="alpha", received=0))
        clock.now += 1
        state = estimator.sample(staging(side="alpha", received=500))
        assert state.download_rate == pytest.approx(500)
        assert state.upload_rate == 0

    def test_local_on_beta_flips_direction(self):
        clock = FakeClock()
        estimator = RateEstimator(clock=clock)
        estimator.sample(staging(side="beta", received=0, local_is_alpha=False))
        clock.now += 1
        state = estimator.sample(staging(side="beta", received=300, local_is_alpha=False))
        assert state.download_rate == pytest.approx(300)
        assert state.upload_rate == 0

    def test_minimum_interval(self):
        clock = FakeClock()
        estimator = RateEstimator(min_sample_interval=0.5, clock=clock)
        estimator.sample(staging(received=0))
        clock.now += 0.1
        state = estimator.sample(staging(received=1000))
        assert state.upload_rate is None
        assert state.last_received_size == 0

    def test_counter_reset_starts_new_baseline(self):
        clock = FakeClock()
        estimator = RateEstimator(clock=clock)
        estimator.sample(staging(received=5000))
        clock.now += 1
        estimator.sample(staging(received=6000))
        clock.now += 1
        state = estimator.sample(staging(received=10))
        assert state.upload_rate is None
        assert state.last_received_size == 10

    def test_idle_zeroes_rates(self):
        clock = FakeClock()
        estimator = RateEstimator(clock=clock)
        estimator.sample(staging(received=0))
        clock.now += 1
        estimator.sample(staging(received=100))
        state = estimator.sample(make_session("s", status="watching"))
        assert state.upload_rate == 0
        assert state.download_rate == 0
        assert not state.has_sample

    def test_aggregate_and_retain(self):
        clock = FakeClock()
        estimator = RateEstimator(clock=clock)
        for identifier in ("a", "b"):
            estimator.sample(staging(identifier, received=0))
        clock.now += 1
        estimator.sample(staging("a", received=100))
        estimator.sample(staging("b", received=50))

        total = estimator.aggregate(["a", "b", "unknown"])
        assert total.upload == pytest.approx(150)
        assert total.download == 0

        estimator.retain(["a"])
        assert estimator.get("b") is None
        estimator.remove("a")
        assert estimator.get("a") is None

    def test_normalize_rate(self):
        assert normalize_rate(None) == 0
        assert normalize_rate(float("nan")) == 0
        assert normalize_rate(-3) == 0
        assert normalize_rate(7.5) == 7.5
