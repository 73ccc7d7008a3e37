# syncshell Rate Estimator
# Directional transfer rates from cumulative staging byte counters

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from syncshell.engine.models import SessionStatus, SyncSession

DEFAULT_MIN_SAMPLE_INTERVAL = 0.5


@dataclass
class RateState:
    """Per-session sampling state; rates are bytes per second."""

    last_received_size: int = 0
    last_timestamp: float = 0.0
    upload_rate: Optional[float] = None
    download_rate: Optional[float] = None
    is_local_alpha: bool = True
    has_sample: bool = False


@dataclass
class AggregateRates:
    upload: float = 0.0
    download: float = 0.0


def receiving_side(session: SyncSession) -> Optional[str]:
    """
    Side currently receiving data: "alpha", "beta" or None when idle.

    The staging status decides; otherwise the only endpoint carrying
    staging progress.
    """
    if session.status == SessionStatus.STAGING_ALPHA.value:
        return "alpha"
    if session.status == SessionStatus.STAGING_BETA.value:
        return "beta"
    alpha_staging = session.alpha.staging_progress is not None
    beta_staging = session.beta.staging_progress is not None
    if alpha_staging and not beta_staging:
        return "alpha"
    if beta_staging and not alpha_staging:
        return "beta"
    return None


def normalize_rate(value: Optional[float]) -> float:
    """Undefined or negative rates count as zero."""
    if value is None or value != value or value < 0:
        return 0.0
    return value


class RateEstimator:
    """
    Tracks upload and download rates per session.

    The local side receiving data is a download, the local side sending
    data is an upload. The first sample of a staging run only sets the
    baseline and leaves rates undefined.
    """

    def __init__(
        self,
        min_sample_interval: float = DEFAULT_MIN_SAMPLE_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_sample_interval = min_sample_interval
        self.clock = clock
        self._states: dict[str, RateState] = {}

    def get(self, identifier: str) -> Optional[RateState]:
        return self._states.get(identifier)

    def remove(self, identifier: str) -> None:
        self._states.pop(identifier, None)

    def retain(self, identifiers: Iterable[str]) -> None:
        """Drop state for sessions not in identifiers."""
        keep = set(identifiers)
        for identifier in list(self._states):
            if identifier not in keep:
                del self._states[identifier]

    def sample(self, session: SyncSession) -> RateState:
        now = self.clock()
        state = self._states.setdefault(session.identifier, RateState())
        state.is_local_alpha = session.is_local_alpha

        side = receiving_side(session)
        if side is None:
            state.upload_rate = 0.0
            state.download_rate = 0.0
            state.has_sample = False
            return state

        received = session.staging_received_size
        if not state.has_sample or received < state.last_received_size:
            # New baseline: first sample, or a new staging cycle restarted the counter
            state.last_received_size = received
            state.last_timestamp = now
            state.upload_rate = None
            state.download_rate = None
            state.has_sample = True
            return state

        elapsed = now - state.last_timestamp
        if elapsed < self.min_sample_interval:
            return state

        rate = max(0.0, (received - state.last_received_size) / elapsed)
        local_receiving = (side == "alpha") == state.is_local_alpha
        if local_receiving:
            state.download_rate = rate
            state.upload_rate = 0.0
        else:
            state.upload_rate = rate
            state.download_rate = 0.0
        state.last_received_size = received
        state.last_timestamp = now
        return state

    def aggregate(self, identifiers: Iterable[str]) -> AggregateRates:
        """Sum normalized rates over the given sessions."""
        total = AggregateRates()
        for identifier in identifiers:
            state = self._states.get(identifier)
            if state is None:
                continue
            total.upload += normalize_rate(state.upload_rate)
            total.download += normalize_rate(state.download_rate)
        return total
