import math

import pytest

from mm1_engine import SimulationConfig, SimulationController


class ScriptedUniform:
    """Uniform source that makes the next exponential draws equal ``durations``.

    Only valid when every rate in the run equals ``rate``.
    """

    def __init__(self, durations, rate=1.0):
        self._values = iter([1.0 - math.exp(-rate * d) for d in durations])

    def random(self):
        return next(self._values)


# Draw order for the hand-traced scenario (lambda = mu = 1, horizon 10):
#   first gap 0.9 -> C1 arrives 0.9
#   C1 service 2.0 (departs 2.9), gap 0.5 -> C2 arrives 1.4
#   gap 0.5 -> C3 arrives 1.9
#   gap 20.0 -> 21.9, discarded
#   C2 service 1.0 (departs 3.9)
#   C3 service 10.0 -> 13.9, discarded; C3 is still in service at the horizon
TRACED_DURATIONS = [0.9, 2.0, 0.5, 0.5, 20.0, 1.0, 10.0]


@pytest.fixture
def scripted_uniform():
    return ScriptedUniform


@pytest.fixture
def traced_rng_factory():
    return lambda: ScriptedUniform(TRACED_DURATIONS)


@pytest.fixture
def traced_controller(traced_rng_factory):
    cfg = SimulationConfig(arrival_rate=1.0, service_rate=1.0, horizon=10.0, tick_delta=0.25)
    return SimulationController(cfg, rng_factory=traced_rng_factory)


@pytest.fixture
def default_config():
    return SimulationConfig(arrival_rate=3.0, service_rate=4.0, horizon=60.0,
                            tick_delta=0.1, random_seed=42)
