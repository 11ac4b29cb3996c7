import pytest

from mm1_engine import (
    ConfigurationError,
    Event,
    EventType,
    InvariantViolation,
    RunState,
    RunStatus,
    SimulationConfig,
    SimulationController,
    SimulationStateError,
)


def tick_until(sim, t):
    result = None
    while sim.logical_time < t - 1e-9:
        result = sim.tick()
    return result


# --- Lifecycle ---

def test_new_controller_is_idle(default_config):
    sim = SimulationController(default_config)
    assert sim.status == RunStatus.IDLE
    assert sim.state() == RunState()
    assert len(sim.scheduler) == 0


def test_tick_requires_running(default_config):
    sim = SimulationController(default_config)
    with pytest.raises(SimulationStateError):
        sim.tick()


def test_start_seeds_first_arrival(default_config):
    sim = SimulationController(default_config)
    sim.start()
    assert sim.status == RunStatus.RUNNING
    assert sim.logical_time == 0.0
    assert len(sim.scheduler) == 1
    assert len(sim.customers) == 1
    assert sim.customers.get(1).arrival_time == sim.scheduler.peek_time()


def test_pause_blocks_ticks_and_resume_continues(default_config):
    sim = SimulationController(default_config)
    sim.start()
    sim.tick()
    sim.pause()
    assert sim.status == RunStatus.PAUSED
    with pytest.raises(SimulationStateError):
        sim.tick()
    frozen = sim.state()
    sim.resume()
    assert sim.status == RunStatus.RUNNING
    assert sim.state() == frozen
    sim.tick()
    assert sim.logical_time == pytest.approx(0.2)


def test_start_from_paused_resumes_without_reinitialising(default_config):
    sim = SimulationController(default_config)
    sim.start()
    tick_until(sim, 5.0)
    before = sim.statistics()
    sim.pause()
    sim.start()
    assert sim.status == RunStatus.RUNNING
    assert sim.logical_time == pytest.approx(5.0)
    assert sim.statistics() == before


def test_pause_outside_running_is_a_no_op(default_config):
    sim = SimulationController(default_config)
    sim.pause()
    assert sim.status == RunStatus.IDLE


def test_resume_requires_paused(default_config):
    sim = SimulationController(default_config)
    with pytest.raises(SimulationStateError):
        sim.resume()


def test_start_while_running_is_a_no_op(default_config):
    sim = SimulationController(default_config)
    sim.start()
    sim.tick()
    state = sim.state()
    sim.start()
    assert sim.state() == state


def test_completes_at_horizon_and_refuses_restart(default_config):
    sim = SimulationController(default_config)
    result = sim.run_to_completion()
    assert result.status == RunStatus.COMPLETE
    assert sim.is_complete
    assert sim.logical_time == default_config.horizon
    with pytest.raises(SimulationStateError):
        sim.tick()
    with pytest.raises(SimulationStateError):
        sim.start()


def test_reset_returns_to_idle_with_zero_statistics(default_config):
    sim = SimulationController(default_config)
    sim.start()
    tick_until(sim, 30.0)
    sim.reset()
    assert sim.status == RunStatus.IDLE
    assert sim.logical_time == 0.0
    assert sim.statistics().total_arrived == 0
    assert len(sim.scheduler) == 0
    assert len(sim.customers) == 0
    assert len(sim.time_series) == 0
    assert sim.event_log == []
    assert not sim.server.is_busy()


def test_last_tick_is_clamped_to_horizon():
    cfg = SimulationConfig(horizon=1.0, tick_delta=0.3)
    sim = SimulationController(cfg)
    sim.start()
    times = []
    while not sim.is_complete:
        times.append(sim.tick().state.logical_time)
    assert times[-1] == 1.0
    assert len(times) == 4


def test_explicit_delta_overrides_config(default_config):
    sim = SimulationController(default_config)
    sim.start()
    assert sim.tick(2.5).state.logical_time == pytest.approx(2.5)
    with pytest.raises(ValueError):
        sim.tick(0.0)


# --- Hand-traced scenario ---

def test_traced_scenario_step_by_step(traced_controller):
    sim = traced_controller
    sim.start()
    assert sim.customers.get(1).arrival_time == pytest.approx(0.9)

    r = tick_until(sim, 0.75)
    assert r.state.customers_in_system == 0
    assert r.statistics.total_arrived == 0

    r = sim.tick()  # to 1.0: C1 arrives and starts service
    assert r.events_applied == 1
    assert r.state.server_busy
    assert r.state.customers_in_queue == 0
    assert sim.customers.get(1).service_start_time == pytest.approx(0.9)
    assert sim.customers.get(1).scheduled_departure == pytest.approx(2.9)
    assert sim.customers.get(1).departure_time is None

    r = tick_until(sim, 2.0)  # C2 at 1.4, C3 at 1.9 both queue
    assert r.queued_ids == (2, 3)
    assert r.state.customers_in_system == 3
    assert r.statistics.total_arrived == 3
    assert r.statistics.max_queue_length == 2

    r = tick_until(sim, 3.0)  # C1 departs, C2 starts
    assert r.statistics.total_served == 1
    assert sim.server.occupant == 2
    assert r.queued_ids == (3,)
    assert sim.customers.get(2).service_start_time == pytest.approx(2.9)

    r = tick_until(sim, 4.0)  # C2 departs, C3 starts; its departure lies past the horizon
    assert r.statistics.total_served == 2
    assert sim.server.occupant == 3
    assert sim.customers.get(3).scheduled_departure is None
    assert len(sim.scheduler) == 0


def test_traced_scenario_final_statistics(traced_controller):
    sim = traced_controller
    result = sim.run_to_completion()
    stats = result.statistics
    assert stats.total_arrived == 3
    assert stats.total_served == 2
    assert stats.cumulative_wait_time == pytest.approx(1.5)
    assert stats.cumulative_system_time == pytest.approx(4.5)
    assert stats.cumulative_busy_time == pytest.approx(3.0)
    assert stats.max_queue_length == 2
    # C3 is truncated: still in service, never departs
    assert result.state == RunState(logical_time=10.0, customers_in_system=1,
                                    customers_in_queue=0, server_busy=True)
    assert sim.customers.get(3).departure_time is None
    assert len(sim.customers) == 3


def test_traced_scenario_time_series(traced_controller):
    sim = traced_controller
    sim.run_to_completion()
    samples = [(round(s.time, 6), s.customers_in_system) for s in sim.time_series]
    assert samples == [(0.9, 1), (1.4, 2), (1.9, 3), (2.9, 2), (3.9, 1)]


def test_traced_scenario_event_log(traced_controller):
    sim = traced_controller
    sim.run_to_completion()
    labels = [e.event_type for e in sim.event_log]
    assert labels == ["ARRIVAL (SERVE)", "ARRIVAL (QUEUE)", "ARRIVAL (QUEUE)",
                      "DEPARTURE (NEXT)", "DEPARTURE (NEXT)"]
    assert [e.queue_length_after for e in sim.event_log] == [0, 1, 2, 1, 0]
    assert sim.event_log[-1].cumulative_departures == 2


def test_single_tick_can_apply_many_events(traced_controller):
    sim = traced_controller
    sim.start()
    result = sim.tick(5.0)
    assert result.events_applied == 5
    assert result.statistics.total_served == 2


def test_event_log_can_be_disabled(traced_rng_factory):
    cfg = SimulationConfig(arrival_rate=1.0, service_rate=1.0, horizon=10.0,
                           tick_delta=0.25, record_event_log=False)
    sim = SimulationController(cfg, rng_factory=traced_rng_factory)
    sim.run_to_completion()
    assert sim.event_log == []
    assert len(sim.time_series) == 5


# --- Invariant violations surface as fatal errors ---

def test_departure_for_non_occupant_is_fatal(default_config):
    sim = SimulationController(default_config)
    sim.start()
    bogus = sim.customers.create(0.01)
    sim.scheduler.schedule(Event(0.01, EventType.DEPARTURE, bogus))
    with pytest.raises(InvariantViolation):
        sim.tick()


def test_arrival_for_unknown_customer_is_fatal(default_config):
    sim = SimulationController(default_config)
    sim.start()
    sim.scheduler.schedule(Event(0.01, EventType.ARRIVAL, 999))
    with pytest.raises(InvariantViolation):
        sim.tick()


# --- Configuration errors ---

@pytest.mark.parametrize("kwargs", [
    {"arrival_rate": 0.0},
    {"arrival_rate": -3.0},
    {"service_rate": 0.0},
    {"horizon": 0.0},
    {"horizon": -1.0},
    {"tick_delta": 0.0},
    {"time_series_maxlen": 0},
    {"arrival_rate": float("nan")},
])
def test_invalid_configuration_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        SimulationConfig(**kwargs)


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        SimulationConfig(service_rate=-1.0)


def test_traffic_intensity(default_config):
    assert default_config.traffic_intensity() == pytest.approx(0.75)
