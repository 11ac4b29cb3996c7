"""
M/M/1 Queue Simulation Engine
Features:
- Tick-driven event scheduling: an external driver advances logical time
- Inverse Transform Method for exponential variates (numpy RNG or LCG)
- Horizon truncation: no event is ever scheduled at or beyond the horizon
- Idle/Running/Paused/Complete run lifecycle with reproducible reset
- Event log, customer table and time series exports (pandas)
- Closed-form M/M/1 comparison and replication confidence intervals
"""

import heapq
import itertools
import json
import logging
import math
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

logger = logging.getLogger(__name__)


class SimulationError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(SimulationError, ValueError):
    """Rejected simulation parameters (caught before a run starts)."""


class InvariantViolation(SimulationError, AssertionError):
    """The engine's own bookkeeping is inconsistent. Never recoverable."""


class SimulationStateError(SimulationError):
    """A lifecycle command was issued in a state that does not allow it."""


class EventType(Enum):
    ARRIVAL = "ARRIVAL"
    DEPARTURE = "DEPARTURE"


class RunStatus(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETE = "COMPLETE"


class RateUnit(Enum):
    MINUTES = "Customers per minute"
    HOURS = "Customers per hour"


def to_per_minute(rate: float, unit: RateUnit) -> float:
    """Normalise a rate to customers per minute, the engine's time unit."""
    if unit == RateUnit.HOURS:
        return rate / 60.0
    return rate


# --- CORE COMPONENT: Linear Congruential Generator ---
class LCG:
    def __init__(self, seed: int, a: int = 16807, c: int = 0, m: int = 2147483647):
        self.state = seed if seed != 0 else 1
        self.a = a
        self.c = c
        self.m = m

    def random(self) -> float:
        self.state = (self.a * self.state + self.c) % self.m
        return self.state / self.m


@dataclass
class SimulationConfig:
    arrival_rate: float = 3.0     # lambda, customers per minute
    service_rate: float = 4.0     # mu, customers per minute
    horizon: float = 60.0         # minutes
    tick_delta: float = 0.1       # minutes of logical time per tick
    random_seed: Optional[int] = 42
    use_lcg: bool = False
    lcg_a: int = 16807
    lcg_c: int = 0
    lcg_m: int = 2147483647
    time_series_maxlen: Optional[int] = None
    record_event_log: bool = True

    def __post_init__(self):
        # `not x > 0` also rejects NaN
        if not self.arrival_rate > 0:
            raise ConfigurationError(f"arrival_rate must be > 0, got {self.arrival_rate}")
        if not self.service_rate > 0:
            raise ConfigurationError(f"service_rate must be > 0, got {self.service_rate}")
        if not self.horizon > 0:
            raise ConfigurationError(f"horizon must be > 0, got {self.horizon}")
        if not self.tick_delta > 0:
            raise ConfigurationError(f"tick_delta must be > 0, got {self.tick_delta}")
        if self.time_series_maxlen is not None and self.time_series_maxlen <= 0:
            raise ConfigurationError("time_series_maxlen must be positive or None")
        if self.use_lcg and self.lcg_m <= 1:
            raise ConfigurationError(f"lcg_m must be > 1, got {self.lcg_m}")

    def traffic_intensity(self) -> float:
        return self.arrival_rate / self.service_rate

    def to_dict(self) -> Dict:
        return {k: v for k, v in self.__dict__.items() if not k.startswith('_')}


# --- CORE COMPONENT: Variate Generator ---
class VariateGenerator:
    """Exponential variates by inverse transform over an injected U[0, 1) source.

    Any object with a ``random()`` method works as the source: a numpy
    ``Generator``, ``random.Random`` or :class:`LCG`.
    """

    def __init__(self, uniform_source: Any):
        self.source = uniform_source

    @classmethod
    def from_config(cls, config: SimulationConfig) -> "VariateGenerator":
        if config.use_lcg:
            seed = config.random_seed if config.random_seed else 12345
            return cls(LCG(seed=seed, a=config.lcg_a, c=config.lcg_c, m=config.lcg_m))
        return cls(np.random.default_rng(config.random_seed))

    def uniform(self) -> float:
        return float(self.source.random())

    def sample(self, rate: float) -> float:
        if not rate > 0:
            raise InvariantViolation(f"exponential rate must be positive, got {rate}")
        u = self.uniform()
        return -(math.log(1.0 - u)) / rate


@dataclass(frozen=True)
class Event:
    time: float
    event_type: EventType
    customer_id: int

    def __repr__(self):
        return f"Event({self.time:.4f}, {self.event_type.value}, C{self.customer_id})"


# Departures sort ahead of arrivals at the same instant so the server is
# freed before it is handed to the next customer.
_KIND_PRIORITY = {EventType.DEPARTURE: 0, EventType.ARRIVAL: 1}


# --- CORE COMPONENT: Event Scheduler ---
class EventScheduler:
    """Min-heap of pending events keyed by (time, kind, scheduling order)."""

    def __init__(self, horizon: float = math.inf):
        self.horizon = horizon
        self._heap: List[Tuple[float, int, int, Event]] = []
        self._sequence = itertools.count()

    def schedule(self, event: Event) -> None:
        if event.time < 0 or event.time >= self.horizon:
            raise InvariantViolation(f"{event!r} lies outside [0, {self.horizon})")
        heapq.heappush(self._heap, (event.time, _KIND_PRIORITY[event.event_type],
                                    next(self._sequence), event))
        logger.debug("Event scheduled: %r", event)

    def drain_up_to(self, target_time: float) -> Optional[Event]:
        """Pop the earliest event if it is due by ``target_time``, else None."""
        if not self._heap or self._heap[0][0] > target_time:
            return None
        event = heapq.heappop(self._heap)[-1]
        logger.debug("Event drained: %r", event)
        return event

    def peek_time(self) -> float:
        return self._heap[0][0] if self._heap else math.inf

    def __len__(self) -> int:
        return len(self._heap)

    def clear(self) -> None:
        self._heap.clear()
        self._sequence = itertools.count()


@dataclass
class Customer:
    customer_id: int
    arrival_time: float
    service_start_time: Optional[float] = None
    departure_time: Optional[float] = None
    scheduled_departure: Optional[float] = None

    @property
    def waiting_time(self) -> Optional[float]:
        if self.service_start_time is not None:
            return self.service_start_time - self.arrival_time
        return None

    @property
    def system_time(self) -> Optional[float]:
        if self.departure_time is not None:
            return self.departure_time - self.arrival_time
        return None

    @property
    def service_time(self) -> Optional[float]:
        if self.departure_time is not None and self.service_start_time is not None:
            return self.departure_time - self.service_start_time
        return None


# --- CORE COMPONENT: Customer Registry ---
class CustomerRegistry:
    """Owns every customer of a run. Ids are sequential from 1, never reused."""

    def __init__(self):
        self._customers: Dict[int, Customer] = {}
        self._next_id = 1

    def create(self, arrival_time: float) -> int:
        if arrival_time < 0:
            raise InvariantViolation(f"negative arrival time {arrival_time}")
        customer_id = self._next_id
        self._next_id += 1
        self._customers[customer_id] = Customer(customer_id, arrival_time)
        return customer_id

    def get(self, customer_id: int) -> Customer:
        try:
            return self._customers[customer_id]
        except KeyError:
            raise InvariantViolation(f"unknown customer {customer_id}") from None

    def mark_service_start(self, customer_id: int, time: float) -> None:
        customer = self.get(customer_id)
        if customer.service_start_time is not None:
            raise InvariantViolation(f"customer {customer_id} already started service")
        if time < customer.arrival_time:
            raise InvariantViolation(f"customer {customer_id} served before arriving")
        customer.service_start_time = time

    def mark_departure(self, customer_id: int, time: float) -> None:
        customer = self.get(customer_id)
        if customer.service_start_time is None:
            raise InvariantViolation(f"customer {customer_id} departs without a service start")
        if customer.departure_time is not None:
            raise InvariantViolation(f"customer {customer_id} already departed")
        if time < customer.service_start_time:
            raise InvariantViolation(f"customer {customer_id} departs before service start")
        customer.departure_time = time

    def __contains__(self, customer_id: int) -> bool:
        return customer_id in self._customers

    def __len__(self) -> int:
        return len(self._customers)

    def __iter__(self) -> Iterator[Customer]:
        return iter(self._customers.values())

    def clear(self) -> None:
        self._customers.clear()
        self._next_id = 1


# --- CORE COMPONENT: Server & FIFO Queue ---
class ServerQueueState:
    def __init__(self):
        self.occupant: Optional[int] = None
        self._queue: Deque[int] = deque()
        self._queued = set()

    def is_busy(self) -> bool: return self.occupant is not None
    def customers_in_queue(self) -> int: return len(self._queue)
    def customers_in_system(self) -> int: return len(self._queue) + (1 if self.is_busy() else 0)
    def queued_ids(self) -> Tuple[int, ...]: return tuple(self._queue)

    def occupy(self, customer_id: int) -> None:
        if self.occupant is not None:
            raise InvariantViolation(
                f"server busy with customer {self.occupant}, cannot take {customer_id}")
        if customer_id in self._queued:
            raise InvariantViolation(f"customer {customer_id} is still queued")
        self.occupant = customer_id

    def release(self) -> Optional[int]:
        previous, self.occupant = self.occupant, None
        return previous

    def enqueue(self, customer_id: int) -> None:
        if customer_id in self._queued or customer_id == self.occupant:
            raise InvariantViolation(f"customer {customer_id} is already in the system")
        self._queue.append(customer_id)
        self._queued.add(customer_id)

    def dequeue_next(self) -> Optional[int]:
        if not self._queue:
            return None
        customer_id = self._queue.popleft()
        self._queued.discard(customer_id)
        return customer_id

    def clear(self) -> None:
        self.occupant = None
        self._queue.clear()
        self._queued.clear()


@dataclass(frozen=True)
class RunStatistics:
    total_arrived: int = 0
    total_served: int = 0
    cumulative_wait_time: float = 0.0
    cumulative_system_time: float = 0.0
    cumulative_busy_time: float = 0.0
    max_queue_length: int = 0

    def mean_wait_time(self) -> float:
        return self.cumulative_wait_time / self.total_served if self.total_served > 0 else 0.0

    def mean_system_time(self) -> float:
        return self.cumulative_system_time / self.total_served if self.total_served > 0 else 0.0

    def mean_service_time(self) -> float:
        return self.cumulative_busy_time / self.total_served if self.total_served > 0 else 0.0

    def utilization(self, elapsed: float) -> float:
        return self.cumulative_busy_time / elapsed if elapsed > 0 else 0.0

    def throughput(self, elapsed: float) -> float:
        return self.total_served / elapsed if elapsed > 0 else 0.0

    def mean_queue_length(self, elapsed: float) -> float:
        # Little's law estimate of Lq
        return self.cumulative_wait_time / elapsed if elapsed > 0 else 0.0


# --- CORE COMPONENT: Statistics Accumulator ---
class StatisticsAccumulator:
    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.total_arrived = 0
        self.total_served = 0
        self.cumulative_wait_time = 0.0
        self.cumulative_system_time = 0.0
        self.cumulative_busy_time = 0.0
        self.max_queue_length = 0

    def record_arrival(self) -> None:
        self.total_arrived += 1

    def record_departure(self, wait_time: float, system_time: float, service_time: float) -> None:
        if wait_time < 0 or system_time < 0 or service_time < 0:
            raise InvariantViolation(
                f"negative durations wait={wait_time} system={system_time} service={service_time}")
        if self.total_served >= self.total_arrived:
            raise InvariantViolation("more departures than arrivals")
        self.total_served += 1
        self.cumulative_wait_time += wait_time
        self.cumulative_system_time += system_time
        self.cumulative_busy_time += service_time

    def observe_queue_length(self, length: int) -> None:
        if length > self.max_queue_length:
            self.max_queue_length = length

    def snapshot(self) -> RunStatistics:
        return RunStatistics(
            total_arrived=self.total_arrived,
            total_served=self.total_served,
            cumulative_wait_time=self.cumulative_wait_time,
            cumulative_system_time=self.cumulative_system_time,
            cumulative_busy_time=self.cumulative_busy_time,
            max_queue_length=self.max_queue_length,
        )


@dataclass(frozen=True)
class RunState:
    logical_time: float = 0.0
    customers_in_system: int = 0
    customers_in_queue: int = 0
    server_busy: bool = False


@dataclass(frozen=True)
class TimeSample:
    time: float
    customers_in_system: int


@dataclass(frozen=True)
class TickResult:
    state: RunState
    statistics: RunStatistics
    queued_ids: Tuple[int, ...] = ()
    events_applied: int = 0
    status: RunStatus = RunStatus.RUNNING


class TimeSeries:
    """Append-only (time, customers_in_system) samples, one per applied event.

    With ``maxlen`` set only the newest samples are retained; ``sink`` still
    receives every sample as it is produced. ``since(n)`` lets a polling
    driver pick up where it left off using the global sample index.
    """

    def __init__(self, maxlen: Optional[int] = None,
                 sink: Optional[Callable[[TimeSample], None]] = None):
        self.maxlen = maxlen
        self.sink = sink
        self._samples: Deque[TimeSample] = deque(maxlen=maxlen)
        self.total_appended = 0

    def append(self, time: float, customers_in_system: int) -> TimeSample:
        if self._samples and time < self._samples[-1].time:
            raise InvariantViolation(f"time series moved backwards to {time}")
        sample = TimeSample(time, customers_in_system)
        self._samples.append(sample)
        self.total_appended += 1
        if self.sink is not None:
            self.sink(sample)
        return sample

    @property
    def dropped(self) -> int:
        return self.total_appended - len(self._samples)

    def since(self, index: int) -> List[TimeSample]:
        start = max(index - self.dropped, 0)
        return list(itertools.islice(self._samples, start, None))

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[TimeSample]:
        return iter(self._samples)

    def clear(self) -> None:
        self._samples.clear()
        self.total_appended = 0


@dataclass
class EventLogEntry:
    event_number: int
    clock_time: float
    event_type: str
    customer_id: int
    queue_length_before: int
    queue_length_after: int
    server_busy: bool
    customers_in_system: int
    cumulative_arrivals: int
    cumulative_departures: int


# --- CORE COMPONENT: Simulation Controller ---
class SimulationController:
    """Drives one M/M/1 run forward one tick at a time.

    The controller exclusively owns the scheduler, registry, server/queue and
    statistics of the current run. Drivers call :meth:`start`, then
    :meth:`tick` until :attr:`status` is ``COMPLETE``; :meth:`pause`,
    :meth:`resume` and :meth:`reset` manage the lifecycle.

    ``rng_factory`` returns a fresh uniform source for every run so that a
    reset replays the same stream; by default it is built from the config seed.
    """

    def __init__(self, config: SimulationConfig,
                 rng_factory: Optional[Callable[[], Any]] = None,
                 time_series_sink: Optional[Callable[[TimeSample], None]] = None):
        self.config = config
        self.rng_factory = rng_factory
        self.time_series_sink = time_series_sink
        self.status = RunStatus.IDLE
        self._build_components()

    def _build_components(self):
        if self.rng_factory is not None:
            self.variates = VariateGenerator(self.rng_factory())
        else:
            self.variates = VariateGenerator.from_config(self.config)
        self.scheduler = EventScheduler(horizon=self.config.horizon)
        self.customers = CustomerRegistry()
        self.server = ServerQueueState()
        self.stats = StatisticsAccumulator()
        self.time_series = TimeSeries(self.config.time_series_maxlen, self.time_series_sink)
        self.event_log: List[EventLogEntry] = []
        self.logical_time = 0.0
        self.event_counter = 0

    # --- Lifecycle ---
    def start(self) -> None:
        if self.status == RunStatus.PAUSED:
            self.resume()
            return
        if self.status == RunStatus.RUNNING:
            return
        if self.status == RunStatus.COMPLETE:
            raise SimulationStateError("run is complete; reset() before starting again")
        self._build_components()
        self._schedule_arrival(self.variates.sample(self.config.arrival_rate))
        self.status = RunStatus.RUNNING
        logger.info("Simulation started: lambda=%.4f mu=%.4f horizon=%.4f seed=%s",
                    self.config.arrival_rate, self.config.service_rate,
                    self.config.horizon, self.config.random_seed)

    def pause(self) -> None:
        if self.status != RunStatus.RUNNING:
            logger.debug("pause() ignored in state %s", self.status.value)
            return
        self.status = RunStatus.PAUSED
        logger.info("Simulation paused at t=%.4f", self.logical_time)

    def resume(self) -> None:
        if self.status != RunStatus.PAUSED:
            raise SimulationStateError(f"cannot resume from state {self.status.value}")
        self.status = RunStatus.RUNNING
        logger.info("Simulation resumed at t=%.4f", self.logical_time)

    def reset(self) -> None:
        self._build_components()
        self.status = RunStatus.IDLE
        logger.info("Simulation reset")

    @property
    def is_complete(self) -> bool:
        return self.status == RunStatus.COMPLETE

    # --- Ticking ---
    def tick(self, delta: Optional[float] = None) -> TickResult:
        if self.status != RunStatus.RUNNING:
            raise SimulationStateError(
                f"tick() requires a running simulation (status={self.status.value})")
        if delta is None:
            delta = self.config.tick_delta
        if not delta > 0:
            raise ValueError(f"tick delta must be > 0, got {delta}")

        new_time = min(self.logical_time + delta, self.config.horizon)
        applied = 0
        while True:
            event = self.scheduler.drain_up_to(new_time)
            if event is None:
                break
            self._apply(event)
            applied += 1

        self.logical_time = new_time
        if new_time >= self.config.horizon:
            self.status = RunStatus.COMPLETE
            logger.info("Simulation complete: arrived=%d served=%d in_system=%d",
                        self.stats.total_arrived, self.stats.total_served,
                        self.server.customers_in_system())
        return self._result(applied)

    def run_to_completion(self, delta: Optional[float] = None) -> TickResult:
        if self.status != RunStatus.COMPLETE:
            self.start()
        result = self._result(0)
        while self.status == RunStatus.RUNNING:
            result = self.tick(delta)
        return result

    # --- Event handling ---
    def _apply(self, event: Event):
        if event.event_type == EventType.ARRIVAL:
            self._handle_arrival(event)
        elif event.event_type == EventType.DEPARTURE:
            self._handle_departure(event)
        else:
            raise InvariantViolation(f"unhandled event kind {event.event_type!r}")

    def _handle_arrival(self, event: Event):
        t = event.time
        customer = self.customers.get(event.customer_id)
        if customer.arrival_time != t:
            raise InvariantViolation(f"{event!r} does not match arrival time {customer.arrival_time}")
        queue_before = self.server.customers_in_queue()
        self.stats.record_arrival()

        if self.server.is_busy():
            self.server.enqueue(customer.customer_id)
            self.stats.observe_queue_length(self.server.customers_in_queue())
            label = "ARRIVAL (QUEUE)"
        else:
            self._start_service(customer.customer_id, t)
            label = "ARRIVAL (SERVE)"

        self._schedule_arrival(t + self.variates.sample(self.config.arrival_rate))
        self._record(event, label, queue_before)

    def _handle_departure(self, event: Event):
        t = event.time
        if self.server.occupant != event.customer_id:
            raise InvariantViolation(
                f"{event!r} but the server holds customer {self.server.occupant}")
        customer = self.customers.get(event.customer_id)
        if customer.service_start_time is None:
            raise InvariantViolation(f"customer {customer.customer_id} departs without a service start")
        queue_before = self.server.customers_in_queue()

        self.stats.record_departure(
            wait_time=customer.service_start_time - customer.arrival_time,
            system_time=t - customer.arrival_time,
            service_time=t - customer.service_start_time,
        )
        self.customers.mark_departure(customer.customer_id, t)
        self.server.release()

        next_id = self.server.dequeue_next()
        if next_id is not None:
            self._start_service(next_id, t)
            label = "DEPARTURE (NEXT)"
        else:
            label = "DEPARTURE (IDLE)"
        self._record(event, label, queue_before)

    def _start_service(self, customer_id: int, t: float):
        self.server.occupy(customer_id)
        self.customers.mark_service_start(customer_id, t)
        departure_time = t + self.variates.sample(self.config.service_rate)
        if departure_time < self.config.horizon:
            self.scheduler.schedule(Event(departure_time, EventType.DEPARTURE, customer_id))
            self.customers.get(customer_id).scheduled_departure = departure_time
        else:
            logger.debug("Departure of C%d at t=%.4f truncated by horizon", customer_id, departure_time)

    def _schedule_arrival(self, t: float) -> Optional[int]:
        if t >= self.config.horizon:
            logger.debug("Arrival at t=%.4f truncated by horizon", t)
            return None
        customer_id = self.customers.create(t)
        self.scheduler.schedule(Event(t, EventType.ARRIVAL, customer_id))
        return customer_id

    def _record(self, event: Event, label: str, queue_before: int):
        in_system = self.server.customers_in_system()
        self.time_series.append(event.time, in_system)
        self.event_counter += 1
        if self.config.record_event_log:
            self.event_log.append(EventLogEntry(
                self.event_counter, event.time, label, event.customer_id,
                queue_before, self.server.customers_in_queue(), self.server.is_busy(),
                in_system, self.stats.total_arrived, self.stats.total_served))

    # --- Snapshots ---
    def state(self) -> RunState:
        return RunState(
            logical_time=self.logical_time,
            customers_in_system=self.server.customers_in_system(),
            customers_in_queue=self.server.customers_in_queue(),
            server_busy=self.server.is_busy(),
        )

    def statistics(self) -> RunStatistics:
        return self.stats.snapshot()

    def queued_ids(self) -> Tuple[int, ...]:
        return self.server.queued_ids()

    def _result(self, applied: int) -> TickResult:
        return TickResult(self.state(), self.statistics(), self.queued_ids(), applied, self.status)

    # --- Data Export Helpers ---
    def get_event_log_dataframe(self) -> pd.DataFrame:
        if not self.event_log: return pd.DataFrame()
        return pd.DataFrame([vars(e) for e in self.event_log])

    def get_customer_table_dataframe(self) -> pd.DataFrame:
        if not len(self.customers): return pd.DataFrame()
        data = []
        for c in self.customers:
            d = vars(c).copy()
            d['waiting_time'] = c.waiting_time
            d['system_time'] = c.system_time
            d['service_time'] = c.service_time
            data.append(d)
        return pd.DataFrame(data)

    def get_time_series_dataframe(self) -> pd.DataFrame:
        if not len(self.time_series): return pd.DataFrame(columns=['time', 'customers_in_system'])
        return pd.DataFrame([vars(s) for s in self.time_series])

    def export_to_json(self) -> str:
        stats = self.statistics()
        export_data = {'config': self.config.to_dict(),
            'status': self.status.value,
            'logical_time': self.logical_time,
            'statistics': vars(stats),
            'summary': summarize(stats, self.logical_time),
            'event_log': [vars(e) for e in self.event_log]}
        return json.dumps(export_data, indent=2, default=str)


# --- Analysis Helpers ---
def summarize(stats: RunStatistics, elapsed: float) -> Dict[str, float]:
    return {
        'total_arrived': stats.total_arrived,
        'total_served': stats.total_served,
        'max_queue_length': stats.max_queue_length,
        'average_waiting_time': stats.mean_wait_time(),
        'average_system_time': stats.mean_system_time(),
        'average_service_time': stats.mean_service_time(),
        'average_queue_length': stats.mean_queue_length(elapsed),
        'server_utilization': stats.utilization(elapsed),
        'throughput': stats.throughput(elapsed),
    }


def compute_mm1_theoretical(lam: float, mu: float) -> Dict:
    rho = lam / mu
    if rho >= 1:
        return {'stable': False, 'rho': rho, 'Lq': math.inf, 'Wq': math.inf, 'L': math.inf, 'W': math.inf}
    Lq = rho * rho / (1 - rho)
    Wq = Lq / lam
    W = Wq + 1 / mu
    L = lam * W
    return {'stable': True, 'rho': rho, 'Lq': Lq, 'Wq': Wq, 'L': L, 'W': W}


def compare_with_theory(stats: RunStatistics, elapsed: float, lam: float, mu: float) -> List[Dict]:
    theo = compute_mm1_theoretical(lam, mu)
    rows = [
        ("ρ (Utilization)", theo['rho'], stats.utilization(elapsed)),
        ("Wq (Wait)", theo['Wq'], stats.mean_wait_time()),
        ("W (System)", theo['W'], stats.mean_system_time()),
        ("Lq (Queue)", theo['Lq'], stats.mean_queue_length(elapsed)),
    ]
    return [{'Metric': name, 'Theoretical': t, 'Simulated': s, 'Abs Error': abs(s - t)}
            for name, t, s in rows]


def compute_confidence_interval(data: List[float], confidence: float = 0.95) -> Tuple[float, float, float]:
    if len(data) < 2:
        m = float(np.mean(data)) if len(data) else 0.0
        return m, m, m
    n = len(data)
    m = float(np.mean(data))
    se = scipy_stats.sem(data)
    if se == 0:
        return m, m, m
    h = se * scipy_stats.t.ppf((1 + confidence) / 2, n - 1)
    return m, m - h, m + h


def run_replications(config: SimulationConfig, num_reps: int = 10, confidence: float = 0.95) -> Dict:
    results: Dict[str, List[float]] = {'Wq': [], 'W': [], 'Lq': [], 'utilization': [],
                                       'throughput': [], 'max_queue_length': []}
    base_seed = config.random_seed if config.random_seed else 12345
    for i in range(num_reps):
        rep_cfg = replace(config, random_seed=base_seed + i * 997, record_event_log=False)
        sim = SimulationController(rep_cfg)
        stats = sim.run_to_completion().statistics
        results['Wq'].append(stats.mean_wait_time())
        results['W'].append(stats.mean_system_time())
        results['Lq'].append(stats.mean_queue_length(rep_cfg.horizon))
        results['utilization'].append(stats.utilization(rep_cfg.horizon))
        results['throughput'].append(stats.throughput(rep_cfg.horizon))
        results['max_queue_length'].append(float(stats.max_queue_length))
    ci_results = {}
    for key, vals in results.items():
        m, lo, hi = compute_confidence_interval(vals, confidence)
        ci_results[key] = {'mean': m, 'lower': lo, 'upper': hi, 'std': float(np.std(vals)), 'values': vals}
    return ci_results
