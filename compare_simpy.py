"""
Validation Test: Tick-Driven Engine vs. SimPy
---------------------------------------------
Runs a head-to-head comparison between:
1. The SimulationController from mm1_engine (event scheduling, driven by ticks)
2. SimPy (process interaction)

Scenario: M/M/1 Queue
- Arrival Rate (lambda): 3.0 customers/min
- Service Rate (mu): 4.0 customers/min
- Theoretical Avg Wait (Wq): 0.75 min
- Horizon: 20,000 minutes (to ensure convergence)
"""

from typing import Dict, List

import numpy as np
import simpy

from mm1_engine import SimulationConfig, SimulationController, compute_mm1_theoretical


class SimPyModel:
    def __init__(self, arr_rate: float, svc_rate: float, max_time: float, seed: int = 42):
        self.env = simpy.Environment()
        self.server = simpy.Resource(self.env, capacity=1)
        self.arr_rate = arr_rate
        self.svc_rate = svc_rate
        self.max_time = max_time
        self.wait_times: List[float] = []
        self.rng = np.random.default_rng(seed)

    def customer_generator(self):
        i = 0
        while True:
            # numpy exponential takes the scale (1 / rate)
            yield self.env.timeout(self.rng.exponential(1.0 / self.arr_rate))
            i += 1
            self.env.process(self.customer_process(i))

    def customer_process(self, customer_id: int):
        arrival_time = self.env.now
        with self.server.request() as request:
            yield request
            self.wait_times.append(self.env.now - arrival_time)
            yield self.env.timeout(self.rng.exponential(1.0 / self.svc_rate))

    def run(self) -> float:
        self.env.process(self.customer_generator())
        self.env.run(until=self.max_time)
        return float(np.mean(self.wait_times)) if self.wait_times else 0.0


def run_tick_engine(arr_rate: float, svc_rate: float, max_time: float,
                    seed: int = 42, delta: float = 1.0) -> float:
    cfg = SimulationConfig(arrival_rate=arr_rate, service_rate=svc_rate, horizon=max_time,
                           tick_delta=delta, random_seed=seed, record_event_log=False)
    result = SimulationController(cfg).run_to_completion()
    return result.statistics.mean_wait_time()


def run_head_to_head_validation(arr_rate: float = 3.0, svc_rate: float = 4.0,
                                time: float = 20000.0, seed: int = 42) -> Dict:
    """Runs a single comparison between the tick-driven engine and SimPy."""
    theo = compute_mm1_theoretical(arr_rate, svc_rate)
    engine_wq = run_tick_engine(arr_rate, svc_rate, time, seed)
    simpy_wq = SimPyModel(arr_rate, svc_rate, time, seed).run()
    return {
        "theoretical_wq": theo['Wq'],
        "has_theory": theo['stable'],
        "engine_wq": engine_wq,
        "simpy_wq": simpy_wq,
        "diff": abs(engine_wq - simpy_wq),
    }


if __name__ == "__main__":
    LAMBDA = 3.0
    MU = 4.0
    TIME = 20000.0

    print("--- SIMULATION CONFIGURATION ---")
    print(f"Arrival Rate (λ): {LAMBDA}")
    print(f"Service Rate (μ): {MU}")
    print(f"Time Horizon:     {TIME} minutes")
    print("-" * 40)

    res = run_head_to_head_validation(LAMBDA, MU, TIME)
    theo_wq = res['theoretical_wq']
    print(f"THEORETICAL Target (Wq): {theo_wq:.5f} min")
    print("-" * 40)

    print("\n--- FINAL RESULTS ---")
    print(f"Tick Engine Wq: {res['engine_wq']:.5f} min  (Error: {abs(res['engine_wq']-theo_wq)/theo_wq*100:.2f}%)")
    print(f"SimPy Model Wq: {res['simpy_wq']:.5f} min  (Error: {abs(res['simpy_wq']-theo_wq)/theo_wq*100:.2f}%)")
    print(f"\nDifference between Engines: {res['diff']:.6f} min")

    if res['diff'] < 0.1:
        print("\nSUCCESS: the tick-driven engine matches SimPy.")
    else:
        print("\nWARNING: Significant divergence detected.")
