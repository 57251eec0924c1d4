# nbody.py
import math
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

import numpy as np

from config import config, ConfigurationError
from physics_utils import PhysicsError, ForceEvaluationError
from solarsystem import CelestialBody, system_energy, calculate_center_of_mass

AccelerationFunction = Callable[[np.ndarray], np.ndarray]

class IntegrationMethod(str, Enum):
    """Closed set of integration schemes selectable at runtime."""
    EULER = "euler"
    RK2 = "rk2"
    RK4 = "rk4"
    VERLET = "verlet"

    @classmethod
    def parse(cls, value) -> 'IntegrationMethod':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown integration method '{value}'. Supported: {', '.join(m.value for m in cls)}."
            )

class StepResult(NamedTuple):
    positions: np.ndarray
    velocities: np.ndarray
    start_acceleration: np.ndarray
    end_acceleration: Optional[np.ndarray] = None # a(t+dt), when the scheme computed it anyway

class Integrator:
    """Common contract: advance a whole body set by `dt` without mutating the inputs.

    `accel_fn` maps an (n, 3) position array to an (n, 3) acceleration array.
    `start_acceleration`, when given, must equal `accel_fn(positions)` and saves
    one force evaluation.
    """
    name = None
    order = None

    def advance(self, positions: np.ndarray, velocities: np.ndarray, dt: float,
                accel_fn: AccelerationFunction, start_acceleration: np.ndarray = None) -> StepResult:
        raise NotImplementedError

    @staticmethod
    def _start(positions, accel_fn, start_acceleration):
        return accel_fn(positions) if start_acceleration is None else start_acceleration

class EulerIntegrator(Integrator):
    """Semi-implicit Euler: v += a*dt, then x += v*dt. One force evaluation per step."""
    name = IntegrationMethod.EULER
    order = 1

    def advance(self, positions, velocities, dt, accel_fn, start_acceleration=None):
        a0 = self._start(positions, accel_fn, start_acceleration)
        new_velocities = velocities + a0 * dt
        new_positions = positions + new_velocities * dt
        return StepResult(new_positions, new_velocities, a0)

class RK2Integrator(Integrator):
    """Midpoint method. Two force evaluations per step."""
    name = IntegrationMethod.RK2
    order = 2

    def advance(self, positions, velocities, dt, accel_fn, start_acceleration=None):
        a0 = self._start(positions, accel_fn, start_acceleration)
        half_dt = 0.5 * dt
        mid_positions = positions + velocities * half_dt
        mid_velocities = velocities + a0 * half_dt
        a_mid = accel_fn(mid_positions)
        return StepResult(positions + mid_velocities * dt, velocities + a_mid * dt, a0)

class RK4Integrator(Integrator):
    """Classic fourth-order Runge-Kutta on the coupled (x, v) system. Four force evaluations per step."""
    name = IntegrationMethod.RK4
    order = 4

    def advance(self, positions, velocities, dt, accel_fn, start_acceleration=None):
        half_dt = 0.5 * dt

        k1_x = velocities
        k1_v = self._start(positions, accel_fn, start_acceleration)

        k2_x = velocities + k1_v * half_dt
        k2_v = accel_fn(positions + k1_x * half_dt)

        k3_x = velocities + k2_v * half_dt
        k3_v = accel_fn(positions + k2_x * half_dt)

        k4_x = velocities + k3_v * dt
        k4_v = accel_fn(positions + k3_x * dt)

        new_positions = positions + (dt / 6.0) * (k1_x + 2.0 * k2_x + 2.0 * k3_x + k4_x)
        new_velocities = velocities + (dt / 6.0) * (k1_v + 2.0 * k2_v + 2.0 * k3_v + k4_v)
        return StepResult(new_positions, new_velocities, k1_v)

class VerletIntegrator(Integrator):
    """Velocity Verlet (symplectic).

    x(t+dt) = x(t) + v(t)dt + 1/2 a(t)dt^2
    v(t+dt) = v(t) + 1/2 (a(t) + a(t+dt))dt
    a(t+dt) is returned so the next step can reuse it.
    """
    name = IntegrationMethod.VERLET
    order = 2

    def advance(self, positions, velocities, dt, accel_fn, start_acceleration=None):
        a0 = self._start(positions, accel_fn, start_acceleration)
        new_positions = positions + velocities * dt + 0.5 * a0 * (dt * dt)
        a1 = accel_fn(new_positions)
        new_velocities = velocities + 0.5 * (a0 + a1) * dt
        return StepResult(new_positions, new_velocities, a0, a1)

_INTEGRATORS: Dict[IntegrationMethod, Integrator] = {
    IntegrationMethod.EULER: EulerIntegrator(),
    IntegrationMethod.RK2: RK2Integrator(),
    IntegrationMethod.RK4: RK4Integrator(),
    IntegrationMethod.VERLET: VerletIntegrator(),
}

def get_integrator(method) -> Integrator:
    return _INTEGRATORS[IntegrationMethod.parse(method)]

def compute_acceleration_rows(positions: np.ndarray, masses: np.ndarray, start: int, stop: int,
                              G: float, softening: float = 0.0, min_distance: float = 0.0) -> np.ndarray:
    """
    Gravitational acceleration on bodies `start..stop-1` from every body.

    a_i = sum_j G m_j (r_j - r_i) / (|r_j - r_i|^2 + eps^2)^(3/2)

    Pairs closer than `min_distance` (including i == j) contribute nothing. Each row
    depends only on the full position/mass arrays, so any partition of the index
    range yields bit-identical rows.
    """
    block = np.zeros((stop - start, 3), dtype=np.float64)
    softening_sq = softening * softening
    min_distance_sq = min_distance * min_distance
    for row, i in enumerate(range(start, stop)):
        delta = positions - positions[i]
        dist_sq = np.sum(delta * delta, axis=1)
        interacting = dist_sq > min_distance_sq
        interacting[i] = False
        if not np.any(interacting):
            continue
        denom = np.where(interacting, (dist_sq + softening_sq) ** 1.5, 1.0)
        factor = np.where(interacting, G * masses / denom, 0.0)
        block[row] = np.sum(factor[:, np.newaxis] * delta, axis=0)
    return block

class ForceEvaluator:
    """Evaluates accelerations for a whole body set, fanning out over a fixed worker pool.

    The index range [0, n) is split into at most `worker_count` contiguous partitions,
    each evaluated by one pool task against the same read-only position snapshot.
    Results are written back by index, so completion order never affects the output.
    Body counts at or below `parallel_threshold` are evaluated on the calling thread.

    Attributes:
        G (float): Gravitational constant.
        worker_count (int): Size of the pool; fixed for the evaluator's lifetime.
        parallel_threshold (int): Largest body count evaluated sequentially.
        timeout (Optional[float]): Seconds to wait for all partitions; None waits forever.
        softening (float): Plummer softening length in meters.
        min_distance (float): Pairs closer than this contribute no force.
        enabled (bool): If False, never dispatches to the pool.
        evaluation_count (int): Number of completed evaluations.
        parallel_evaluation_count (int): How many of those used the pool.
    """

    def __init__(self, G: float = None, worker_count: int = None, parallel_threshold: int = None,
                 timeout: float = None, softening: float = None, min_distance: float = None,
                 enabled: bool = None):
        self.G = config.Physics.G if G is None else float(G)
        self.worker_count = int(config.Parallel.WORKER_COUNT if worker_count is None else worker_count)
        self.parallel_threshold = int(config.Parallel.PARALLEL_THRESHOLD if parallel_threshold is None else parallel_threshold)
        self.timeout = config.Parallel.WORKER_TIMEOUT_SECONDS if timeout is None else timeout
        self.softening = float(config.Physics.SOFTENING_LENGTH_M if softening is None else softening)
        self.min_distance = float(config.Physics.ZERO_DISTANCE_EPSILON_M if min_distance is None else min_distance)
        self.enabled = config.Parallel.ENABLED if enabled is None else bool(enabled)

        if self.worker_count < 1:
            raise ConfigurationError(f"ForceEvaluator worker_count must be at least 1, got {self.worker_count}.")
        if self.parallel_threshold < 1:
            raise ConfigurationError(f"ForceEvaluator parallel_threshold must be at least 1, got {self.parallel_threshold}.")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"ForceEvaluator timeout must be positive or None, got {self.timeout}.")
        if self.softening < 0 or self.min_distance < 0:
            raise ConfigurationError("ForceEvaluator softening and min_distance cannot be negative.")

        self._executor: Optional[ThreadPoolExecutor] = None
        self.evaluation_count = 0
        self.parallel_evaluation_count = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None
            logging.debug("Force evaluation worker pool shut down.")

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.worker_count, thread_name_prefix="force-worker")
            logging.debug(f"Started force evaluation worker pool with {self.worker_count} workers.")
        return self._executor

    def partition(self, body_count: int) -> List[Tuple[int, int]]:
        """Static contiguous [start, stop) ranges covering [0, body_count)."""
        if body_count <= 0:
            return []
        chunk = math.ceil(body_count / self.worker_count)
        return [(start, min(start + chunk, body_count)) for start in range(0, body_count, chunk)]

    def uses_parallel(self, body_count: int) -> bool:
        return self.enabled and self.worker_count > 1 and body_count > self.parallel_threshold

    def _compute_range(self, positions: np.ndarray, masses: np.ndarray, start: int, stop: int) -> np.ndarray:
        return compute_acceleration_rows(positions, masses, start, stop, self.G, self.softening, self.min_distance)

    def compute_accelerations(self, positions, masses) -> np.ndarray:
        """
        Accelerations (m/s^2) of every body, shape (n, 3).

        Raises:
            PhysicsError: If the input arrays are malformed.
            ForceEvaluationError: If any partition raises, does not report within
                `timeout`, or returns a block of the wrong shape. No partial result
                is ever returned.
        """
        positions = np.ascontiguousarray(positions, dtype=np.float64)
        masses = np.ascontiguousarray(masses, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] != 3 or masses.shape != (positions.shape[0],):
            raise PhysicsError(
                f"Force evaluation needs (n, 3) positions and (n,) masses, got {positions.shape} and {masses.shape}."
            )
        body_count = positions.shape[0]

        if not self.uses_parallel(body_count):
            accelerations = self._compute_range(positions, masses, 0, body_count)
            self.evaluation_count += 1
            return accelerations

        ranges = self.partition(body_count)
        if config.Debug.FORCE_EVALUATION:
            logging.debug(f"Dispatching force evaluation for {body_count} bodies over partitions {ranges}.")

        executor = self._get_executor()
        futures = [executor.submit(self._compute_range, positions, masses, start, stop) for start, stop in ranges]
        done, not_done = wait(futures, timeout=self.timeout)
        if not_done:
            for future in not_done:
                future.cancel()
            raise ForceEvaluationError(
                f"{len(not_done)} of {len(futures)} force partitions did not report within {self.timeout} s."
            )

        accelerations = np.empty((body_count, 3), dtype=np.float64)
        for (start, stop), future in zip(ranges, futures):
            try:
                block = future.result()
            except Exception as e:
                raise ForceEvaluationError(f"Force partition [{start}, {stop}) failed: {e}") from e
            block = np.asarray(block)
            if block.shape != (stop - start, 3):
                raise ForceEvaluationError(
                    f"Force partition [{start}, {stop}) returned shape {block.shape}, expected {(stop - start, 3)}."
                )
            accelerations[start:stop] = block

        self.evaluation_count += 1
        self.parallel_evaluation_count += 1
        return accelerations

class NBodyIntegrator:
    """Owns the ordered set of gravitating bodies and advances them through time.

    Mass policy: bodies with non-positive mass are rejected at add time. Every body in
    the set both attracts and is attracted.

    A step is transactional. All stages are computed from a snapshot of the body
    states and the results are committed only when every stage succeeded, so a
    failed force evaluation leaves the bodies exactly as they were.
    """

    def __init__(self, G: float = None, method=None, evaluator: ForceEvaluator = None):
        if evaluator is None:
            evaluator = ForceEvaluator(G=G)
        elif G is not None:
            evaluator.G = float(G)
        self.evaluator = evaluator
        self.method = IntegrationMethod.parse(method or config.Physics.DEFAULT_INTEGRATION_METHOD)
        self._bodies: List[CelestialBody] = []
        self._acceleration_cache: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]] = None
        self.step_count = 0
        self.integrated_time = 0.0

    @property
    def G(self) -> float:
        return self.evaluator.G

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        self.evaluator.close()

    # --- Body set management ---

    def add_body(self, body: CelestialBody):
        if not isinstance(body, CelestialBody):
            raise PhysicsError(f"Expected a CelestialBody, got {type(body).__name__}.")
        if not (body.mass > 0.0):
            raise PhysicsError(
                f"Body '{body.id}' has non-positive mass {body.mass} kg; only gravitating bodies can be integrated."
            )
        if any(existing.id == body.id for existing in self._bodies):
            raise PhysicsError(f"A body with id '{body.id}' is already being integrated.")
        self._bodies.append(body)
        self._acceleration_cache = None
        logging.debug(f"Added '{body.id}' to N-body integration ({len(self._bodies)} bodies).")

    def remove_body(self, body_id: str) -> bool:
        for index, body in enumerate(self._bodies):
            if body.id == body_id:
                del self._bodies[index]
                self._acceleration_cache = None
                return True
        return False

    def clear_bodies(self):
        self._bodies = []
        self._acceleration_cache = None

    def get_body(self, body_id: str) -> Optional[CelestialBody]:
        for body in self._bodies:
            if body.id == body_id:
                return body
        return None

    @property
    def bodies(self) -> Tuple[CelestialBody, ...]:
        return tuple(self._bodies)

    def get_body_count(self) -> int:
        return len(self._bodies)

    # --- Forces ---

    def _gather(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        positions = np.array([b.position for b in self._bodies], dtype=np.float64).reshape(-1, 3)
        velocities = np.array([b.velocity for b in self._bodies], dtype=np.float64).reshape(-1, 3)
        masses = np.array([b.mass for b in self._bodies], dtype=np.float64)
        return positions, velocities, masses

    def calculate_accelerations(self) -> np.ndarray:
        positions, _, masses = self._gather()
        return self.evaluator.compute_accelerations(positions, masses)

    def calculate_forces(self) -> np.ndarray:
        """Net gravitational force (N) on each body, in body order."""
        positions, _, masses = self._gather()
        return self.evaluator.compute_accelerations(positions, masses) * masses[:, np.newaxis]

    def invalidate_acceleration_cache(self):
        """Forgets a(t) carried over from the last step; needed after external edits to body state."""
        self._acceleration_cache = None

    def _cached_start_acceleration(self, positions: np.ndarray, masses: np.ndarray) -> Optional[np.ndarray]:
        if self._acceleration_cache is None:
            return None
        cached_positions, cached_masses, cached_acceleration = self._acceleration_cache
        if np.array_equal(cached_positions, positions) and np.array_equal(cached_masses, masses):
            return cached_acceleration
        return None

    # --- Stepping ---

    def step(self, dt: float):
        """
        Advances every body by `dt` seconds with the selected integration method.

        On success each body's `acceleration` holds a(t) at the start of the step.

        Raises:
            PhysicsError: For a non-positive or non-finite `dt`, or a step that produced
                non-finite state.
            ForceEvaluationError: If a force evaluation failed. Body state is unchanged.
        """
        if not (math.isfinite(dt) and dt > 0.0):
            raise PhysicsError(f"Integration time step must be positive and finite, got {dt}.")
        if not self._bodies:
            return

        positions, velocities, masses = self._gather()

        def accel_fn(stage_positions):
            return self.evaluator.compute_accelerations(stage_positions, masses)

        integrator = get_integrator(self.method)
        result = integrator.advance(positions, velocities, dt, accel_fn,
                                    self._cached_start_acceleration(positions, masses))

        if not (np.all(np.isfinite(result.positions)) and np.all(np.isfinite(result.velocities))):
            raise PhysicsError(
                f"{self.method.value} step of {dt} s produced non-finite positions or velocities; state left unchanged."
            )

        for index, body in enumerate(self._bodies):
            body.position = result.positions[index].copy()
            body.velocity = result.velocities[index].copy()
            body.acceleration = result.start_acceleration[index].copy()

        if result.end_acceleration is not None:
            self._acceleration_cache = (result.positions.copy(), masses, result.end_acceleration.copy())
        else:
            self._acceleration_cache = None

        self.step_count += 1
        self.integrated_time += dt

    def integrate(self, duration: float, dt: float) -> int:
        """Steps through `duration` seconds in increments of `dt`, finishing with a partial step if needed."""
        if duration < 0.0:
            raise PhysicsError(f"Integration duration cannot be negative, got {duration}.")
        if not (math.isfinite(dt) and dt > 0.0):
            raise PhysicsError(f"Integration time step must be positive and finite, got {dt}.")
        full_steps = int(duration // dt)
        for _ in range(full_steps):
            self.step(dt)
        remainder = duration - full_steps * dt
        steps_taken = full_steps
        if remainder > 1e-9 * dt:
            self.step(remainder)
            steps_taken += 1
        return steps_taken

    # --- State ---

    def get_state(self) -> Dict[str, Dict[str, np.ndarray]]:
        return {
            b.id: {'position': b.position.copy(), 'velocity': b.velocity.copy(), 'acceleration': b.acceleration.copy()}
            for b in self._bodies
        }

    def set_state(self, state: Dict[str, Dict[str, np.ndarray]]):
        unknown = [body_id for body_id in state if self.get_body(body_id) is None]
        if unknown:
            raise PhysicsError(f"Cannot set state for bodies not being integrated: {unknown}")
        for body_id, body_state in state.items():
            body = self.get_body(body_id)
            if 'position' in body_state:
                body.position = np.array(body_state['position'], dtype=np.float64).reshape(3)
            if 'velocity' in body_state:
                body.velocity = np.array(body_state['velocity'], dtype=np.float64).reshape(3)
            if 'acceleration' in body_state:
                body.acceleration = np.array(body_state['acceleration'], dtype=np.float64).reshape(3)
        self._acceleration_cache = None

    def calculate_total_energy(self) -> Dict[str, float]:
        positions, velocities, masses = self._gather()
        return system_energy(positions, velocities, masses, G=self.G, min_distance=self.evaluator.min_distance)

    def calculate_center_of_mass(self) -> Tuple[np.ndarray, np.ndarray, float]:
        return calculate_center_of_mass(list(self._bodies))

    def update_config(self, G: float = None, method=None, softening: float = None):
        if G is not None:
            if G <= 0:
                raise ConfigurationError(f"G must be positive, got {G}.")
            self.evaluator.G = float(G)
        if method is not None:
            self.method = IntegrationMethod.parse(method)
        if softening is not None:
            if softening < 0:
                raise ConfigurationError(f"Softening length cannot be negative, got {softening}.")
            self.evaluator.softening = float(softening)
        self._acceleration_cache = None
        logging.info(f"N-body integrator configuration: G={self.G}, method={self.method.value}, "
                     f"softening={self.evaluator.softening} m")
