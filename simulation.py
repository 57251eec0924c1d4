# simulation.py
import math
import time
import logging
import warnings
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np

from config import config, ConfigurationError, SECONDS_PER_DAY
from physics_utils import PhysicsError, safe_divide, orbital_state_at
from solarsystem import CelestialBody, build_solar_system, calculate_center_of_mass
from nbody import NBodyIntegrator, ForceEvaluator, IntegrationMethod
from time_utils import (date_to_julian_date, julian_date_to_date, seconds_since_j2000, now_julian_date,
                        is_valid_simulation_date, calculate_time_step)

REFERENCE_FRAMES = ("heliocentric", "barycentric")

class SimulationStateError(Exception):
    """Raised for control operations that do not fit the engine's current body set."""
    pass

class EngineState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"

@dataclass
class TickResult:
    """Outcome of one `SimulationEngine.update` call.

    Attributes:
        idle (bool): True when the engine was stopped or paused and nothing advanced.
        steps_taken (int): Whole physics steps integrated during the tick.
        step_cap_hit (bool): True if `MAX_STEPS_PER_UPDATE` limited the tick.
        dropped_seconds (float): Simulated time discarded because of the step cap.
        simulation_time_julian (float): Calendar time (JD) after the tick.
        snapshot (Optional[Dict]): Published body states, None when idle or failed.
        error (Optional[Exception]): Exception raised while ticking, if any.
        warnings (List[Warning]): Warnings emitted while ticking.
        wall_time (float): Seconds of wall-clock time the tick took.
    """
    idle: bool = False
    steps_taken: int = 0
    step_cap_hit: bool = False
    dropped_seconds: float = 0.0
    simulation_time_julian: float = 0.0
    snapshot: Optional[Dict[str, Dict[str, object]]] = None
    error: Optional[Exception] = None
    warnings: List[Warning] = field(default_factory=list)
    wall_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

class SimulationEngine:
    """Fixed-timestep clock driving N-body integration and Keplerian propagation.

    Wall-clock deltas are scaled by `simulation_speed` into simulated seconds. The
    calendar time (`simulation_time_julian`) advances by that amount on every tick,
    while the physics consumes it in whole `time_step` increments through an
    accumulator. At most `config.Time.MAX_STEPS_PER_UPDATE` steps are taken per tick;
    time beyond that is dropped and reported on the tick result.

    Bodies flagged `keplerian` are placed by closed-form propagation at the calendar
    time (relative to their primary when `central_body_id` is set). All other bodies
    are integrated together by an `NBodyIntegrator`.

    State machine: stopped -> running <-> paused -> stopped. Invalid transitions log a
    warning and return False.

    Attributes:
        time_step (float): Physics step, simulated seconds.
        simulation_speed (float): Simulated seconds per wall-clock second.
        accumulator (float): Simulated seconds not yet consumed by a whole step.
        simulation_time_julian (float): Current calendar time as a Julian Date.
        reference_frame (str): Frame applied to published snapshots.
        time_desynchronized (bool): True after an absolute time jump while N-body
            bodies were present; their states then lag the calendar time.
        integrator (NBodyIntegrator): Integrator owning the N-body subset.
        step_count (int): Physics steps taken since construction or the last reset.
    """

    def __init__(self, time_step: float = None, simulation_speed: float = None, integration_method=None,
                 worker_count: int = None, parallel_threshold: int = None, G: float = None,
                 start_time: datetime = None, reference_frame: str = None):
        try:
            self.time_step = self._validated_time_step(config.Physics.TIMESTEP_SECONDS if time_step is None else time_step)
            self.simulation_speed = self._validated_speed(
                config.Time.DEFAULT_SIMULATION_SPEED if simulation_speed is None else simulation_speed)
            self.reference_frame = self._validated_frame(
                config.Coordinates.DEFAULT_REFERENCE_FRAME if reference_frame is None else reference_frame)

            evaluator = ForceEvaluator(G=G, worker_count=worker_count, parallel_threshold=parallel_threshold)
            self.integrator = NBodyIntegrator(method=integration_method, evaluator=evaluator)
        except ConfigurationError as e:
            logging.critical(f"SimulationEngine initialization failed due to ConfigurationError: {e}", exc_info=True)
            raise

        # An explicit start time is where reset() returns to; otherwise reset() returns to "now"
        self._fixed_start_jd: Optional[float] = None
        if start_time is not None:
            self._fixed_start_jd = self._validated_julian_date(start_time)
        self.simulation_time_julian = self._fixed_start_jd if self._fixed_start_jd is not None else now_julian_date()

        self.state = EngineState.STOPPED
        self.accumulator = 0.0
        self.time_desynchronized = False
        self._bodies: Dict[str, CelestialBody] = {}

        self.step_count = 0
        self.tick_count = 0
        self.dropped_time_total = 0.0
        self._last_step_wall_time = 0.0
        self._total_step_wall_time = 0.0
        self._last_tick_wall_time = 0.0
        self.initial_system_energy: Optional[float] = None

        logging.info(
            f"SimulationEngine initialized: step={self.time_step} s, speed={self.simulation_speed}x, "
            f"method={self.integrator.method.value}, workers={evaluator.worker_count}, "
            f"start JD={self.simulation_time_julian:.6f}"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def close(self):
        self.integrator.close()
        logging.debug("SimulationEngine closed.")

    # --- Validation helpers ---

    @staticmethod
    def _validated_time_step(time_step: float) -> float:
        time_step = float(time_step)
        if not (math.isfinite(time_step) and time_step > 0.0):
            raise ConfigurationError(f"Time step must be positive and finite, got {time_step} s.")
        return time_step

    @staticmethod
    def _validated_speed(speed: float) -> float:
        speed = float(speed)
        if not (math.isfinite(speed) and speed >= 0.0):
            raise ConfigurationError(f"Simulation speed must be a non-negative finite multiplier, got {speed}.")
        return speed

    @staticmethod
    def _validated_frame(frame: str) -> str:
        frame = str(frame).strip().lower()
        if frame not in REFERENCE_FRAMES:
            raise ConfigurationError(f"Unknown reference frame '{frame}'. Supported: {', '.join(REFERENCE_FRAMES)}.")
        return frame

    @staticmethod
    def _validated_julian_date(value) -> float:
        if isinstance(value, datetime):
            if not is_valid_simulation_date(value):
                raise ConfigurationError(f"Date {value.isoformat()} is outside the supported simulation years.")
            return date_to_julian_date(value)
        jd = float(value)
        if not math.isfinite(jd):
            raise ConfigurationError(f"Julian Date must be finite, got {jd}.")
        return jd

    # --- State machine ---

    @property
    def is_running(self) -> bool:
        return self.state != EngineState.STOPPED

    @property
    def is_paused(self) -> bool:
        return self.state == EngineState.PAUSED

    def start(self) -> bool:
        if self.state != EngineState.STOPPED:
            logging.warning(f"Cannot start simulation: engine is already {self.state.value}.")
            return False
        self.state = EngineState.RUNNING
        logging.info("Simulation started.")
        return True

    def stop(self) -> bool:
        if self.state == EngineState.STOPPED:
            logging.warning("Cannot stop simulation: engine is not running.")
            return False
        self.state = EngineState.STOPPED
        logging.info("Simulation stopped.")
        return True

    def pause(self) -> bool:
        if self.state != EngineState.RUNNING:
            logging.warning(f"Cannot pause simulation while {self.state.value}.")
            return False
        self.state = EngineState.PAUSED
        logging.info("Simulation paused.")
        return True

    def resume(self) -> bool:
        if self.state != EngineState.PAUSED:
            logging.warning(f"Cannot resume simulation while {self.state.value}.")
            return False
        self.state = EngineState.RUNNING
        logging.info("Simulation resumed.")
        return True

    def reset(self) -> bool:
        """
        Restores every body to its initial state and rewinds the clock.

        The clock returns to the `start_time` passed to the constructor when one was
        given, and otherwise to the current wall-clock instant. An engine built with
        a fixed start time therefore always resets to that same instant. The
        accumulator and the `time_desynchronized` flag are cleared; the run state
        (stopped, running or paused) is left unchanged.

        Returns:
            bool: Always True.
        """
        self.simulation_time_julian = self._fixed_start_jd if self._fixed_start_jd is not None else now_julian_date()
        self.accumulator = 0.0
        self.time_desynchronized = False

        for body in self._bodies.values():
            body.restore_initial_state()
        self.integrator.invalidate_acceleration_cache()
        self._update_keplerian_bodies()

        self.step_count = 0
        self.dropped_time_total = 0.0
        self._last_step_wall_time = 0.0
        self._total_step_wall_time = 0.0
        self._record_initial_energy()
        logging.info(f"Simulation reset to JD {self.simulation_time_julian:.6f} with {len(self._bodies)} bodies.")
        return True

    # --- Tick ---

    def update(self, wall_delta_seconds: float) -> TickResult:
        """
        Advances the simulation by one frame of wall-clock time.

        Never raises: failures are logged and returned on the result, and warnings
        emitted while ticking (e.g. Kepler solver non-convergence) are collected.
        A failed physics step leaves body states as they were before that step.

        Args:
            wall_delta_seconds (float): Wall-clock seconds since the previous tick.

        Returns:
            TickResult: What happened during the tick.
        """
        if self.state != EngineState.RUNNING:
            return TickResult(idle=True, simulation_time_julian=self.simulation_time_julian)

        tick_start = time.perf_counter()
        result = TickResult(simulation_time_julian=self.simulation_time_julian)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                wall_delta = float(wall_delta_seconds)
                if not (math.isfinite(wall_delta) and wall_delta >= 0.0):
                    raise PhysicsError(f"Wall-clock delta must be non-negative and finite, got {wall_delta_seconds}.")

                simulated_delta = wall_delta * self.simulation_speed
                self.simulation_time_julian += simulated_delta / SECONDS_PER_DAY
                self.accumulator += simulated_delta

                max_steps = config.Time.MAX_STEPS_PER_UPDATE
                while self.accumulator >= self.time_step and result.steps_taken < max_steps:
                    self._step_physics(self.time_step)
                    self.accumulator -= self.time_step
                    result.steps_taken += 1

                if self.accumulator >= self.time_step:
                    result.step_cap_hit = True
                    result.dropped_seconds = self._drop_excess_time()
                    logging.debug(
                        f"Step cap of {max_steps} reached; dropped {result.dropped_seconds:.1f} simulated seconds."
                    )

                self._update_keplerian_bodies()
                result.snapshot = self.snapshot()
            except Exception as e:
                logging.error(f"Simulation tick failed after {result.steps_taken} step(s): {e}", exc_info=True)
                result.error = e
                if self.accumulator >= self.time_step:
                    # Keep a persistent failure from building an unbounded backlog
                    self._drop_excess_time()
        result.warnings = [w.message for w in caught]
        for warning_message in result.warnings:
            logging.debug(f"Warning during simulation tick: {warning_message}")

        result.simulation_time_julian = self.simulation_time_julian
        self.tick_count += 1
        self._last_tick_wall_time = time.perf_counter() - tick_start
        result.wall_time = self._last_tick_wall_time
        return result

    def _drop_excess_time(self) -> float:
        remainder = math.fmod(self.accumulator, self.time_step)
        dropped = self.accumulator - remainder
        self.accumulator = remainder
        self.dropped_time_total += dropped
        return dropped

    def _step_physics(self, dt: float):
        step_start = time.perf_counter()
        self.integrator.step(dt)
        elapsed = time.perf_counter() - step_start
        self.step_count += 1
        self._last_step_wall_time = elapsed
        self._total_step_wall_time += elapsed
        self._monitor_step()

    def _monitor_step(self):
        if config.Debug.ORBITAL_MECHANICS and self.step_count % config.Debug.LOG_ORBIT_INTERVAL_STEPS == 0:
            au = config.Coordinates.AU_M
            for body in self._bodies.values():
                if body.name in config.Debug.LOG_ORBIT_BODY_NAMES:
                    pos_au = body.position / au
                    logging.debug(f"Step {self.step_count}: {body.name} Pos_AU=[{pos_au[0]:.4f}, {pos_au[1]:.4f}, {pos_au[2]:.4f}]")

        if (config.Debug.MONITOR_ENERGY_CONSERVATION and self.initial_system_energy is not None
                and self.step_count % config.Debug.ENERGY_CHECK_INTERVAL_STEPS == 0):
            try:
                current_energy = self.integrator.calculate_total_energy()['total']
                energy_change = current_energy - self.initial_system_energy
                energy_change_percent = safe_divide(energy_change * 100.0, abs(self.initial_system_energy), default_on_zero_denom=0.0)
                logging.info(
                    f"ENERGY CHECK (Step {self.step_count}): Current: {current_energy:.6e}, "
                    f"Initial: {self.initial_system_energy:.6e}, Delta: {energy_change:.6e} ({energy_change_percent:.6f}%)"
                )
            except PhysicsError as e:
                logging.error(f"PhysicsError calculating system energy during step {self.step_count} check: {e}", exc_info=True)

    def _record_initial_energy(self):
        self.initial_system_energy = None
        if config.Debug.MONITOR_ENERGY_CONSERVATION and self.integrator.get_body_count() > 1:
            self.initial_system_energy = self.integrator.calculate_total_energy()['total']
            logging.debug(f"Initial N-body system energy: {self.initial_system_energy:.6e} J")

    # --- Keplerian propagation ---

    def _update_keplerian_bodies(self):
        time_seconds = seconds_since_j2000(self.simulation_time_julian)
        placed: Set[str] = set()
        for body in self._bodies.values():
            if body.keplerian:
                self._place_keplerian_body(body, time_seconds, placed, ())

    def _place_keplerian_body(self, body: CelestialBody, time_seconds: float, placed: Set[str], chain: Tuple[str, ...]):
        if body.id in placed:
            return
        if body.id in chain:
            raise PhysicsError(f"Keplerian bodies {' -> '.join(chain + (body.id,))} orbit each other in a cycle.")

        origin_position = np.zeros(3)
        origin_velocity = np.zeros(3)
        if body.central_body_id is not None:
            primary = self._bodies.get(body.central_body_id)
            if primary is None:
                raise PhysicsError(f"Primary '{body.central_body_id}' of Keplerian body '{body.id}' is not loaded.")
            if primary.keplerian:
                self._place_keplerian_body(primary, time_seconds, placed, chain + (body.id,))
            origin_position = primary.position
            origin_velocity = primary.velocity

        relative_position, relative_velocity = orbital_state_at(body.orbit, time_seconds)
        body.position = origin_position + relative_position
        body.velocity = origin_velocity + relative_velocity
        placed.add(body.id)

    # --- Ingest ---

    def add_body(self, body: CelestialBody):
        """
        Adds a body; N-body members must have positive mass.

        Raises:
            SimulationStateError: If a body with the same id is already loaded.
            PhysicsError: If the integrator rejects the body.
        """
        if body.id in self._bodies:
            raise SimulationStateError(f"A body with id '{body.id}' is already loaded.")
        if not body.keplerian:
            self.integrator.add_body(body)
        self._bodies[body.id] = body
        if body.keplerian and (body.central_body_id is None or body.central_body_id in self._bodies):
            self._place_keplerian_body(body, seconds_since_j2000(self.simulation_time_julian), set(), ())
        logging.debug(f"Added body '{body.id}' ({'Keplerian' if body.keplerian else 'N-body'}, group '{body.group}').")

    def update_body(self, body_id: str, **changes) -> CelestialBody:
        """
        Applies field changes to a loaded body, or adds it when it is not loaded yet.

        Changing `position` or `velocity` also replaces the body's initial state, so a
        later reset returns to the edited values. Toggling `keplerian` moves the body
        between the integrated and the propagated subsets.

        Returns:
            CelestialBody: The updated (or newly added) body.

        Raises:
            SimulationStateError: For unknown fields or an attempt to change the id.
            PhysicsError: If the changed body would be invalid.
        """
        body_fields = {f.name for f in dataclasses.fields(CelestialBody)}
        unknown = set(changes) - body_fields
        if unknown:
            raise SimulationStateError(f"Unknown body field(s) for '{body_id}': {sorted(unknown)}")
        if changes.get('id', body_id) != body_id:
            raise SimulationStateError(f"Body id cannot be changed (from '{body_id}' to '{changes['id']}').")

        body = self._bodies.get(body_id)
        if body is None:
            changes.pop('id', None)
            new_body = CelestialBody(id=body_id, **changes)
            self.add_body(new_body)
            return new_body

        candidate = dataclasses.replace(body, **changes)
        if 'position' in changes or 'velocity' in changes:
            candidate.capture_initial_state()
        if not candidate.keplerian and not (candidate.mass > 0.0):
            raise PhysicsError(f"Body '{body_id}' would have non-positive mass {candidate.mass} kg under N-body control.")
        proposed = dict(self._bodies)
        proposed[body_id] = candidate
        self._check_keplerian_primaries(proposed)

        was_integrated = not body.keplerian
        for name in body_fields:
            setattr(body, name, getattr(candidate, name))

        if was_integrated and body.keplerian:
            self.integrator.remove_body(body_id)
        elif not was_integrated and not body.keplerian:
            self.integrator.add_body(body)
        self.integrator.invalidate_acceleration_cache()

        if body.keplerian:
            self._update_keplerian_bodies()
        logging.debug(f"Updated body '{body_id}': {sorted(changes)}")
        return body

    def remove_body(self, body_id: str):
        """
        Removes a loaded body.

        Raises:
            SimulationStateError: If the body is unknown, or is still the primary of
                Keplerian bodies (remove or re-parent those first).
        """
        body = self._bodies.get(body_id)
        if body is None:
            raise SimulationStateError(f"Cannot remove unknown body '{body_id}'.")
        dependents = [b.id for b in self._bodies.values() if b.keplerian and b.central_body_id == body_id]
        if dependents:
            raise SimulationStateError(f"Cannot remove '{body_id}': it is the primary of Keplerian bodies {dependents}.")
        del self._bodies[body_id]
        if not body.keplerian:
            self.integrator.remove_body(body_id)
        logging.debug(f"Removed body '{body_id}'.")

    @staticmethod
    def _check_keplerian_primaries(bodies: Dict[str, CelestialBody]):
        """Raises PhysicsError if a Keplerian body's primary chain is broken or cyclic."""
        for body in bodies.values():
            if not body.keplerian:
                continue
            chain = [body.id]
            current = body
            while current.keplerian and current.central_body_id is not None:
                primary = bodies.get(current.central_body_id)
                if primary is None:
                    raise PhysicsError(
                        f"Primary '{current.central_body_id}' of Keplerian body '{current.id}' is not loaded."
                    )
                if primary.id in chain:
                    raise PhysicsError(f"Keplerian bodies {' -> '.join(chain + [primary.id])} orbit each other in a cycle.")
                chain.append(primary.id)
                current = primary

    def load_body_set(self, bodies: Iterable[CelestialBody], replace: bool = True):
        """Loads many bodies at once, by default replacing everything currently loaded."""
        if replace:
            self._bodies = {}
            self.integrator.clear_bodies()
            self.time_desynchronized = False
        for body in bodies:
            self.add_body(body)
        self._update_keplerian_bodies()
        self._record_initial_energy()
        logging.info(
            f"Loaded body set: {len(self._bodies)} bodies ({self.integrator.get_body_count()} integrated)."
        )

    def load_solar_system(self, keplerian: bool = False, planet_data: Dict[str, Dict] = None):
        """Replaces the body set with the preset solar system placed at the current simulation time."""
        bodies = build_solar_system(planet_data=planet_data,
                                    epoch_seconds=seconds_since_j2000(self.simulation_time_julian),
                                    keplerian=keplerian)
        self.load_body_set(bodies, replace=True)

    # --- Control ---

    def set_simulation_speed(self, speed: float, adjust_time_step: bool = False):
        """Sets simulated seconds per wall second, optionally rescaling the physics step to match."""
        self.simulation_speed = self._validated_speed(speed)
        if adjust_time_step and self.simulation_speed > 0.0:
            self.time_step = calculate_time_step(self.simulation_speed)
        logging.info(f"Simulation speed set to {self.simulation_speed}x (step {self.time_step} s).")

    def set_time_speed_preset(self, name: str):
        try:
            speed = config.Time.TIME_SPEEDS[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown time speed preset '{name}'. Available: {', '.join(config.Time.TIME_SPEEDS)}."
            )
        self.set_simulation_speed(speed)

    @property
    def integration_method(self) -> IntegrationMethod:
        return self.integrator.method

    def set_integration_method(self, method):
        self.integrator.update_config(method=method)

    def set_time_step(self, time_step: float):
        self.time_step = self._validated_time_step(time_step)
        logging.info(f"Physics time step set to {self.time_step} s.")

    def set_current_time(self, value):
        """
        Jumps the calendar to an absolute instant (datetime or Julian Date).

        Keplerian bodies are recomputed exactly for the new time. N-body bodies keep
        their last integrated state, so `time_desynchronized` is raised when any exist.
        """
        self.simulation_time_julian = self._validated_julian_date(value)
        self.accumulator = 0.0
        if self.integrator.get_body_count() > 0:
            self.time_desynchronized = True
            logging.warning(
                f"Time set to JD {self.simulation_time_julian:.6f} while {self.integrator.get_body_count()} "
                "N-body bodies are loaded; their states are not re-integrated to the new time."
            )
        self._update_keplerian_bodies()

    def set_reference_frame(self, frame: str):
        self.reference_frame = self._validated_frame(frame)
        logging.info(f"Reference frame set to {self.reference_frame}.")

    # --- Egress ---

    @property
    def current_time(self) -> datetime:
        return julian_date_to_date(self.simulation_time_julian)

    @property
    def bodies(self) -> Tuple[CelestialBody, ...]:
        return tuple(self._bodies.values())

    def get_body(self, body_id: str) -> Optional[CelestialBody]:
        return self._bodies.get(body_id)

    @property
    def body_groups(self) -> Dict[str, List[str]]:
        groups: Dict[str, List[str]] = {}
        for body in self._bodies.values():
            groups.setdefault(body.group, []).append(body.id)
        return groups

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        """Copies of every body's position, velocity and spin angle in the current reference frame."""
        origin_position = np.zeros(3)
        origin_velocity = np.zeros(3)
        if self.reference_frame == "barycentric":
            origin_position, origin_velocity, _ = calculate_center_of_mass(list(self._bodies.values()))

        time_seconds = seconds_since_j2000(self.simulation_time_julian)
        return {
            body.id: {
                'position': body.position - origin_position,
                'velocity': body.velocity - origin_velocity,
                'rotation': body.rotation_at(time_seconds),
            }
            for body in self._bodies.values()
        }

    def get_metrics(self) -> Dict[str, float]:
        return {
            'step_count': self.step_count,
            'tick_count': self.tick_count,
            'last_step_wall_time': self._last_step_wall_time,
            'mean_step_wall_time': safe_divide(self._total_step_wall_time, self.step_count),
            'last_tick_wall_time': self._last_tick_wall_time,
            'dropped_time_total': self.dropped_time_total,
            'body_count': len(self._bodies),
            'nbody_count': self.integrator.get_body_count(),
            'force_evaluations': self.integrator.evaluator.evaluation_count,
            'parallel_force_evaluations': self.integrator.evaluator.parallel_evaluation_count,
        }

    def get_status(self) -> Dict[str, object]:
        return {
            'state': self.state.value,
            'is_running': self.is_running,
            'is_paused': self.is_paused,
            'simulation_time_julian': self.simulation_time_julian,
            'simulation_speed': self.simulation_speed,
            'time_step': self.time_step,
            'accumulator': self.accumulator,
            'integration_method': self.integration_method.value,
            'reference_frame': self.reference_frame,
            'time_desynchronized': self.time_desynchronized,
            'body_count': len(self._bodies),
            'metrics': self.get_metrics(),
        }
