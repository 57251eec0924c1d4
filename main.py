# main.py
import io
import os
import math
import psutil # For memory monitoring
import logging
import cProfile
import pstats
import argparse
from datetime import datetime, timezone

from config import config, ConfigurationError, SECONDS_PER_DAY # Use the global config instance
from physics_utils import PhysicsError, safe_divide
from simulation import SimulationEngine
from time_utils import format_duration

class SimulationRunner:
    """Runs the simulation engine headless for a fixed span of simulated time.

    The runner plays the role of a render loop: it feeds the engine a constant
    wall-clock frame delta each tick, so a run is reproducible regardless of how
    fast the host machine is. It loads the preset solar system, ticks until the
    requested simulated duration has elapsed, and logs progress, memory usage
    and a final energy and position summary.

    Attributes:
        engine (SimulationEngine): The engine being driven.
        duration_seconds (float): Simulated seconds to run for.
        frame_seconds (float): Wall-clock delta passed to every tick.
        keplerian (bool): If True, bodies are propagated analytically.
        running (bool): Cleared when a tick reports an error.
        process (psutil.Process): Current process, for memory monitoring.
    """
    def __init__(self, duration_days: float, speed: float, method: str, keplerian: bool = False,
                 frame_seconds: float = 1.0 / 60.0, workers: int = None, start_time: datetime = None):
        if duration_days <= 0 or not math.isfinite(duration_days):
            raise ConfigurationError(f"Duration must be a positive number of days, got {duration_days}.")
        if frame_seconds <= 0:
            raise ConfigurationError(f"Frame delta must be positive, got {frame_seconds}.")
        if speed <= 0:
            raise ConfigurationError(f"Simulation speed must be positive for a headless run, got {speed}.")

        self.engine = SimulationEngine(simulation_speed=speed, integration_method=method,
                                       worker_count=workers, start_time=start_time)
        self.duration_seconds = duration_days * SECONDS_PER_DAY
        self.frame_seconds = frame_seconds
        self.keplerian = keplerian
        self.running = True
        self.process = psutil.Process(os.getpid())
        logging.info("SimulationRunner initialized successfully.")

    def check_memory(self, tick_count: int):
        try:
            memory_mb = self.process.memory_info().rss / (1024 * 1024)
            if memory_mb > config.Monitoring.MEMORY_USAGE_WARN_MB:
                logging.warning(f"High memory usage: {memory_mb:.2f} MB at tick {tick_count}")
            else:
                logging.debug(f"Memory usage: {memory_mb:.2f} MB at tick {tick_count}")
        except psutil.Error as e_psutil:
            logging.error(f"Could not retrieve memory usage: {e_psutil}", exc_info=True)

    def run(self) -> int:
        """Loads the solar system and ticks until the requested simulated time has passed.

        Returns:
            int: Number of ticks executed.
        """
        self.engine.load_solar_system(keplerian=self.keplerian)
        start_jd = self.engine.simulation_time_julian
        self.engine.start()

        ticks = 0
        total_steps = 0
        total_dropped = 0.0
        max_ticks = math.ceil(self.duration_seconds / (self.frame_seconds * self.engine.simulation_speed))
        progress_interval = max(1, max_ticks // 10)

        while self.running and ticks < max_ticks:
            result = self.engine.update(self.frame_seconds)
            ticks += 1
            total_steps += result.steps_taken
            total_dropped += result.dropped_seconds

            if not result.ok:
                logging.critical(f"Simulation tick {ticks} failed: {result.error}. Terminating run.")
                self.running = False
                break
            for warning_message in result.warnings:
                logging.warning(f"Tick {ticks}: {warning_message}")

            if ticks % progress_interval == 0:
                elapsed = (self.engine.simulation_time_julian - start_jd) * SECONDS_PER_DAY
                logging.info(f"Tick {ticks}/{max_ticks}: simulated {format_duration(elapsed)}, "
                             f"{total_steps} physics steps, date {self.engine.current_time.isoformat()}")
            if ticks % config.Monitoring.MEMORY_CHECK_INTERVAL_TICKS == 0:
                self.check_memory(ticks)

        self.engine.stop()
        self.log_summary(start_jd, ticks, total_steps, total_dropped)
        return ticks

    def log_summary(self, start_jd: float, ticks: int, total_steps: int, total_dropped: float):
        elapsed = (self.engine.simulation_time_julian - start_jd) * SECONDS_PER_DAY
        metrics = self.engine.get_metrics()
        logging.info(f"\n{'='*15} Run Summary {'='*15}")
        logging.info(f"Simulated {format_duration(elapsed)} in {ticks} ticks and {total_steps} "
                     f"{self.engine.integration_method.value} steps; dropped {format_duration(total_dropped)} to the step cap.")
        logging.info(f"Mean step wall time: {metrics['mean_step_wall_time'] * 1000:.3f} ms, "
                     f"force evaluations: {metrics['force_evaluations']} ({metrics['parallel_force_evaluations']} parallel)")

        if self.engine.initial_system_energy is not None:
            try:
                final_energy = self.engine.integrator.calculate_total_energy()['total']
                drift = safe_divide(final_energy - self.engine.initial_system_energy, abs(self.engine.initial_system_energy))
                logging.info(f"Total energy: initial {self.engine.initial_system_energy:.6e} J, "
                             f"final {final_energy:.6e} J, relative drift {drift:.3e}")
            except PhysicsError as e_energy:
                logging.error(f"Could not compute final system energy: {e_energy}", exc_info=True)

        au = config.Coordinates.AU_M
        for body in self.engine.bodies:
            if body.name in config.Debug.LOG_ORBIT_BODY_NAMES:
                pos_au = body.position / au
                logging.info(f"{body.name}: Pos_AU=[{pos_au[0]:.6f}, {pos_au[1]:.6f}, {pos_au[2]:.6f}]")

def parse_start_time(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid ISO date '{value}'.")
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)

if __name__ == "__main__":
    """Headless entry point.

    1.  Parses command-line arguments (duration, speed, integration method,
        Keplerian mode, worker count, start date, `--profile`).
    2.  Optionally enables `cProfile`; statistics are saved to
        `simulation_profile.prof` and the top entries are logged.
    3.  Builds a `SimulationRunner` and runs it. `ConfigurationError` and other
        fatal errors are logged as critical and reported on stdout.
    """
    parser = argparse.ArgumentParser(description="Run the solar-system physics simulation headless.")
    parser.add_argument("--days", type=float, default=365.25, help="Simulated duration in days.")
    parser.add_argument("--speed", type=float, default=config.Time.DEFAULT_SIMULATION_SPEED,
                        help="Simulated seconds per wall-clock second.")
    parser.add_argument("--method", default=config.Physics.DEFAULT_INTEGRATION_METHOD,
                        help="Integration method: euler, rk2, rk4 or verlet.")
    parser.add_argument("--keplerian", action="store_true", help="Propagate bodies analytically instead of integrating.")
    parser.add_argument("--workers", type=int, default=None, help="Force evaluation worker count.")
    parser.add_argument("--start", type=parse_start_time, default=None, help="Start date (ISO 8601, UTC if naive).")
    parser.add_argument("--fps", type=float, default=60.0, help="Virtual frame rate of the tick loop.")
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable profiling for the simulation. Statistics will be saved to 'simulation_profile.prof'."
    )
    args = parser.parse_args()

    profiler = None
    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        logging.info("cProfile profiling enabled. Output will be saved to simulation_profile.prof upon completion.")

    runner = None
    try:
        logging.info(f"\n{'='*15} Starting Simulation {'='*15}")
        runner = SimulationRunner(duration_days=args.days, speed=args.speed, method=args.method,
                                  keplerian=args.keplerian, frame_seconds=1.0 / args.fps,
                                  workers=args.workers, start_time=args.start)
        runner.run()
        logging.info(f"\n{'='*15} Simulation finished {'='*15}")
    except ConfigurationError as e_config_main:
        logging.critical(f"Simulation could not be initialized or run due to a ConfigurationError: {e_config_main}", exc_info=True)
        print(f"FATAL CONFIGURATION ERROR: {e_config_main}. Simulation cannot start. Check logs for details.")
    except Exception as e_main:
        logging.critical(f"An unexpected critical error occurred in the main simulation execution block: {e_main}", exc_info=True)
        print(f"FATAL UNEXPECTED ERROR: {e_main}. Simulation terminated. Check logs for details.")
    finally:
        if runner is not None:
            runner.engine.close()
        if profiler:
            profiler.disable()
            stats_file = "simulation_profile.prof"
            try:
                profiler.dump_stats(stats_file)
                logging.info(f"Profiling data successfully saved to {stats_file}")
                s = io.StringIO()
                ps = pstats.Stats(profiler, stream=s).sort_stats('cumulative')
                ps.print_stats(20)
                logging.info(f"\n--- Top 20 Profiled Functions (Cumulative Time) ---\n{s.getvalue()}")
            except Exception as e_profile_dump:
                logging.error(f"Failed to save or process profiling data from {stats_file}: {e_profile_dump}", exc_info=True)
        logging.info("Simulation run terminated.")
