# config.py
import os
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(module)s - %(message)s')

# Fundamental Physical Constants (SI units, used across different config sections)
GRAVITATIONAL_CONSTANT = 6.67430e-11  # G in m^3 kg^-1 s^-2
SPEED_OF_LIGHT_M_S = 299792458.0
AU_M = 1.495978707e11  # Astronomical Unit in meters
AU_KM = AU_M / 1000.0
SECONDS_PER_DAY = 86400.0
JULIAN_YEAR_SECONDS = 365.25 * SECONDS_PER_DAY
J2000_JD = 2451545.0  # Julian Date of 2000-01-01T12:00:00 TT
SOLAR_MASS_KG = 1.98847e30
EARTH_MASS_KG = 5.9722e24

class ConfigurationError(Exception):
    """Custom exception for simulation configuration errors.

    Raised by `SimulationConfig.validate()` and other configuration-dependent
    components when settings are invalid, inconsistent, or missing, which
    would prevent the simulation from running correctly (for example an
    unknown integration method name or a non-positive physics time step).

    Attributes:
        message (str): A human-readable explanation of the configuration error.
                       This is the first argument passed to the exception constructor.
    """
    pass

class SimulationConfig:
    """Centralized, hierarchical configuration for the orbital simulation core.

    This class consolidates all simulation parameters into nested static classes
    (e.g., `SimulationConfig.Physics`, `SimulationConfig.Time`, `SimulationConfig.Parallel`)
    for organized access. An instance of this class, named `config`, is created
    at the end of this module, making it globally available via `from config import config`.

    The `__init__` method keeps derived values consistent (the Sun's mass in the
    preset table) and invokes `validate()`, which checks ranges and
    interdependencies across all sections and raises `ConfigurationError` if
    anything is off. This preempts runtime failures due to faulty configuration.

    Example Usage:
        >>> from config import config
        >>> print(f"Physics Timestep (s): {config.Physics.TIMESTEP_SECONDS}")
        >>> print(f"Max steps per update: {config.Time.MAX_STEPS_PER_UPDATE}")
    """

    # --- Physics Configuration ---
    class Physics:
        """Configuration for the simulation's physics engine.

        Attributes:
            G (float): Gravitational constant in m^3 kg^-1 s^-2.
            SPEED_OF_LIGHT_M_S (float): Speed of light, used by relativistic perturbations.
            TIMESTEP_SECONDS (float): Default fixed physics step in simulation seconds.
            DEFAULT_INTEGRATION_METHOD (str): Integration scheme used when none is given.
                                              Supported: "euler", "rk2", "rk4", "verlet".
            KEPLER_TOLERANCE (float): Convergence threshold on |dE| for the Kepler solver.
            KEPLER_MAX_ITERATIONS (int): Hard cap on Newton-Raphson iterations.
            SOFTENING_LENGTH_M (float): Plummer softening length for pairwise gravity.
                                        0.0 means pure Newtonian forces.
            ZERO_DISTANCE_EPSILON_M (float): Pairs closer than this contribute no force.
        """
        G = GRAVITATIONAL_CONSTANT
        SPEED_OF_LIGHT_M_S = SPEED_OF_LIGHT_M_S
        TIMESTEP_SECONDS = 3600.0
        DEFAULT_INTEGRATION_METHOD = "rk4"
        KEPLER_TOLERANCE = 1e-8
        KEPLER_MAX_ITERATIONS = 100
        SOFTENING_LENGTH_M = 0.0
        ZERO_DISTANCE_EPSILON_M = 1e-9

    # --- Time Configuration ---
    class Time:
        """Configuration related to simulation time progression.

        Attributes:
            BASE_TIME_STEP_SECONDS (float): Step size at a speed multiplier of 1, used by
                                            `calculate_time_step`.
            MIN_TIME_STEP_SECONDS (float): Lower clamp for derived time steps (accuracy).
            MAX_TIME_STEP_SECONDS (float): Upper clamp for derived time steps (stability).
            DEFAULT_SIMULATION_SPEED (float): Simulation seconds per wall-clock second.
            MAX_STEPS_PER_UPDATE (int): Maximum physics steps taken by one update call.
                                        Simulated time beyond this is dropped.
            MIN_SIMULATION_YEAR (int): Earliest calendar year accepted by the clock.
            MAX_SIMULATION_YEAR (int): Latest calendar year accepted by the clock.
            TIME_SPEEDS (Dict[str, float]): Named speed presets.
        """
        BASE_TIME_STEP_SECONDS = 3600.0
        MIN_TIME_STEP_SECONDS = 60.0
        MAX_TIME_STEP_SECONDS = 86400.0
        DEFAULT_SIMULATION_SPEED = 86400.0  # One simulated day per second
        MAX_STEPS_PER_UPDATE = 10
        MIN_SIMULATION_YEAR = -10000
        MAX_SIMULATION_YEAR = 10000
        TIME_SPEEDS = {
            'paused': 0.0,
            'real_time': 1.0,
            'minute_per_second': 60.0,
            'hour_per_second': 3600.0,
            'day_per_second': 86400.0,
            'week_per_second': 604800.0,
            'month_per_second': 2592000.0,
            'year_per_second': 31536000.0,
        }

    # --- Parallel Force Evaluation Configuration ---
    class Parallel:
        """Configuration for the force-evaluation worker pool.

        Attributes:
            ENABLED (bool): Master toggle. When False every evaluation runs sequentially.
            WORKER_COUNT (int): Fixed number of workers in the pool.
            PARALLEL_THRESHOLD (int): Body counts at or below this are evaluated
                                      sequentially; dispatch overhead dominates there.
            WORKER_TIMEOUT_SECONDS (Optional[float]): Per-evaluation wait limit for all
                                                      partitions. None waits indefinitely.
        """
        ENABLED = True
        WORKER_COUNT = min(8, os.cpu_count() or 1)
        PARALLEL_THRESHOLD = 10
        WORKER_TIMEOUT_SECONDS = None

    # --- Coordinate Transform Configuration ---
    class Coordinates:
        """Configuration for coordinate-frame conversions.

        Attributes:
            EPOCH_JD (float): Reference epoch for frame conversions.
            OBLIQUITY_J2000_DEG (float): Mean obliquity of the ecliptic at J2000.
            AU_M (float): Astronomical Unit in meters.
            DEFAULT_REFERENCE_FRAME (str): Frame applied to published snapshots,
                                           "heliocentric" or "barycentric".
        """
        EPOCH_JD = J2000_JD
        OBLIQUITY_J2000_DEG = 23.4392911
        AU_M = AU_M
        DEFAULT_REFERENCE_FRAME = "heliocentric"

    # --- Solar System Configuration ---
    class SolarSystem:
        """Configuration for celestial bodies and orbital mechanics.

        Attributes:
            REFERENCE_EPOCH_JD (float): Julian Date for the J2000.0 epoch, used as the
                                        reference time for orbital element calculations.
            SUN_MASS_KG (float): Mass of the Sun in kilograms. This is the primary mass
                                 for the system's gravitational calculations.
            PLANET_CREATION_ORDER (List[str]): Bodies orbiting the Sun, created in this
                                               order before any moon.
            PLANET_DATA (Dict[str, Dict]): A dictionary where keys are celestial body names
                                           (e.g., "Sun", "Earth", "Moon") and values are
                                           dictionaries containing their physical and orbital
                                           parameters (mass_kg, radius_km, semi_major_axis_au,
                                           eccentricity, angles in degrees, rotation_period_hours,
                                           group, and 'central_body' name for orbiting bodies).
        """
        REFERENCE_EPOCH_JD = J2000_JD
        SUN_MASS_KG = SOLAR_MASS_KG

        PLANET_CREATION_ORDER = [
            "Mercury", "Venus", "Earth", "Mars", "Jupiter", "Saturn", "Uranus", "Neptune"
        ]

        PLANET_DATA = {
            'Sun': {
                'mass_kg': SOLAR_MASS_KG, # Will be overwritten by SUN_MASS_KG in __init__
                'radius_km': 695700.0, 'rotation_period_hours': 609.12, 'group': 'star',
                'semi_major_axis_au': 0.0, 'eccentricity': 0.0, 'inclination_deg': 0.0,
                'longitude_of_ascending_node_deg': 0.0, 'argument_of_perihelion_deg': 0.0,
                'mean_anomaly_at_epoch_deg': 0.0, 'central_body': None
            },
            'Mercury': {
                'mass_kg': 0.33011e24, 'radius_km': 2439.7, 'rotation_period_hours': 1407.6, 'group': 'planet',
                'semi_major_axis_au': 0.387098, 'eccentricity': 0.205630, 'inclination_deg': 7.005,
                'longitude_of_ascending_node_deg': 48.331, 'argument_of_perihelion_deg': 29.124,
                'mean_anomaly_at_epoch_deg': 174.794, 'central_body': 'Sun'
            },
            'Venus': {
                'mass_kg': 4.8675e24, 'radius_km': 6051.8, 'rotation_period_hours': -5832.5, 'group': 'planet',
                'semi_major_axis_au': 0.723332, 'eccentricity': 0.006772, 'inclination_deg': 3.39458,
                'longitude_of_ascending_node_deg': 76.680, 'argument_of_perihelion_deg': 54.884,
                'mean_anomaly_at_epoch_deg': 50.447, 'central_body': 'Sun'
            },
            'Earth': {
                'mass_kg': 5.97237e24, 'radius_km': 6371.0, 'rotation_period_hours': 23.9345, 'group': 'planet',
                'semi_major_axis_au': 1.00000261, 'eccentricity': 0.01671123, 'inclination_deg': 0.00005,
                'longitude_of_ascending_node_deg': 348.73936, 'argument_of_perihelion_deg': 114.20783,
                'mean_anomaly_at_epoch_deg': 357.51716, 'central_body': 'Sun'
            },
            'Moon': {
                'mass_kg': 0.07346e24, 'radius_km': 1737.4, 'rotation_period_hours': 655.7, 'group': 'moon',
                'semi_major_axis_au': 0.00257, 'eccentricity': 0.0549, 'inclination_deg': 5.145,
                'longitude_of_ascending_node_deg': 125.08, 'argument_of_perihelion_deg': 318.15,
                'mean_anomaly_at_epoch_deg': 115.36, 'central_body': 'Earth'
            },
            'Mars': {
                'mass_kg': 0.64171e24, 'radius_km': 3389.5, 'rotation_period_hours': 24.6229, 'group': 'planet',
                'semi_major_axis_au': 1.523679, 'eccentricity': 0.09340, 'inclination_deg': 1.850,
                'longitude_of_ascending_node_deg': 49.558, 'argument_of_perihelion_deg': 286.502,
                'mean_anomaly_at_epoch_deg': 19.412, 'central_body': 'Sun'
            },
            'Jupiter': {
                'mass_kg': 1898.19e24, 'radius_km': 69911.0, 'rotation_period_hours': 9.925, 'group': 'planet',
                'semi_major_axis_au': 5.2044, 'eccentricity': 0.0489, 'inclination_deg': 1.303,
                'longitude_of_ascending_node_deg': 100.464, 'argument_of_perihelion_deg': 273.867,
                'mean_anomaly_at_epoch_deg': 20.020, 'central_body': 'Sun'
            },
            'Io': {
                'mass_kg': 0.089319e24, 'radius_km': 1821.6, 'rotation_period_hours': 42.46, 'group': 'moon',
                'semi_major_axis_au': 0.002819, 'eccentricity': 0.0041, 'inclination_deg': 0.050,
                'longitude_of_ascending_node_deg': 0.0, 'argument_of_perihelion_deg': 0.0,
                'mean_anomaly_at_epoch_deg': 0.0, 'central_body': 'Jupiter'
            },
            'Europa': {
                'mass_kg': 0.04800e24, 'radius_km': 1560.8, 'rotation_period_hours': 85.23, 'group': 'moon',
                'semi_major_axis_au': 0.004486, 'eccentricity': 0.0094, 'inclination_deg': 0.470,
                'longitude_of_ascending_node_deg': 0.0, 'argument_of_perihelion_deg': 0.0,
                'mean_anomaly_at_epoch_deg': 100.0, 'central_body': 'Jupiter'
            },
            'Ganymede': {
                'mass_kg': 0.14819e24, 'radius_km': 2634.1, 'rotation_period_hours': 171.7, 'group': 'moon',
                'semi_major_axis_au': 0.007155, 'eccentricity': 0.0013, 'inclination_deg': 0.204,
                'longitude_of_ascending_node_deg': 0.0, 'argument_of_perihelion_deg': 0.0,
                'mean_anomaly_at_epoch_deg': 200.0, 'central_body': 'Jupiter'
            },
            'Callisto': {
                'mass_kg': 0.10759e24, 'radius_km': 2410.3, 'rotation_period_hours': 400.5, 'group': 'moon',
                'semi_major_axis_au': 0.012585, 'eccentricity': 0.0074, 'inclination_deg': 0.205,
                'longitude_of_ascending_node_deg': 0.0, 'argument_of_perihelion_deg': 0.0,
                'mean_anomaly_at_epoch_deg': 300.0, 'central_body': 'Jupiter'
            },
            'Saturn': {
                'mass_kg': 568.34e24, 'radius_km': 58232.0, 'rotation_period_hours': 10.656, 'group': 'planet',
                'semi_major_axis_au': 9.5826, 'eccentricity': 0.0565, 'inclination_deg': 2.485,
                'longitude_of_ascending_node_deg': 113.665, 'argument_of_perihelion_deg': 339.392,
                'mean_anomaly_at_epoch_deg': 317.020, 'central_body': 'Sun'
            },
            'Titan': {
                'mass_kg': 0.13452e24, 'radius_km': 2574.7, 'rotation_period_hours': 382.7, 'group': 'moon',
                'semi_major_axis_au': 0.008168, 'eccentricity': 0.0288, 'inclination_deg': 0.34854,
                'longitude_of_ascending_node_deg': 0.0, 'argument_of_perihelion_deg': 0.0,
                'mean_anomaly_at_epoch_deg': 0.0, 'central_body': 'Saturn'
            },
            'Uranus': {
                'mass_kg': 86.813e24, 'radius_km': 25362.0, 'rotation_period_hours': -17.24, 'group': 'planet',
                'semi_major_axis_au': 19.2184, 'eccentricity': 0.0457, 'inclination_deg': 0.772,
                'longitude_of_ascending_node_deg': 74.006, 'argument_of_perihelion_deg': 96.999,
                'mean_anomaly_at_epoch_deg': 142.238600, 'central_body': 'Sun'
            },
            'Neptune': {
                'mass_kg': 102.413e24, 'radius_km': 24622.0, 'rotation_period_hours': 16.11, 'group': 'planet',
                'semi_major_axis_au': 30.110, 'eccentricity': 0.0113, 'inclination_deg': 1.770,
                'longitude_of_ascending_node_deg': 131.783, 'argument_of_perihelion_deg': 276.336,
                'mean_anomaly_at_epoch_deg': 256.228, 'central_body': 'Sun'
            }
        }

    # --- Monitoring Configuration ---
    class Monitoring:
        """Configuration for system resource monitoring in the headless runner.

        Attributes:
            MEMORY_USAGE_WARN_MB (int): Memory usage threshold in Megabytes. If exceeded,
                                        a warning is logged.
            MEMORY_CHECK_INTERVAL_TICKS (int): Frequency (in engine ticks) at which
                                               memory usage is checked.
        """
        MEMORY_USAGE_WARN_MB = 2048
        MEMORY_CHECK_INTERVAL_TICKS = 500

    # --- Debug Configuration ---
    class Debug:
        """Configuration for debugging features and logging verbosity.

        Attributes:
            KEPLER_SOLVER (bool): Toggle for verbose logging from Kepler's equation solver.
            ORBITAL_MECHANICS (bool): Toggle for logging element/state conversions.
            FORCE_EVALUATION (bool): Toggle for logging partition layout of parallel
                                     force evaluations.
            MONITOR_ENERGY_CONSERVATION (bool): If True, periodically logs the total energy
                                                of the N-body system to check for conservation.
            ENERGY_CHECK_INTERVAL_STEPS (int): Frequency (sim steps) for energy conservation checks.
            LOG_ORBIT_INTERVAL_STEPS (int): Frequency (sim steps) for logging positions of selected bodies.
            LOG_ORBIT_BODY_NAMES (List[str]): Names of celestial bodies whose orbits to log.
        """
        KEPLER_SOLVER = False
        ORBITAL_MECHANICS = False
        FORCE_EVALUATION = False
        MONITOR_ENERGY_CONSERVATION = True
        ENERGY_CHECK_INTERVAL_STEPS = 100
        LOG_ORBIT_INTERVAL_STEPS = 100
        LOG_ORBIT_BODY_NAMES = ["Earth", "Sun", "Moon"]

    def __init__(self):
        """Initializes the `SimulationConfig` instance and performs setup.

        1.  **Ensures Sun's Mass Consistency**: updates the Sun's mass within
            `SolarSystem.PLANET_DATA` to match `SolarSystem.SUN_MASS_KG`.
        2.  **Invokes Configuration Validation**: calls `self.validate()`.

        Raises:
            ConfigurationError: If `self.validate()` detects any issues with the
                                configuration values.
        """
        if 'Sun' in self.SolarSystem.PLANET_DATA:
            self.SolarSystem.PLANET_DATA['Sun']['mass_kg'] = self.SolarSystem.SUN_MASS_KG

        self.validate()

    def validate(self):
        """Performs comprehensive validation of all simulation configuration settings.

        -   **Physics**: positive G, step and Kepler tolerance; at least one Kepler
            iteration; known default integration method; non-negative softening.
        -   **Time**: positive, ordered step clamps; the base step inside them;
            a positive step cap; ordered year bounds; non-negative speed presets.
        -   **Parallel**: at least one worker, threshold >= 1, positive timeout if set.
        -   **Coordinates**: obliquity within [0, 90) degrees, known reference frame.
        -   **SolarSystem**: Sun present with consistent mass; for all bodies, mass and
            radius non-negative, SMA > 0 for non-Sun, 0 <= eccentricity < 1,
            0 <= inclination <= 180, and `central_body` references valid and
            not self-referential.

        Raises:
            ConfigurationError: If any configuration setting is found to be invalid.
        """
        # Physics validation
        if self.Physics.G <= 0:
            raise ConfigurationError("Physics.G must be positive.")
        if self.Physics.TIMESTEP_SECONDS <= 0:
            raise ConfigurationError("Physics.TIMESTEP_SECONDS must be positive.")
        if self.Physics.KEPLER_TOLERANCE <= 0:
            raise ConfigurationError("Physics.KEPLER_TOLERANCE must be positive.")
        if int(self.Physics.KEPLER_MAX_ITERATIONS) < 1:
            raise ConfigurationError("Physics.KEPLER_MAX_ITERATIONS must be at least 1.")
        if self.Physics.DEFAULT_INTEGRATION_METHOD not in ("euler", "rk2", "rk4", "verlet"):
            raise ConfigurationError(
                f"Physics.DEFAULT_INTEGRATION_METHOD '{self.Physics.DEFAULT_INTEGRATION_METHOD}' "
                "is not one of 'euler', 'rk2', 'rk4', 'verlet'."
            )
        if self.Physics.SOFTENING_LENGTH_M < 0 or self.Physics.ZERO_DISTANCE_EPSILON_M < 0:
            raise ConfigurationError("Physics.SOFTENING_LENGTH_M and ZERO_DISTANCE_EPSILON_M cannot be negative.")

        # Time validation
        if not (0 < self.Time.MIN_TIME_STEP_SECONDS <= self.Time.MAX_TIME_STEP_SECONDS):
            raise ConfigurationError(
                f"Time step clamps invalid: MIN_TIME_STEP_SECONDS ({self.Time.MIN_TIME_STEP_SECONDS}) "
                f"must be > 0 and <= MAX_TIME_STEP_SECONDS ({self.Time.MAX_TIME_STEP_SECONDS})."
            )
        if not (self.Time.MIN_TIME_STEP_SECONDS <= self.Time.BASE_TIME_STEP_SECONDS <= self.Time.MAX_TIME_STEP_SECONDS):
            raise ConfigurationError(
                f"Time.BASE_TIME_STEP_SECONDS ({self.Time.BASE_TIME_STEP_SECONDS}) must lie within "
                f"[{self.Time.MIN_TIME_STEP_SECONDS}, {self.Time.MAX_TIME_STEP_SECONDS}]."
            )
        if self.Time.BASE_TIME_STEP_SECONDS != self.Physics.TIMESTEP_SECONDS:
            logging.warning(
                f"Time.BASE_TIME_STEP_SECONDS ({self.Time.BASE_TIME_STEP_SECONDS}) "
                f"differs from Physics.TIMESTEP_SECONDS ({self.Physics.TIMESTEP_SECONDS}). "
                "Ensure this is intentional, as they are often expected to match."
            )
        if self.Time.DEFAULT_SIMULATION_SPEED < 0:
            raise ConfigurationError("Time.DEFAULT_SIMULATION_SPEED cannot be negative.")
        if int(self.Time.MAX_STEPS_PER_UPDATE) < 1:
            raise ConfigurationError("Time.MAX_STEPS_PER_UPDATE must be at least 1.")
        if self.Time.MIN_SIMULATION_YEAR >= self.Time.MAX_SIMULATION_YEAR:
            raise ConfigurationError(
                f"Time.MIN_SIMULATION_YEAR ({self.Time.MIN_SIMULATION_YEAR}) must be less than "
                f"MAX_SIMULATION_YEAR ({self.Time.MAX_SIMULATION_YEAR})."
            )
        for preset_name, speed in self.Time.TIME_SPEEDS.items():
            if speed < 0:
                raise ConfigurationError(f"Time.TIME_SPEEDS['{preset_name}'] ({speed}) cannot be negative.")

        # Parallel validation
        if int(self.Parallel.WORKER_COUNT) < 1:
            raise ConfigurationError("Parallel.WORKER_COUNT must be at least 1.")
        if int(self.Parallel.PARALLEL_THRESHOLD) < 1:
            raise ConfigurationError("Parallel.PARALLEL_THRESHOLD must be at least 1.")
        if self.Parallel.WORKER_TIMEOUT_SECONDS is not None and self.Parallel.WORKER_TIMEOUT_SECONDS <= 0:
            raise ConfigurationError("Parallel.WORKER_TIMEOUT_SECONDS must be positive or None.")

        # Coordinates validation
        if not (0.0 <= self.Coordinates.OBLIQUITY_J2000_DEG < 90.0):
            raise ConfigurationError(
                f"Coordinates.OBLIQUITY_J2000_DEG ({self.Coordinates.OBLIQUITY_J2000_DEG}) must be in [0, 90)."
            )
        if self.Coordinates.AU_M <= 0:
            raise ConfigurationError("Coordinates.AU_M must be positive.")
        if self.Coordinates.DEFAULT_REFERENCE_FRAME not in ("heliocentric", "barycentric"):
            raise ConfigurationError(
                f"Coordinates.DEFAULT_REFERENCE_FRAME '{self.Coordinates.DEFAULT_REFERENCE_FRAME}' "
                "must be 'heliocentric' or 'barycentric'."
            )

        # Solar System Data Validation
        if self.SolarSystem.SUN_MASS_KG <= 0:
            raise ConfigurationError("SolarSystem.SUN_MASS_KG must be positive.")
        if 'Sun' not in self.SolarSystem.PLANET_DATA or \
           self.SolarSystem.PLANET_DATA['Sun'].get('mass_kg') != self.SolarSystem.SUN_MASS_KG:
            raise ConfigurationError(
                "Sun data missing in PLANET_DATA or Sun's mass in PLANET_DATA "
                "does not match SolarSystem.SUN_MASS_KG after __init__ update."
            )

        for name, data in self.SolarSystem.PLANET_DATA.items():
            if data.get('mass_kg', -1.0) < 0:
                raise ConfigurationError(f"Mass of celestial body '{name}' cannot be negative.")
            if data.get('radius_km', -1.0) < 0:
                raise ConfigurationError(f"Radius of celestial body '{name}' cannot be negative.")
            if data.get('semi_major_axis_au', 0.0) <= 0 and name != 'Sun':
                 raise ConfigurationError(f"Semi-major axis of celestial body '{name}' must be positive.")
            if not (0.0 <= data.get('eccentricity', 0.0) < 1.0):
                 raise ConfigurationError(f"Eccentricity of celestial body '{name}' ({data.get('eccentricity', 0.0)}) must be >= 0 and < 1.")
            if not (0.0 <= data.get('inclination_deg', 0.0) <= 180.0):
                raise ConfigurationError(f"Inclination of '{name}' ({data.get('inclination_deg', 0.0)}) must be between 0 and 180 degrees inclusive.")

            central_body_name = data.get('central_body')
            if central_body_name is not None:
                if central_body_name not in self.SolarSystem.PLANET_DATA:
                    raise ConfigurationError(f"Central body '{central_body_name}' for '{name}' not found in PLANET_DATA.")
                if central_body_name == name:
                    raise ConfigurationError(f"Celestial body '{name}' cannot orbit itself.")
            elif name != 'Sun':
                raise ConfigurationError(f"Celestial body '{name}' (which is not the Sun) must have a 'central_body' defined.")

        for planet_name in self.SolarSystem.PLANET_CREATION_ORDER:
            planet_cfg = self.SolarSystem.PLANET_DATA.get(planet_name)
            if planet_cfg is not None and planet_cfg.get('central_body') != 'Sun':
                raise ConfigurationError(
                    f"'{planet_name}' is listed in PLANET_CREATION_ORDER but orbits "
                    f"'{planet_cfg.get('central_body')}' instead of the Sun."
                )

        if self.Debug.ENERGY_CHECK_INTERVAL_STEPS <= 0 or self.Debug.LOG_ORBIT_INTERVAL_STEPS <= 0:
            raise ConfigurationError("Debug check/log intervals must be positive.")

        logging.info("Configuration validated successfully.")


# --- Instantiate the configuration ---
# This makes the config object available for import and runs validation.
# e.g., from config import config
try:
    config = SimulationConfig()
except ConfigurationError as e:
    logging.error(f"FATAL CONFIGURATION ERROR: {e}", exc_info=True)
    raise
