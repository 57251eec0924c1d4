# solarsystem.py
import math
import logging
import dataclasses
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from config import config, AU_M # Import the global config instance
from physics_utils import (PhysicsError, TWO_PI, as_vector3, normalize_angle, normalize_vector, clamp,
                           orbital_period, orbital_state_at, eccentric_from_true_anomaly)

# Relative thresholds below which the node vector / eccentricity vector are treated as zero
EQUATORIAL_TOLERANCE = 1e-10
CIRCULAR_TOLERANCE = 1e-10
PERIOD_CONSISTENCY_TOLERANCE = 1e-3

@dataclass
class OrbitalElements:
    """Classical Keplerian elements of a bound orbit, in SI units.

    Attributes:
        semi_major_axis (float): a, meters.
        eccentricity (float): e, 0 <= e < 1.
        inclination (float): i, radians.
        longitude_of_ascending_node (float): Omega, radians.
        argument_of_periapsis (float): omega, radians.
        mean_anomaly_at_epoch (float): M0, radians.
        orbital_period (Optional[float]): T, seconds. Derived from Kepler's third law
                                          when omitted.
        epoch (float): Time at which M0 applies, seconds since J2000.
        central_body_mass (float): Mass of the attracting body, kg.
    """
    semi_major_axis: float
    eccentricity: float
    inclination: float = 0.0
    longitude_of_ascending_node: float = 0.0
    argument_of_periapsis: float = 0.0
    mean_anomaly_at_epoch: float = 0.0
    orbital_period: Optional[float] = None
    epoch: float = 0.0
    central_body_mass: float = config.SolarSystem.SUN_MASS_KG

    def __post_init__(self):
        for name in ('semi_major_axis', 'eccentricity', 'inclination', 'longitude_of_ascending_node',
                     'argument_of_periapsis', 'mean_anomaly_at_epoch', 'epoch', 'central_body_mass'):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise PhysicsError(f"Orbital element '{name}' must be finite, got {value}.")
            setattr(self, name, value)

        if not (0.0 <= self.eccentricity < 1.0):
            raise PhysicsError(
                f"Eccentricity {self.eccentricity} is outside [0, 1); only bound elliptical orbits are supported."
            )
        if self.semi_major_axis <= 0.0:
            raise PhysicsError(f"Semi-major axis must be positive, got {self.semi_major_axis} m.")
        if self.central_body_mass <= 0.0:
            raise PhysicsError(f"Central body mass must be positive, got {self.central_body_mass} kg.")

        derived_period = orbital_period(self.semi_major_axis, self.central_body_mass)
        if self.orbital_period is None:
            self.orbital_period = derived_period
        else:
            self.orbital_period = float(self.orbital_period)
            if not (math.isfinite(self.orbital_period) and self.orbital_period > 0.0):
                raise PhysicsError(f"Orbital period must be positive and finite, got {self.orbital_period} s.")
            mismatch = abs(self.orbital_period - derived_period) / derived_period
            if mismatch > PERIOD_CONSISTENCY_TOLERANCE:
                logging.warning(
                    f"Supplied orbital period {self.orbital_period:.6e} s differs from the Kepler's-third-law "
                    f"value {derived_period:.6e} s by {mismatch:.2%}; propagated velocities will not match the dynamics."
                )

    @classmethod
    def from_degrees(cls, semi_major_axis_m: float, eccentricity: float, inclination_deg: float,
                     longitude_of_ascending_node_deg: float, argument_of_periapsis_deg: float,
                     mean_anomaly_at_epoch_deg: float, central_body_mass: float, epoch: float = 0.0,
                     orbital_period: Optional[float] = None) -> 'OrbitalElements':
        return cls(
            semi_major_axis=semi_major_axis_m,
            eccentricity=eccentricity,
            inclination=math.radians(inclination_deg),
            longitude_of_ascending_node=normalize_angle(math.radians(longitude_of_ascending_node_deg)),
            argument_of_periapsis=normalize_angle(math.radians(argument_of_periapsis_deg)),
            mean_anomaly_at_epoch=normalize_angle(math.radians(mean_anomaly_at_epoch_deg)),
            orbital_period=orbital_period,
            epoch=epoch,
            central_body_mass=central_body_mass,
        )

    @property
    def gravitational_parameter(self) -> float:
        return config.Physics.G * self.central_body_mass

    @property
    def mean_motion(self) -> float:
        """Radians per second."""
        return TWO_PI / self.orbital_period

@dataclass
class CelestialBody:
    """A simulated body. State vectors are SI, heliocentric unless stated otherwise.

    Bodies with `keplerian=True` are positioned by closed-form propagation of `orbit`
    (relative to `central_body_id` when set) instead of by N-body integration.
    """
    id: str
    name: str = ""
    mass: float = 0.0
    radius: float = 0.0
    position: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    acceleration: np.ndarray = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    orbit: Optional[OrbitalElements] = None
    central_body_id: Optional[str] = None
    group: str = "default"
    rotation: float = 0.0
    rotation_period: Optional[float] = None # Seconds; negative for retrograde spin
    keplerian: bool = False
    initial_state: Dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        self.id = str(self.id)
        if not self.name:
            self.name = self.id
        self.position = as_vector3(self.position)
        self.velocity = as_vector3(self.velocity)
        self.acceleration = as_vector3(self.acceleration)
        self.mass = float(self.mass)
        self.radius = float(self.radius)
        if not (math.isfinite(self.mass) and self.mass >= 0.0):
            raise PhysicsError(f"Mass of '{self.id}' must be a non-negative number, got {self.mass}.")
        if not (math.isfinite(self.radius) and self.radius >= 0.0):
            raise PhysicsError(f"Radius of '{self.id}' must be a non-negative number, got {self.radius}.")
        if self.keplerian and self.orbit is None:
            raise PhysicsError(f"Body '{self.id}' is marked Keplerian but has no orbital elements.")
        if not self.initial_state:
            self.capture_initial_state()

    def capture_initial_state(self):
        self.initial_state = {'position': self.position.copy(), 'velocity': self.velocity.copy()}

    def restore_initial_state(self):
        self.position = self.initial_state['position'].copy()
        self.velocity = self.initial_state['velocity'].copy()
        self.acceleration = np.zeros(3, dtype=np.float64)

    def rotation_at(self, time_seconds: float) -> float:
        """Spin angle about the body's axis at `time_seconds` since J2000."""
        if not self.rotation_period:
            return self.rotation
        return normalize_angle(self.rotation + TWO_PI * time_seconds / self.rotation_period)

class KeplerianOrbit:
    """Closed-form two-body propagation for a single set of orbital elements."""

    def __init__(self, elements: OrbitalElements):
        if not isinstance(elements, OrbitalElements):
            raise PhysicsError(f"KeplerianOrbit requires OrbitalElements, got {type(elements).__name__}.")
        self.elements = elements

    def get_position_at_time(self, time_seconds: float) -> np.ndarray:
        position, _ = orbital_state_at(self.elements, time_seconds)
        return position

    def get_velocity_at_time(self, time_seconds: float) -> np.ndarray:
        _, velocity = orbital_state_at(self.elements, time_seconds)
        return velocity

    def get_state_at_time(self, time_seconds: float) -> Tuple[np.ndarray, np.ndarray]:
        return orbital_state_at(self.elements, time_seconds)

    @staticmethod
    def calculate_orbital_period(semi_major_axis: float, central_body_mass: float) -> float:
        return orbital_period(semi_major_axis, central_body_mass)

    @staticmethod
    def calculate_semi_major_axis(period: float, central_body_mass: float) -> float:
        """Inverse of Kepler's third law."""
        mu = config.Physics.G * central_body_mass
        if period <= 0.0 or mu <= 0.0:
            raise PhysicsError(f"Cannot derive a semi-major axis from T={period} s and central mass={central_body_mass} kg.")
        return (mu * period * period / (4.0 * math.pi * math.pi)) ** (1.0 / 3.0)

    @staticmethod
    def calculate_eccentricity_vector(position, velocity, mu: float) -> np.ndarray:
        """Laplace-Runge-Lenz construction, e = ((v^2 - mu/r) r - (r.v) v) / mu."""
        r_vec = as_vector3(position)
        v_vec = as_vector3(velocity)
        r = np.linalg.norm(r_vec)
        if r <= 0.0 or mu <= 0.0:
            raise PhysicsError(f"Eccentricity vector undefined for |r|={r} m, mu={mu}.")
        return ((np.dot(v_vec, v_vec) - mu / r) * r_vec - np.dot(r_vec, v_vec) * v_vec) / mu

    @staticmethod
    def calculate_orbital_elements(position, velocity, central_body_mass: float, epoch: float = 0.0) -> OrbitalElements:
        """
        Recovers classical elements from a relative state vector (the inverse problem).

        Degenerate geometries follow fixed conventions instead of producing NaN:
        -   Equatorial orbits (node vector ~ 0): Omega = 0. For an eccentric equatorial
            orbit omega is then the longitude of periapsis (mirrored when retrograde).
        -   Circular orbits (e ~ 0): omega = 0 and the true anomaly is measured from the
            ascending node (argument of latitude), or from +x when also equatorial.

        Args:
            position (array-like): Position relative to the central body, m.
            velocity (array-like): Velocity relative to the central body, m/s.
            central_body_mass (float): kg.
            epoch (float): Time of the state, seconds since J2000. Becomes the elements' epoch.

        Returns:
            OrbitalElements: Elements whose propagation at `epoch` reproduces the state.

        Raises:
            PhysicsError: For a non-positive mass, zero radius, unbound (energy >= 0) or
                          rectilinear (zero angular momentum) trajectories.
        """
        r_vec = as_vector3(position)
        v_vec = as_vector3(velocity)
        if central_body_mass <= 0.0:
            raise PhysicsError(f"Central body mass must be positive, got {central_body_mass} kg.")
        mu = config.Physics.G * central_body_mass
        r = float(np.linalg.norm(r_vec))
        v = float(np.linalg.norm(v_vec))
        if r <= 0.0:
            raise PhysicsError("Cannot derive orbital elements at zero distance from the central body.")

        energy = v * v / 2.0 - mu / r
        if energy >= 0.0:
            raise PhysicsError(
                f"Specific orbital energy {energy:.6e} J/kg is non-negative; parabolic and hyperbolic "
                "trajectories cannot be represented as elliptical elements."
            )
        a = -mu / (2.0 * energy)

        h_vec = np.cross(r_vec, v_vec)
        h = float(np.linalg.norm(h_vec))
        if h <= CIRCULAR_TOLERANCE * r * v:
            raise PhysicsError("Angular momentum is zero; rectilinear trajectories have no orbital plane.")
        h_hat = h_vec / h
        inclination = math.acos(clamp(h_vec[2] / h, -1.0, 1.0))

        node_vec = np.array([-h_vec[1], h_vec[0], 0.0]) # z_hat x h
        equatorial = np.linalg.norm(node_vec) <= EQUATORIAL_TOLERANCE * h
        n_hat = np.array([1.0, 0.0, 0.0]) if equatorial else normalize_vector(node_vec)

        e_vec = KeplerianOrbit.calculate_eccentricity_vector(r_vec, v_vec, mu)
        e = float(np.linalg.norm(e_vec))
        if e >= 1.0:
            raise PhysicsError(f"Derived eccentricity {e} is not elliptical.")
        circular = e <= CIRCULAR_TOLERANCE
        r_hat = r_vec / r

        def signed_angle(from_hat, to_hat):
            # Angle from one in-plane direction to another, positive in the direction of motion
            return math.atan2(np.dot(np.cross(from_hat, to_hat), h_hat), np.dot(from_hat, to_hat))

        longitude_of_ascending_node = 0.0 if equatorial else normalize_angle(math.atan2(node_vec[1], node_vec[0]))
        retrograde_equatorial = equatorial and h_vec[2] < 0.0

        if circular:
            argument_of_periapsis = 0.0
            if equatorial:
                true_anomaly = math.atan2(r_vec[1], r_vec[0])
                if retrograde_equatorial:
                    true_anomaly = -true_anomaly
            else:
                true_anomaly = signed_angle(n_hat, r_hat)
        else:
            e_hat = e_vec / e
            if equatorial:
                argument_of_periapsis = math.atan2(e_vec[1], e_vec[0])
                if retrograde_equatorial:
                    argument_of_periapsis = -argument_of_periapsis
            else:
                argument_of_periapsis = signed_angle(n_hat, e_hat)
            true_anomaly = signed_angle(e_hat, r_hat)

        E = eccentric_from_true_anomaly(true_anomaly, e)
        mean_anomaly = normalize_angle(E - e * math.sin(E))

        if config.Debug.ORBITAL_MECHANICS:
            logging.debug(
                f"Elements from state: a={a:.6e} m, e={e:.6e}, i={inclination:.6f} rad, "
                f"Omega={longitude_of_ascending_node:.6f}, omega={argument_of_periapsis:.6f}, M={mean_anomaly:.6f} "
                f"(equatorial={equatorial}, circular={circular})"
            )

        return OrbitalElements(
            semi_major_axis=a,
            eccentricity=e,
            inclination=inclination,
            longitude_of_ascending_node=longitude_of_ascending_node,
            argument_of_periapsis=normalize_angle(argument_of_periapsis),
            mean_anomaly_at_epoch=mean_anomaly,
            epoch=epoch,
            central_body_mass=central_body_mass,
        )

    def calculate_apsides(self) -> Tuple[float, float]:
        """Periapsis and apoapsis distances in meters."""
        a = self.elements.semi_major_axis
        e = self.elements.eccentricity
        return a * (1.0 - e), a * (1.0 + e)

    def calculate_velocity_at_distance(self, distance_m: float) -> float:
        """Vis-viva speed at a radius."""
        if distance_m <= 0.0:
            raise PhysicsError(f"Distance must be positive, got {distance_m} m.")
        mu = self.elements.gravitational_parameter
        v_squared = mu * (2.0 / distance_m - 1.0 / self.elements.semi_major_axis)
        if v_squared < 0.0:
            raise PhysicsError(
                f"Distance {distance_m:.6e} m is beyond twice the semi-major axis; no bound speed exists there."
            )
        return math.sqrt(v_squared)

    def calculate_time_of_flight(self, true_anomaly_start: float, true_anomaly_end: float) -> float:
        """Seconds to travel forward from one true anomaly to another (always in [0, T))."""
        e = self.elements.eccentricity
        E1 = eccentric_from_true_anomaly(true_anomaly_start, e)
        E2 = eccentric_from_true_anomaly(true_anomaly_end, e)
        M1 = E1 - e * math.sin(E1)
        M2 = E2 - e * math.sin(E2)
        return normalize_angle(M2 - M1) * self.elements.orbital_period / TWO_PI

    def update_elements(self, **changes) -> OrbitalElements:
        """Replaces selected elements; the period is re-derived unless given explicitly."""
        unknown = set(changes) - {f.name for f in dataclasses.fields(OrbitalElements)}
        if unknown:
            raise PhysicsError(f"Unknown orbital element(s): {sorted(unknown)}")
        if 'orbital_period' not in changes and ({'semi_major_axis', 'central_body_mass'} & set(changes)):
            changes['orbital_period'] = None
        self.elements = dataclasses.replace(self.elements, **changes)
        return self.elements

    def get_elements(self) -> OrbitalElements:
        return dataclasses.replace(self.elements)

def system_energy(positions: np.ndarray, velocities: np.ndarray, masses: np.ndarray,
                  G: float = None, min_distance: float = None) -> Dict[str, float]:
    """Kinetic, potential and total energy (J) of point masses; coincident pairs are skipped."""
    if G is None:
        G = config.Physics.G
    if min_distance is None:
        min_distance = config.Physics.ZERO_DISTANCE_EPSILON_M
    positions = np.asarray(positions, dtype=np.float64)
    velocities = np.asarray(velocities, dtype=np.float64)
    masses = np.asarray(masses, dtype=np.float64)

    kinetic = 0.5 * float(np.sum(masses * np.sum(velocities * velocities, axis=1)))
    potential = 0.0
    if len(masses) > 1:
        i_idx, j_idx = np.triu_indices(len(masses), k=1)
        separations = np.linalg.norm(positions[j_idx] - positions[i_idx], axis=1)
        valid = separations > min_distance
        if not np.all(valid):
            logging.warning(f"Skipping {int(np.sum(~valid))} coincident body pair(s) in potential energy.")
        potential = -G * float(np.sum(masses[i_idx][valid] * masses[j_idx][valid] / separations[valid]))
    return {'kinetic': kinetic, 'potential': potential, 'total': kinetic + potential}

def calculate_total_energy(bodies: List[CelestialBody], G: float = None) -> Dict[str, float]:
    if not bodies:
        return {'kinetic': 0.0, 'potential': 0.0, 'total': 0.0}
    return system_energy(np.array([b.position for b in bodies]),
                         np.array([b.velocity for b in bodies]),
                         np.array([b.mass for b in bodies]), G=G)

def calculate_center_of_mass(bodies: List[CelestialBody]) -> Tuple[np.ndarray, np.ndarray, float]:
    """Mass-weighted position and velocity, and the total mass."""
    total_mass = float(sum(b.mass for b in bodies))
    if total_mass <= 0.0:
        return np.zeros(3), np.zeros(3), 0.0
    position = sum((b.mass * b.position for b in bodies), np.zeros(3)) / total_mass
    velocity = sum((b.mass * b.velocity for b in bodies), np.zeros(3)) / total_mass
    return position, velocity, total_mass

def _body_from_config(name: str, body_cfg: Dict, primary: Optional[CelestialBody], epoch_seconds: float,
                      keplerian: bool) -> CelestialBody:
    rotation_hours = body_cfg.get('rotation_period_hours')
    common = dict(
        id=name.lower(), name=name,
        mass=float(body_cfg['mass_kg']), radius=float(body_cfg['radius_km']) * 1000.0,
        group=body_cfg.get('group', 'default'),
        rotation_period=rotation_hours * 3600.0 if rotation_hours else None,
    )
    if primary is None:
        return CelestialBody(**common)

    elements = OrbitalElements.from_degrees(
        semi_major_axis_m=float(body_cfg['semi_major_axis_au']) * AU_M,
        eccentricity=float(body_cfg['eccentricity']),
        inclination_deg=float(body_cfg['inclination_deg']),
        longitude_of_ascending_node_deg=float(body_cfg['longitude_of_ascending_node_deg']),
        argument_of_periapsis_deg=float(body_cfg['argument_of_perihelion_deg']),
        mean_anomaly_at_epoch_deg=float(body_cfg['mean_anomaly_at_epoch_deg']),
        central_body_mass=primary.mass,
    )
    relative_position, relative_velocity = orbital_state_at(elements, epoch_seconds)
    return CelestialBody(
        position=primary.position + relative_position,
        velocity=primary.velocity + relative_velocity,
        orbit=elements, central_body_id=primary.id, keplerian=keplerian,
        **common
    )

def build_solar_system(planet_data: Dict[str, Dict] = None, epoch_seconds: float = 0.0,
                       keplerian: bool = False, barycentric: bool = False) -> List[CelestialBody]:
    """Creates the Sun, planets and moons from a preset table.

    Order of Creation: Sun -> Planets (in `PLANET_CREATION_ORDER`) -> Moons, so every
    primary is placed before its satellites. Elements in the table are taken as valid
    at J2000; bodies are placed at `epoch_seconds` since J2000.

    Args:
        planet_data (Dict[str, Dict]): Table in the `config.SolarSystem.PLANET_DATA`
            format. Defaults to the configured presets.
        epoch_seconds (float): Time at which initial states are computed.
        keplerian (bool): If True, every orbiting body is driven by closed-form
            propagation about its primary instead of by N-body integration.
        barycentric (bool): If True (N-body mode only), shift all states so the
            system's center of mass is at rest at the origin.

    Returns:
        List[CelestialBody]: Bodies in creation order.

    Raises:
        PhysicsError: If the Sun is missing, any body has invalid elements, or a
            moon's primary is missing.
    """
    if planet_data is None:
        planet_data = config.SolarSystem.PLANET_DATA

    try:
        sun_cfg = planet_data['Sun']
    except KeyError:
        raise PhysicsError("Sun data missing from the planet table.")

    sun = _body_from_config('Sun', sun_cfg, None, epoch_seconds, keplerian)
    bodies: List[CelestialBody] = [sun]
    references: Dict[str, CelestialBody] = {'Sun': sun}

    for planet_name in config.SolarSystem.PLANET_CREATION_ORDER:
        planet_cfg = planet_data.get(planet_name)
        if not planet_cfg:
            logging.warning(f"Configuration for planet '{planet_name}' not found. Skipping.")
            continue
        planet = _body_from_config(planet_name, planet_cfg, sun, epoch_seconds, keplerian)
        bodies.append(planet)
        references[planet_name] = planet
        logging.debug(f"Created {planet_name}: Pos={planet.position.tolist()} m, Vel={planet.velocity.tolist()} m/s")

    for body_name, body_cfg in planet_data.items():
        primary_name = body_cfg.get('central_body')
        if body_name in references or primary_name is None:
            continue
        primary = references.get(primary_name)
        if primary is None:
            raise PhysicsError(f"Primary body '{primary_name}' for '{body_name}' was not created before it.")
        moon = _body_from_config(body_name, body_cfg, primary, epoch_seconds, keplerian)
        bodies.append(moon)
        references[body_name] = moon
        logging.debug(f"Created {body_name} orbiting {primary_name}: Pos={moon.position.tolist()} m")

    if barycentric and not keplerian:
        com_position, com_velocity, _ = calculate_center_of_mass(bodies)
        for body in bodies:
            body.position = body.position - com_position
            body.velocity = body.velocity - com_velocity
            body.capture_initial_state()

    logging.info(f"Built solar system with {len(bodies)} bodies ({'Keplerian' if keplerian else 'N-body'} mode).")
    return bodies
