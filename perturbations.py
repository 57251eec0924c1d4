# perturbations.py
"""Perturbing accelerations on top of the two-body problem.

Every function returns an acceleration in m/s^2 as a (3,) array. Geometries that
would be singular (zero distances, zero speed) yield the zero vector.
"""
import math
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from config import config, AU_M
from physics_utils import PhysicsError, as_vector3, normalize_vector

SOLAR_RADIATION_PRESSURE_1AU = 4.56e-6  # N/m^2
SINGULARITY_DISTANCE_M = 1e-6

@dataclass
class PerturbingBody:
    id: str
    mass: float
    position: np.ndarray
    name: str = ""
    J2: float = 0.0
    radius: float = 0.0

    def __post_init__(self):
        self.position = as_vector3(self.position)

@dataclass
class Atmosphere:
    """Exponential atmosphere around the central body.

    Attributes:
        radius (float): Radius of the body's surface, m.
        density0 (float): Density at the surface, kg/m^3.
        scale_height (float): e-folding height, m.
        drag_coefficient (float): C_d of the perturbed object.
        cross_section (float): Area presented to the flow, m^2.
        mass (float): Mass of the perturbed object, kg.
    """
    radius: float
    density0: float
    scale_height: float
    drag_coefficient: float = 2.2
    cross_section: float = 1.0
    mass: float = 1.0

@dataclass
class RadiationProperties:
    area: float = 1.0
    reflectivity: float = 0.3
    mass: float = 1.0

class Perturbations:
    """Calculator for third-body, oblateness, relativistic, drag and radiation-pressure effects."""

    def __init__(self, G: float = None, c: float = None, use_relativistic: bool = False,
                 use_non_spherical: bool = True, use_atmospheric_drag: bool = False,
                 use_solar_radiation: bool = False):
        self.G = config.Physics.G if G is None else G
        self.c = config.Physics.SPEED_OF_LIGHT_M_S if c is None else c
        self.use_relativistic = use_relativistic
        self.use_non_spherical = use_non_spherical
        self.use_atmospheric_drag = use_atmospheric_drag
        self.use_solar_radiation = use_solar_radiation
        self.perturbing_bodies: List[PerturbingBody] = []

    def add_perturbing_body(self, body: PerturbingBody):
        if body.mass < 0:
            raise PhysicsError(f"Perturbing body '{body.id}' cannot have negative mass.")
        self.perturbing_bodies.append(body)

    def remove_perturbing_body(self, body_id: str):
        self.perturbing_bodies = [b for b in self.perturbing_bodies if b.id != body_id]

    def clear_perturbing_bodies(self):
        self.perturbing_bodies = []

    def calculate_third_body_perturbation(self, position, central_body_position, perturbing_body: PerturbingBody) -> np.ndarray:
        """
        Differential pull of a third body on an object orbiting a central body.

        a = G m3 [ (s - r)/|s - r|^3 - s/|s|^3 ], with r the object's and s the
        perturber's position relative to the central body. The second (indirect)
        term is the perturber's pull on the central body itself.
        """
        r = as_vector3(position) - as_vector3(central_body_position)
        s = perturbing_body.position - as_vector3(central_body_position)
        s_minus_r = s - r
        d = np.linalg.norm(s_minus_r)
        s_mag = np.linalg.norm(s)
        if np.linalg.norm(r) < SINGULARITY_DISTANCE_M or d < SINGULARITY_DISTANCE_M or s_mag < SINGULARITY_DISTANCE_M:
            return np.zeros(3)
        mu3 = self.G * perturbing_body.mass
        return mu3 * (s_minus_r / d ** 3 - s / s_mag ** 3)

    def calculate_j2_perturbation(self, position, central_body: PerturbingBody) -> np.ndarray:
        """Oblateness acceleration; `position` is relative to the central body, z along its spin axis."""
        if not self.use_non_spherical or central_body.J2 == 0:
            return np.zeros(3)
        pos = as_vector3(position)
        r = np.linalg.norm(pos)
        if r < SINGULARITY_DISTANCE_M:
            return np.zeros(3)

        mu = self.G * central_body.mass
        R = central_body.radius
        factor = -1.5 * central_body.J2 * mu * R * R / r ** 5
        z_ratio = 5.0 * pos[2] * pos[2] / (r * r)
        return factor * np.array([
            pos[0] * (1.0 - z_ratio),
            pos[1] * (1.0 - z_ratio),
            pos[2] * (3.0 - z_ratio),
        ])

    def calculate_relativistic_perturbation(self, position, velocity, central_body_mass: float) -> np.ndarray:
        """First post-Newtonian Schwarzschild correction.

        a = mu / (c^2 r^3) [ (4 mu / r - v^2) r_vec + 4 (r_vec . v_vec) v_vec ]
        """
        if not self.use_relativistic:
            return np.zeros(3)
        pos = as_vector3(position)
        vel = as_vector3(velocity)
        r = np.linalg.norm(pos)
        if r < SINGULARITY_DISTANCE_M:
            return np.zeros(3)
        mu = self.G * central_body_mass
        v_sq = np.dot(vel, vel)
        return mu / (self.c * self.c * r ** 3) * ((4.0 * mu / r - v_sq) * pos + 4.0 * np.dot(pos, vel) * vel)

    def calculate_atmospheric_drag(self, position, velocity, atmosphere: Atmosphere) -> np.ndarray:
        """Drag opposing the velocity relative to a non-rotating exponential atmosphere."""
        if not self.use_atmospheric_drag:
            return np.zeros(3)
        pos = as_vector3(position)
        vel = as_vector3(velocity)
        r = np.linalg.norm(pos)
        v = np.linalg.norm(vel)
        if r < atmosphere.radius or v < SINGULARITY_DISTANCE_M:
            return np.zeros(3)
        if atmosphere.mass <= 0 or atmosphere.scale_height <= 0:
            raise PhysicsError("Atmospheric drag needs a positive object mass and scale height.")

        altitude = r - atmosphere.radius
        density = atmosphere.density0 * math.exp(-altitude / atmosphere.scale_height)
        drag_factor = -0.5 * atmosphere.drag_coefficient * atmosphere.cross_section * density / atmosphere.mass
        return drag_factor * v * vel

    def calculate_solar_radiation_pressure(self, position, sun_position, properties: RadiationProperties) -> np.ndarray:
        if not self.use_solar_radiation:
            return np.zeros(3)
        r_sun = as_vector3(position) - as_vector3(sun_position)
        r_sun_mag = np.linalg.norm(r_sun)
        if r_sun_mag < SINGULARITY_DISTANCE_M:
            return np.zeros(3)
        if properties.mass <= 0:
            raise PhysicsError("Solar radiation pressure needs a positive object mass.")

        pressure = SOLAR_RADIATION_PRESSURE_1AU * (AU_M / r_sun_mag) ** 2
        magnitude = pressure * properties.area * (1.0 + properties.reflectivity) / properties.mass
        return magnitude * normalize_vector(r_sun)

    def calculate_total_perturbation(self, position, velocity, central_body: PerturbingBody,
                                     atmosphere: Optional[Atmosphere] = None,
                                     sun_position=None, radiation_properties: Optional[RadiationProperties] = None) -> np.ndarray:
        """Sum of all enabled effects. `position`/`velocity` are absolute; the central body's position is subtracted where needed."""
        pos = as_vector3(position)
        vel = as_vector3(velocity)
        relative = pos - central_body.position
        total = np.zeros(3)

        for perturbing_body in self.perturbing_bodies:
            if perturbing_body.id != central_body.id:
                total += self.calculate_third_body_perturbation(pos, central_body.position, perturbing_body)

        total += self.calculate_j2_perturbation(relative, central_body)
        total += self.calculate_relativistic_perturbation(relative, vel, central_body.mass)

        if atmosphere is not None:
            total += self.calculate_atmospheric_drag(relative, vel, atmosphere)
        if sun_position is not None and radiation_properties is not None:
            total += self.calculate_solar_radiation_pressure(pos, sun_position, radiation_properties)
        return total

    def calculate_secular_rates(self, elements, central_body: PerturbingBody,
                                perturbing_bodies: List[PerturbingBody] = None) -> Dict[str, float]:
        """
        Long-term drift rates (rad/s) of the node and periapsis.

        J2 terms are the standard first-order averages:
            dOmega/dt = -3/2 n J2 (R/p)^2 cos i
            domega/dt =  3/4 n J2 (R/p)^2 (5 cos^2 i - 1)
        Third-body terms use a simplified circular, distant-perturber model.

        Args:
            elements (OrbitalElements): Orbit of the perturbed body.
            central_body (PerturbingBody): Body supplying J2 and radius.
            perturbing_bodies (List[PerturbingBody]): Third bodies; positions relative
                to the central body. Defaults to the registered bodies.

        Returns:
            Dict[str, float]: da_dt, de_dt, di_dt, dOmega_dt, domega_dt, dM_dt.
        """
        if perturbing_bodies is None:
            perturbing_bodies = self.perturbing_bodies
        a = elements.semi_major_axis
        e = elements.eccentricity
        i = elements.inclination
        n = 2.0 * math.pi / elements.orbital_period

        rates = {'da_dt': 0.0, 'de_dt': 0.0, 'di_dt': 0.0, 'dOmega_dt': 0.0, 'domega_dt': 0.0, 'dM_dt': 0.0}

        if self.use_non_spherical and central_body.J2 != 0:
            p = a * (1.0 - e * e)
            base = n * central_body.J2 * (central_body.radius / p) ** 2
            rates['dOmega_dt'] = -1.5 * base * math.cos(i)
            rates['domega_dt'] = 0.75 * base * (5.0 * math.cos(i) ** 2 - 1.0)

        for perturbing_body in perturbing_bodies:
            if perturbing_body.id == central_body.id:
                continue
            a_perturber = np.linalg.norm(perturbing_body.position)
            if a_perturber < SINGULARITY_DISTANCE_M:
                continue
            n_perturber_sq = self.G * perturbing_body.mass / a_perturber ** 3
            alpha = a / a_perturber
            if alpha >= 1.0:
                logging.debug(f"Skipping secular term for '{perturbing_body.id}': perturber is inside the orbit.")
                continue
            factor = 0.75 * n_perturber_sq / (n * math.sqrt(1.0 - e * e))
            rates['dOmega_dt'] += -factor * math.cos(i)
            rates['domega_dt'] += factor * (2.0 - 2.5 * math.sin(i) ** 2)

        return rates
