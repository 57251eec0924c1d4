# coordinates.py
import math
import logging
from datetime import datetime
from typing import Tuple

import numpy as np

from config import config
from physics_utils import PhysicsError, as_vector3, normalize_angle, clamp
from solarsystem import KeplerianOrbit, OrbitalElements
from time_utils import date_to_julian_date, calculate_lst as _calculate_lst, calculate_true_obliquity

class CoordinateTransform:
    """Conversions between equatorial, ecliptic, horizontal and helio/geocentric frames.

    The only state is configuration: the reference epoch, the obliquity used when no
    date is given, and the AU scale. All angles are radians unless a method name says
    otherwise. Passing `jd` to the ecliptic conversions switches from the fixed J2000
    obliquity to the true obliquity of that date.

    Attributes:
        epoch_jd (float): Reference epoch (Julian Date).
        obliquity (float): Obliquity of the ecliptic in radians.
        au (float): Meters per astronomical unit.
    """

    def __init__(self, epoch_jd: float = None, obliquity_deg: float = None, au: float = None):
        self.epoch_jd = config.Coordinates.EPOCH_JD if epoch_jd is None else epoch_jd
        self.obliquity = math.radians(config.Coordinates.OBLIQUITY_J2000_DEG if obliquity_deg is None else obliquity_deg)
        self.au = config.Coordinates.AU_M if au is None else au
        if self.au <= 0:
            raise PhysicsError(f"AU scale must be positive, got {self.au}.")

    def _obliquity(self, jd: float = None) -> float:
        return self.obliquity if jd is None else calculate_true_obliquity(jd)

    # --- Spherical / Cartesian ---

    @staticmethod
    def spherical_to_cartesian(radius: float, longitude: float, latitude: float) -> np.ndarray:
        cos_lat = math.cos(latitude)
        return np.array([radius * cos_lat * math.cos(longitude),
                         radius * cos_lat * math.sin(longitude),
                         radius * math.sin(latitude)])

    @staticmethod
    def cartesian_to_spherical(vector) -> Tuple[float, float, float]:
        """Returns (radius, longitude in [0, 2*pi), latitude)."""
        v = as_vector3(vector)
        radius = float(np.linalg.norm(v))
        if radius == 0.0:
            return 0.0, 0.0, 0.0
        longitude = normalize_angle(math.atan2(v[1], v[0]))
        latitude = math.asin(clamp(v[2] / radius, -1.0, 1.0))
        return radius, longitude, latitude

    # --- Equatorial / Ecliptic ---

    def equatorial_to_ecliptic(self, vector, jd: float = None) -> np.ndarray:
        """Rotates about +x by the obliquity."""
        x, y, z = as_vector3(vector)
        eps = self._obliquity(jd)
        c, s = math.cos(eps), math.sin(eps)
        return np.array([x, c * y + s * z, -s * y + c * z])

    def ecliptic_to_equatorial(self, vector, jd: float = None) -> np.ndarray:
        x, y, z = as_vector3(vector)
        eps = self._obliquity(jd)
        c, s = math.cos(eps), math.sin(eps)
        return np.array([x, c * y - s * z, s * y + c * z])

    def equatorial_angles_to_ecliptic(self, right_ascension: float, declination: float,
                                      jd: float = None) -> Tuple[float, float]:
        """(RA, Dec) to (ecliptic longitude, ecliptic latitude)."""
        vector = self.equatorial_to_ecliptic(self.ra_dec_to_vector(right_ascension, declination), jd)
        _, longitude, latitude = self.cartesian_to_spherical(vector)
        return longitude, latitude

    def ecliptic_angles_to_equatorial(self, longitude: float, latitude: float,
                                      jd: float = None) -> Tuple[float, float]:
        vector = self.ecliptic_to_equatorial(self.spherical_to_cartesian(1.0, longitude, latitude), jd)
        return self.vector_to_ra_dec(vector)

    # --- Equatorial / Horizontal ---

    @staticmethod
    def equatorial_to_horizontal(right_ascension: float, declination: float, latitude: float,
                                 local_sidereal_time: float) -> Tuple[float, float]:
        """
        Converts equatorial coordinates to (azimuth, altitude) for an observer.

        The spherical-trig azimuth comes out measured from the south; it is shifted by
        pi so the returned azimuth is measured from north through east, in [0, 2*pi).
        """
        hour_angle = local_sidereal_time - right_ascension
        sin_lat, cos_lat = math.sin(latitude), math.cos(latitude)
        sin_dec, cos_dec = math.sin(declination), math.cos(declination)
        cos_h = math.cos(hour_angle)

        altitude = math.asin(clamp(sin_lat * sin_dec + cos_lat * cos_dec * cos_h, -1.0, 1.0))
        azimuth_from_south = math.atan2(math.sin(hour_angle) * cos_dec, cos_h * cos_dec * sin_lat - sin_dec * cos_lat)
        return normalize_angle(azimuth_from_south + math.pi), altitude

    @staticmethod
    def horizontal_to_equatorial(azimuth: float, altitude: float, latitude: float,
                                 local_sidereal_time: float) -> Tuple[float, float]:
        """Inverse of `equatorial_to_horizontal`; returns (RA, Dec)."""
        azimuth_from_south = azimuth - math.pi
        sin_lat, cos_lat = math.sin(latitude), math.cos(latitude)
        sin_alt, cos_alt = math.sin(altitude), math.cos(altitude)
        cos_a = math.cos(azimuth_from_south)

        declination = math.asin(clamp(sin_lat * sin_alt - cos_lat * cos_alt * cos_a, -1.0, 1.0))
        hour_angle = math.atan2(math.sin(azimuth_from_south) * cos_alt, cos_a * cos_alt * sin_lat + sin_alt * cos_lat)
        return normalize_angle(local_sidereal_time - hour_angle), declination

    # --- Heliocentric / Geocentric ---

    @staticmethod
    def heliocentric_to_geocentric(position, earth_position) -> np.ndarray:
        return as_vector3(position) - as_vector3(earth_position)

    @staticmethod
    def geocentric_to_heliocentric(position, earth_position) -> np.ndarray:
        return as_vector3(position) + as_vector3(earth_position)

    # --- Direction vectors ---

    @staticmethod
    def ra_dec_to_vector(right_ascension: float, declination: float) -> np.ndarray:
        cos_dec = math.cos(declination)
        return np.array([cos_dec * math.cos(right_ascension), cos_dec * math.sin(right_ascension), math.sin(declination)])

    @staticmethod
    def vector_to_ra_dec(vector) -> Tuple[float, float]:
        v = as_vector3(vector)
        norm = np.linalg.norm(v)
        if norm == 0.0:
            raise PhysicsError("Right ascension and declination are undefined for a zero vector.")
        return normalize_angle(math.atan2(v[1], v[0])), math.asin(clamp(v[2] / norm, -1.0, 1.0))

    # --- Orbital elements facades ---

    @staticmethod
    def rectangular_to_orbital_elements(position, velocity, central_body_mass: float, epoch: float = 0.0) -> OrbitalElements:
        return KeplerianOrbit.calculate_orbital_elements(position, velocity, central_body_mass, epoch)

    @staticmethod
    def orbital_elements_to_rectangular(elements: OrbitalElements, time_seconds: float = None) -> Tuple[np.ndarray, np.ndarray]:
        """State vectors at `time_seconds` (defaults to the elements' epoch)."""
        if time_seconds is None:
            time_seconds = elements.epoch
        return KeplerianOrbit(elements).get_state_at_time(time_seconds)

    # --- Unit facades ---

    def au_to_meters(self, au: float) -> float:
        return au * self.au

    def meters_to_au(self, meters: float) -> float:
        return meters / self.au

    @staticmethod
    def degrees_to_radians(degrees: float) -> float:
        return math.radians(degrees)

    @staticmethod
    def radians_to_degrees(radians: float) -> float:
        return math.degrees(radians)

    @staticmethod
    def hours_to_radians(hours: float) -> float:
        return hours * math.pi / 12.0

    @staticmethod
    def radians_to_hours(radians: float) -> float:
        return radians * 12.0 / math.pi

    @staticmethod
    def radians_to_hms(radians: float) -> Tuple[int, int, float]:
        """Hours, minutes, seconds of an angle wrapped into [0, 24h)."""
        total_seconds = normalize_angle(radians) * 12.0 / math.pi * 3600.0
        hours = int(total_seconds // 3600)
        minutes = int((total_seconds % 3600) // 60)
        seconds = total_seconds - hours * 3600 - minutes * 60
        return hours, minutes, seconds

    @staticmethod
    def hms_to_radians(hours: float, minutes: float = 0.0, seconds: float = 0.0) -> float:
        return (hours + minutes / 60.0 + seconds / 3600.0) * math.pi / 12.0

    @staticmethod
    def radians_to_dms(radians: float) -> Tuple[int, int, int, float]:
        """Sign (+1/-1), degrees, arcminutes, arcseconds."""
        sign = -1 if radians < 0 else 1
        total_arcsec = abs(math.degrees(radians)) * 3600.0
        degrees = int(total_arcsec // 3600)
        minutes = int((total_arcsec % 3600) // 60)
        seconds = total_arcsec - degrees * 3600 - minutes * 60
        return sign, degrees, minutes, seconds

    @staticmethod
    def dms_to_radians(sign: int, degrees: float, minutes: float = 0.0, seconds: float = 0.0) -> float:
        return math.copysign(math.radians(degrees + minutes / 60.0 + seconds / 3600.0), sign)

    # --- Time facades ---

    @staticmethod
    def calculate_lst(jd: float, longitude: float) -> float:
        return _calculate_lst(jd, longitude)

    @staticmethod
    def calculate_julian_day(dt: datetime) -> float:
        jd = date_to_julian_date(dt)
        logging.debug(f"Julian day for {dt.isoformat()}: {jd:.6f}")
        return jd
