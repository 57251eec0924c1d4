# time_utils.py
"""Calendar, Julian Date and sidereal-time conversions.

All angles are returned in radians. Calendar datetimes are handled in UTC:
naive datetimes are interpreted as UTC, aware ones are converted to it.
The nutation and obliquity series are the low-precision forms from Meeus,
accurate to roughly half an arcsecond, which is visualization grade and not
a substitute for the full IAU models.
"""
import math
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Union

import numpy as np

from config import config, J2000_JD, SECONDS_PER_DAY, AU_M
from physics_utils import PhysicsError, normalize_angle, clamp, solve_kepler_equation, true_anomaly_from_eccentric

DAYS_PER_JULIAN_CENTURY = 36525.0
ARCSEC_TO_RAD = math.pi / 648000.0

def calendar_to_julian_date(year: int, month: int, day: int, hour: int = 0, minute: int = 0,
                            second: float = 0.0) -> float:
    """
    Converts a proleptic Gregorian calendar instant (UTC) to a Julian Date.

    The day number uses the Fliegel-Van Flandern integer algorithm; the time of
    day is added as a fraction, with the Julian day starting at noon. Years use
    astronomical numbering (year 0 = 1 BC), so dates outside `datetime`'s range
    can still be converted.

    Args:
        year (int): Astronomical year.
        month (int): Month, 1-12.
        day (int): Day of month.
        hour, minute (int), second (float): Time of day in UTC.

    Returns:
        float: The Julian Date.

    Raises:
        PhysicsError: If the month is outside 1-12.
    """
    if not (1 <= month <= 12):
        raise PhysicsError(f"Month must be within 1-12, got {month}.")
    a = (14 - month) // 12
    y = year + 4800 - a
    m = month + 12 * a - 3
    jdn = day + (153 * m + 2) // 5 + 365 * y + y // 4 - y // 100 + y // 400 - 32045
    return jdn + (hour - 12) / 24.0 + minute / 1440.0 + second / SECONDS_PER_DAY

def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def date_to_julian_date(dt: datetime) -> float:
    """Julian Date of a datetime; naive values are taken as UTC."""
    utc = _as_utc(dt)
    seconds = utc.second + utc.microsecond / 1e6
    return calendar_to_julian_date(utc.year, utc.month, utc.day, utc.hour, utc.minute, seconds)

def julian_date_to_date(jd: float) -> datetime:
    """
    Converts a Julian Date back to an aware UTC datetime (Meeus, proleptic Gregorian).

    The result is rounded to the nearest microsecond, so the pair
    `date_to_julian_date`/`julian_date_to_date` round-trips to well under a
    millisecond for dates within `datetime`'s supported range.

    Raises:
        PhysicsError: If the date falls outside the years `datetime` can represent.
    """
    shifted = jd + 0.5
    Z = math.floor(shifted)
    F = shifted - Z

    alpha = math.floor((Z - 1867216.25) / 36524.25)
    A = Z + 1 + alpha - math.floor(alpha / 4)
    B = A + 1524
    C = math.floor((B - 122.1) / 365.25)
    D = math.floor(365.25 * C)
    E = math.floor((B - D) / 30.6001)

    day = int(B - D - math.floor(30.6001 * E))
    month = int(E - 1 if E < 14 else E - 13)
    year = int(C - 4716 if month > 2 else C - 4715)

    try:
        midnight = datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError as e:
        raise PhysicsError(f"Julian Date {jd} maps to year {year}, which cannot be represented as a datetime: {e}")
    return midnight + timedelta(microseconds=round(F * SECONDS_PER_DAY * 1e6))

def julian_date_to_j2000(jd: float) -> float:
    """Days elapsed since J2000.0."""
    return jd - J2000_JD

def j2000_to_julian_date(days_since_j2000: float) -> float:
    return days_since_j2000 + J2000_JD

def julian_centuries_since_j2000(jd: float) -> float:
    return (jd - J2000_JD) / DAYS_PER_JULIAN_CENTURY

def seconds_since_j2000(jd: float) -> float:
    return (jd - J2000_JD) * SECONDS_PER_DAY

def julian_date_from_j2000_seconds(seconds: float) -> float:
    return J2000_JD + seconds / SECONDS_PER_DAY

def calculate_gmst(jd: float) -> float:
    """Greenwich Mean Sidereal Time in radians, normalized to [0, 2*pi)."""
    d = jd - J2000_JD
    T = d / DAYS_PER_JULIAN_CENTURY
    gmst_deg = (280.46061837 + 360.98564736629 * d
                + 0.000387933 * T * T - T * T * T / 38710000.0)
    return normalize_angle(math.radians(gmst_deg % 360.0))

def calculate_lst(jd: float, longitude_rad: float) -> float:
    """Local sidereal time for an east-positive longitude, in radians."""
    return normalize_angle(calculate_gmst(jd) + longitude_rad)

def calculate_nutation(jd: float) -> Dict[str, float]:
    """
    Nutation in longitude and obliquity, low-precision series.

    Returns:
        Dict[str, float]: `delta_psi` and `delta_epsilon` in radians.
    """
    T = julian_centuries_since_j2000(jd)
    omega = math.radians(125.04452 - 1934.136261 * T)  # Moon's ascending node
    L = math.radians(280.4665 + 36000.7698 * T)        # Sun's mean longitude
    L_prime = math.radians(218.3165 + 481267.8813 * T) # Moon's mean longitude

    delta_psi = (-17.20 * math.sin(omega) - 1.32 * math.sin(2 * L)
                 - 0.23 * math.sin(2 * L_prime) + 0.21 * math.sin(2 * omega))
    delta_epsilon = (9.20 * math.cos(omega) + 0.57 * math.cos(2 * L)
                     + 0.10 * math.cos(2 * L_prime) - 0.09 * math.cos(2 * omega))
    return {
        'delta_psi': delta_psi * ARCSEC_TO_RAD,
        'delta_epsilon': delta_epsilon * ARCSEC_TO_RAD,
    }

def calculate_mean_obliquity(jd: float) -> float:
    T = julian_centuries_since_j2000(jd)
    arcsec = 84381.406 - 46.836769 * T - 0.0001831 * T * T + 0.00200340 * T * T * T
    return arcsec * ARCSEC_TO_RAD

def calculate_true_obliquity(jd: float) -> float:
    return calculate_mean_obliquity(jd) + calculate_nutation(jd)['delta_epsilon']

def calculate_earth_orbit(jd: float) -> Dict[str, object]:
    """
    Simplified heliocentric orbit of the Earth from mean elements.

    Returns:
        Dict[str, object]: `mean_anomaly`, `eccentric_anomaly`, `true_anomaly` (radians),
        `distance_au`, and `position` (np.ndarray, meters, ecliptic frame).
    """
    T = julian_centuries_since_j2000(jd)
    e = 0.016708634 - 0.000042037 * T
    M = normalize_angle(math.radians(357.52911 + 35999.05029 * T - 0.0001537 * T * T))
    E = solve_kepler_equation(M, e)
    nu = true_anomaly_from_eccentric(E, e)
    distance_au = 1.000001018 * (1.0 - e * math.cos(E))

    longitude_of_perihelion = math.radians(102.93735 + 1.71946 * T)
    longitude = nu + longitude_of_perihelion
    position = np.array([math.cos(longitude), math.sin(longitude), 0.0]) * distance_au * AU_M
    return {
        'mean_anomaly': M,
        'eccentric_anomaly': E,
        'true_anomaly': normalize_angle(nu),
        'distance_au': distance_au,
        'position': position,
    }

def is_valid_simulation_date(value: Union[datetime, int]) -> bool:
    """True if the calendar year (or a bare year number) lies within the configured bounds."""
    year = value.year if isinstance(value, datetime) else int(value)
    return config.Time.MIN_SIMULATION_YEAR <= year <= config.Time.MAX_SIMULATION_YEAR

def calculate_time_step(speed: float) -> float:
    """Physics step for a speed multiplier: base step scaled and clamped to the configured range."""
    step = config.Time.BASE_TIME_STEP_SECONDS * abs(speed)
    return clamp(step, config.Time.MIN_TIME_STEP_SECONDS, config.Time.MAX_TIME_STEP_SECONDS)

def format_duration(seconds: float) -> str:
    abs_seconds = abs(seconds)
    sign = '-' if seconds < 0 else ''

    if abs_seconds < 60:
        return f"{sign}{abs_seconds:.1f}s"
    elif abs_seconds < 3600:
        minutes = int(abs_seconds // 60)
        secs = abs_seconds % 60
        return f"{sign}{minutes}m {secs:.0f}s"
    elif abs_seconds < 86400:
        hours = int(abs_seconds // 3600)
        minutes = int((abs_seconds % 3600) // 60)
        return f"{sign}{hours}h {minutes}m"
    elif abs_seconds < 31536000:
        days = int(abs_seconds // 86400)
        hours = int((abs_seconds % 86400) // 3600)
        return f"{sign}{days}d {hours}h"
    else:
        years = int(abs_seconds // 31536000)
        days = int((abs_seconds % 31536000) // 86400)
        return f"{sign}{years}y {days}d"

def now_julian_date() -> float:
    """Julian Date of the current wall-clock instant."""
    jd = date_to_julian_date(datetime.now(timezone.utc))
    logging.debug(f"Current Julian Date: {jd:.6f}")
    return jd
