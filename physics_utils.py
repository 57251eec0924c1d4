# physics_utils.py

import math
import logging
import warnings
from typing import Sequence, Tuple

import numpy as np

from config import config

TWO_PI = 2.0 * math.pi

class PhysicsError(Exception):
    """Custom exception for physics-related errors, including numerical issues."""
    pass

class ForceEvaluationError(PhysicsError):
    """Raised when a force evaluation cannot produce a complete acceleration array.

    A partition that raised, timed out or returned a result of the wrong shape
    makes the whole evaluation fail; partial results are never combined.
    """
    pass

class KeplerConvergenceWarning(RuntimeWarning):
    """Issued when Kepler's equation solver stops at its iteration cap."""
    pass

def safe_divide(numerator, denominator, epsilon=1e-12, default_on_zero_denom=0.0):
    """
    Safely divides two numbers, handling potential division by zero.

    Args:
        numerator (float or np.ndarray): The number(s) to be divided.
        denominator (float or np.ndarray): The number(s) to divide by.
        epsilon (float): Threshold below which the denominator is considered zero.
        default_on_zero_denom (float): Value to return if denominator is effectively zero.
                                       float('inf') or float('-inf') follow the numerator's sign.

    Returns:
        float or np.ndarray: The result of the division, or default_on_zero_denom if denominator is near zero.
    """
    if isinstance(denominator, np.ndarray):
        is_zero = np.abs(denominator) < epsilon
        if default_on_zero_denom == float('inf') or default_on_zero_denom == float('-inf'):
            default_vals = np.where(numerator > 0, float('inf'),
                                    np.where(numerator < 0, float('-inf'), 0.0)) # 0/0 = 0
        else:
            default_vals = np.full_like(denominator, default_on_zero_denom, dtype=np.float64)

        result = np.divide(numerator, denominator, out=np.zeros_like(denominator, dtype=np.float64), where=~is_zero)
        result[is_zero] = default_vals[is_zero] if isinstance(default_vals, np.ndarray) else default_vals
        return result
    else: # Scalar case
        if abs(denominator) < epsilon:
            if default_on_zero_denom == float('inf') or default_on_zero_denom == float('-inf'):
                if abs(numerator) < epsilon: # 0/0 case
                    return 0.0
                return float('inf') if numerator > 0 else float('-inf')
            return default_on_zero_denom
        return numerator / denominator

def normalize_vector(vector, epsilon=1e-12):
    """
    Normalizes a vector to unit length.

    Args:
        vector (np.ndarray): The vector to normalize.
        epsilon (float): Threshold below which the vector's magnitude is considered zero.

    Returns:
        np.ndarray: The normalized vector, or a zero vector of the same shape
                    if its magnitude is close to zero.
    """
    if not isinstance(vector, np.ndarray):
        vector = np.array(vector, dtype=float)

    norm = np.linalg.norm(vector)
    if norm < epsilon:
        return np.zeros_like(vector, dtype=float)
    return vector / norm

# --- Vector helpers ---

def vector3(x=0.0, y=0.0, z=0.0) -> np.ndarray:
    return np.array([x, y, z], dtype=np.float64)

def as_vector3(value) -> np.ndarray:
    """Coerces a sequence into a float64 array of shape (3,)."""
    arr = np.array(value, dtype=np.float64).reshape(-1)
    if arr.shape != (3,):
        raise PhysicsError(f"Expected a 3-component vector, got shape {arr.shape}.")
    return arr

def vector_add(a, b) -> np.ndarray:
    return np.add(a, b, dtype=np.float64)

def vector_subtract(a, b) -> np.ndarray:
    return np.subtract(a, b, dtype=np.float64)

def vector_scale(a, scalar: float) -> np.ndarray:
    return np.multiply(a, scalar, dtype=np.float64)

def vector_dot(a, b) -> float:
    return float(np.dot(a, b))

def vector_cross(a, b) -> np.ndarray:
    return np.cross(a, b)

def vector_magnitude(a) -> float:
    return float(np.linalg.norm(a))

def distance(a, b) -> float:
    return float(np.linalg.norm(np.subtract(a, b)))

# --- Scalar helpers ---

def deg_to_rad(degrees):
    return np.radians(degrees)

def rad_to_deg(radians):
    return np.degrees(radians)

def normalize_angle(angle: float) -> float:
    """Wraps an angle in radians into [0, 2*pi)."""
    wrapped = math.fmod(angle, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    # fmod of a tiny negative angle can round back up to exactly 2*pi
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped

def lerp(start, end, t: float):
    return start + (end - start) * t

def smooth_lerp(start, end, t: float):
    """Cosine-eased interpolation; flat at both ends."""
    eased = (1.0 - math.cos(t * math.pi)) / 2.0
    return start + (end - start) * eased

def clamp(value, min_value, max_value):
    return max(min_value, min(max_value, value))

def map_range(value, in_min, in_max, out_min, out_max):
    """Linearly maps `value` from [in_min, in_max] onto [out_min, out_max]."""
    if in_max == in_min:
        raise PhysicsError(f"Cannot map from a zero-width input range [{in_min}, {in_max}].")
    return out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)

# --- Rotations ---

def rotation_matrix(axis, angle: float) -> np.ndarray:
    """
    Builds the right-handed rotation matrix for `angle` radians about `axis` (Rodrigues).

    Args:
        axis (array-like): Rotation axis; normalized internally.
        angle (float): Rotation angle in radians.

    Returns:
        np.ndarray: A 3x3 rotation matrix.

    Raises:
        PhysicsError: If the axis has zero length.
    """
    unit_axis = normalize_vector(as_vector3(axis))
    if not np.any(unit_axis):
        raise PhysicsError("Rotation axis must be non-zero.")
    x, y, z = unit_axis
    c = math.cos(angle)
    s = math.sin(angle)
    C = 1.0 - c
    return np.array([
        [c + x * x * C,     x * y * C - z * s, x * z * C + y * s],
        [y * x * C + z * s, c + y * y * C,     y * z * C - x * s],
        [z * x * C - y * s, z * y * C + x * s, c + z * z * C],
    ], dtype=np.float64)

def apply_rotation(matrix: np.ndarray, vector) -> np.ndarray:
    return np.asarray(matrix, dtype=np.float64) @ as_vector3(vector)

def perifocal_to_reference_matrix(longitude_of_ascending_node: float, inclination: float,
                                  argument_of_periapsis: float) -> np.ndarray:
    """Composite 3-1-3 rotation R3(Omega) R1(i) R3(omega) from the orbital plane to the reference frame."""
    cO, sO = math.cos(longitude_of_ascending_node), math.sin(longitude_of_ascending_node)
    ci, si = math.cos(inclination), math.sin(inclination)
    cw, sw = math.cos(argument_of_periapsis), math.sin(argument_of_periapsis)
    return np.array([
        [cO * cw - sO * sw * ci, -cO * sw - sO * cw * ci,  sO * si],
        [sO * cw + cO * sw * ci, -sO * sw + cO * cw * ci, -cO * si],
        [sw * si,                 cw * si,                 ci],
    ], dtype=np.float64)

# --- Gravitation ---

def gravitational_force(mass1_kg: float, mass2_kg: float, distance_m: float, G: float = None) -> float:
    """Newtonian force magnitude in newtons; 0 for coincident bodies."""
    if G is None:
        G = config.Physics.G
    if distance_m <= 0.0:
        return 0.0
    return G * mass1_kg * mass2_kg / (distance_m * distance_m)

def circular_orbital_velocity(central_mass_kg: float, radius_m: float, G: float = None) -> float:
    if G is None:
        G = config.Physics.G
    if radius_m <= 0.0:
        raise PhysicsError(f"Orbital radius must be positive, got {radius_m}.")
    return math.sqrt(G * central_mass_kg / radius_m)

def orbital_period(semi_major_axis_m: float, central_mass_kg: float, G: float = None) -> float:
    """Kepler's third law, T = 2*pi*sqrt(a^3 / (G*M))."""
    if G is None:
        G = config.Physics.G
    mu = G * central_mass_kg
    if semi_major_axis_m <= 0.0 or mu <= 0.0:
        raise PhysicsError(
            f"Cannot derive an orbital period from a={semi_major_axis_m} m and central mass={central_mass_kg} kg."
        )
    return TWO_PI * math.sqrt(semi_major_axis_m ** 3 / mu)

# --- Kepler's equation ---

def solve_kepler_equation(M_rad: float, e: float, tolerance: float = None, max_iterations: int = None) -> float:
    """
    Solves Kepler's Equation M = E - e * sin(E) for eccentric anomaly E using Newton-Raphson.

    Iteration starts at E0 = M and stops once |dE| < tolerance. The loop is bounded
    by `max_iterations`; when the cap is reached the last estimate is returned and a
    `KeplerConvergenceWarning` is issued.

    Args:
        M_rad: Mean anomaly in radians.
        e: Eccentricity (0 <= e < 1).
        tolerance: Convergence tolerance for E. Defaults to config.Physics.KEPLER_TOLERANCE.
        max_iterations: Iteration cap. Defaults to config.Physics.KEPLER_MAX_ITERATIONS.

    Returns:
        Eccentric anomaly E in radians.

    Raises:
        PhysicsError: If eccentricity is out of bounds or the mean anomaly is not finite.
    """
    if tolerance is None:
        tolerance = config.Physics.KEPLER_TOLERANCE
    if max_iterations is None:
        max_iterations = config.Physics.KEPLER_MAX_ITERATIONS

    if not (0.0 <= e < 1.0):
        raise PhysicsError(f"Eccentricity e={e} is out of bounds [0, 1) for Kepler's equation solver.")
    if not math.isfinite(M_rad):
        raise PhysicsError(f"Mean anomaly must be finite, got {M_rad}.")
    if e == 0.0:
        return float(M_rad)

    E_rad = float(M_rad)
    for iteration in range(max_iterations):
        f_E = E_rad - e * math.sin(E_rad) - M_rad
        f_prime_E = 1.0 - e * math.cos(E_rad) # >= 1 - e > 0
        delta_E = f_E / f_prime_E
        E_rad -= delta_E
        if abs(delta_E) < tolerance:
            if config.Debug.KEPLER_SOLVER:
                logging.debug(f"Kepler solver converged in {iteration + 1} iterations for M={M_rad}, e={e}: E={E_rad}")
            return E_rad

    residual = E_rad - e * math.sin(E_rad) - M_rad
    message = (f"Kepler's equation solver did not converge after {max_iterations} iterations "
               f"for M={M_rad}, e={e}. Last E={E_rad}, f(E)={residual}")
    logging.warning(message)
    warnings.warn(message, KeplerConvergenceWarning, stacklevel=2)
    return E_rad

def true_anomaly_from_eccentric(E_rad: float, e: float) -> float:
    """Half-angle form, stable as e approaches 1."""
    return 2.0 * math.atan2(math.sqrt(1.0 + e) * math.sin(E_rad / 2.0),
                            math.sqrt(1.0 - e) * math.cos(E_rad / 2.0))

def eccentric_from_true_anomaly(nu_rad: float, e: float) -> float:
    return 2.0 * math.atan2(math.sqrt(1.0 - e) * math.sin(nu_rad / 2.0),
                            math.sqrt(1.0 + e) * math.cos(nu_rad / 2.0))

def orbital_state_at(elements, time_seconds: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Propagates a set of Keplerian elements to `time_seconds` in closed form.

    `elements` needs the attributes of `solarsystem.OrbitalElements`: SI lengths,
    angles in radians, `orbital_period` and `epoch` in seconds.

    Returns:
        Tuple[np.ndarray, np.ndarray]: Position (m) and velocity (m/s) relative to
        the central body, in the reference frame.
    """
    a = elements.semi_major_axis
    e = elements.eccentricity
    n = TWO_PI / elements.orbital_period

    M_rad = normalize_angle(elements.mean_anomaly_at_epoch + n * (time_seconds - elements.epoch))
    E_rad = solve_kepler_equation(M_rad, e)
    nu_rad = true_anomaly_from_eccentric(E_rad, e)

    cos_E = math.cos(E_rad)
    sin_E = math.sin(E_rad)
    one_minus_e_cos_E = 1.0 - e * cos_E
    r = a * one_minus_e_cos_E

    position_pf = np.array([r * math.cos(nu_rad), r * math.sin(nu_rad), 0.0])
    velocity_pf = np.array([
        -n * a * sin_E / one_minus_e_cos_E,
        n * a * math.sqrt(1.0 - e * e) * cos_E / one_minus_e_cos_E,
        0.0,
    ])

    rotation = perifocal_to_reference_matrix(elements.longitude_of_ascending_node,
                                             elements.inclination,
                                             elements.argument_of_periapsis)
    return rotation @ position_pf, rotation @ velocity_pf

def orbital_elements_to_position(elements, time_seconds: float) -> np.ndarray:
    position, _ = orbital_state_at(elements, time_seconds)
    return position

# --- B-spline interpolation ---

def generate_knot_vector(num_points: int, degree: int) -> np.ndarray:
    """Uniform clamped knot vector with `num_points + degree + 1` knots in [0, 1]."""
    n = num_points - 1
    knots = np.empty(num_points + degree + 1, dtype=np.float64)
    for i in range(len(knots)):
        if i <= degree:
            knots[i] = 0.0
        elif i >= n + 1:
            knots[i] = 1.0
        else:
            knots[i] = (i - degree) / (n - degree + 1)
    return knots

def bspline_basis(i: int, degree: int, t: float, knots: Sequence[float]) -> float:
    """Cox-de Boor recursion. Terms with a zero-width knot span count as 0."""
    if degree == 0:
        return 1.0 if knots[i] <= t < knots[i + 1] else 0.0

    left = 0.0
    left_span = knots[i + degree] - knots[i]
    if left_span > 0.0:
        left = (t - knots[i]) / left_span * bspline_basis(i, degree - 1, t, knots)

    right = 0.0
    right_span = knots[i + degree + 1] - knots[i + 1]
    if right_span > 0.0:
        right = (knots[i + degree + 1] - t) / right_span * bspline_basis(i + 1, degree - 1, t, knots)

    return left + right

def bspline_interpolation(control_points, t: float, degree: int = 3) -> np.ndarray:
    """
    Evaluates a clamped uniform B-spline through `control_points` at parameter t.

    Args:
        control_points (array-like): Sequence of points (any dimension), at least one.
        t (float): Curve parameter; clamped to [0, 1].
        degree (int): Spline degree; lowered to `len(control_points) - 1` if too high.

    Returns:
        np.ndarray: The interpolated point. t=0 gives the first control point and
        t=1 the last.

    Raises:
        PhysicsError: If no control points are given or degree is negative.
    """
    points = np.array(control_points, dtype=np.float64)
    if points.ndim == 1:
        points = points.reshape(-1, 1)
    num_points = len(points)
    if num_points == 0:
        raise PhysicsError("B-spline interpolation needs at least one control point.")
    if degree < 0:
        raise PhysicsError(f"B-spline degree must be non-negative, got {degree}.")
    if num_points == 1:
        return points[0].copy()

    degree = min(degree, num_points - 1)
    t = clamp(float(t), 0.0, 1.0)
    if t >= 1.0:
        return points[-1].copy()

    knots = generate_knot_vector(num_points, degree)
    result = np.zeros(points.shape[1], dtype=np.float64)
    for i in range(num_points):
        weight = bspline_basis(i, degree, t, knots)
        if weight != 0.0:
            result += weight * points[i]
    return result

if __name__ == '__main__':
    print("--- Testing solve_kepler_equation ---")
    for e_val in (0.0, 0.1, 0.5, 0.9):
        E_val = solve_kepler_equation(1.0, e_val)
        print(f"M=1.0, e={e_val}: E={E_val:.10f}, residual={E_val - e_val * math.sin(E_val) - 1.0:.3e}")

    print("\n--- Testing bspline_interpolation ---")
    path = [[0, 0, 0], [1, 2, 0], [3, 3, 1], [4, 0, 2]]
    for t_val in (0.0, 0.25, 0.5, 0.75, 1.0):
        print(f"t={t_val}: {bspline_interpolation(path, t_val)}")
