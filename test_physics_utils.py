# test_physics_utils.py
import math
import unittest
import warnings
import numpy as np
from physics_utils import (safe_divide, normalize_vector, PhysicsError, KeplerConvergenceWarning, TWO_PI,
                           normalize_angle, lerp, smooth_lerp, clamp, map_range, rotation_matrix, apply_rotation,
                           perifocal_to_reference_matrix, gravitational_force, circular_orbital_velocity,
                           orbital_period, solve_kepler_equation, true_anomaly_from_eccentric,
                           eccentric_from_true_anomaly, bspline_interpolation, as_vector3, vector_cross, distance)
from config import GRAVITATIONAL_CONSTANT, SOLAR_MASS_KG, AU_M

class TestSafeDivide(unittest.TestCase):

    def test_typical_division_scalar(self):
        self.assertAlmostEqual(safe_divide(10, 2), 5.0)
        self.assertAlmostEqual(safe_divide(7, 3), 7/3)
        self.assertAlmostEqual(safe_divide(-10, 2), -5.0)
        self.assertAlmostEqual(safe_divide(10, -2), -5.0)
        self.assertAlmostEqual(safe_divide(0, 5), 0.0)

    def test_division_by_zero_scalar_default_zero(self):
        self.assertAlmostEqual(safe_divide(5, 0), 0.0)
        self.assertAlmostEqual(safe_divide(5, 1e-13), 0.0) # Denominator smaller than default epsilon
        self.assertAlmostEqual(safe_divide(0, 0), 0.0)
        self.assertAlmostEqual(safe_divide(-5, 0), 0.0)

    def test_division_by_zero_scalar_custom_default(self):
        self.assertAlmostEqual(safe_divide(5, 0, default_on_zero_denom=99.0), 99.0)
        self.assertAlmostEqual(safe_divide(0, 0, default_on_zero_denom=99.0), 99.0) # 0/0 with custom default

    def test_division_by_zero_scalar_default_inf(self):
        self.assertEqual(safe_divide(5, 0, default_on_zero_denom=float('inf')), float('inf'))
        self.assertEqual(safe_divide(-5, 0, default_on_zero_denom=float('inf')), float('-inf'))
        self.assertEqual(safe_divide(0, 0, default_on_zero_denom=float('inf')), 0.0) # 0/0 should be 0

    def test_division_by_zero_scalar_default_neg_inf(self):
        # Note: The logic for default_on_zero_denom=float('-inf') is symmetric to float('inf')
        self.assertEqual(safe_divide(5, 0, default_on_zero_denom=float('-inf')), float('inf')) # Numerator positive
        self.assertEqual(safe_divide(-5, 0, default_on_zero_denom=float('-inf')), float('-inf')) # Numerator negative
        self.assertEqual(safe_divide(0, 0, default_on_zero_denom=float('-inf')), 0.0)

    def test_typical_division_numpy_array(self):
        num = np.array([10.0, 7.0, 0.0, -4.0])
        den = np.array([2.0, 3.0, 5.0, -2.0])
        expected = np.array([5.0, 7/3, 0.0, 2.0])
        np.testing.assert_array_almost_equal(safe_divide(num, den), expected)

    def test_division_by_zero_numpy_array_default_zero(self):
        num = np.array([5.0, 0.0, -5.0, 1.0])
        den = np.array([0.0, 0.0, 1e-14, 2.0])
        expected = np.array([0.0, 0.0, 0.0, 0.5])
        np.testing.assert_array_almost_equal(safe_divide(num, den), expected)

    def test_division_by_zero_numpy_array_custom_default(self):
        num = np.array([5.0, 0.0])
        den = np.array([0.0, 1e-14])
        expected = np.array([99.0, 99.0])
        np.testing.assert_array_almost_equal(safe_divide(num, den, default_on_zero_denom=99.0), expected)

    def test_division_by_zero_numpy_array_default_inf(self):
        num = np.array([5.0, -5.0, 0.0, 1.0, 0.0])
        den = np.array([0.0, 0.0, 0.0, 1e-15, 1e-16])
        expected = np.array([float('inf'), float('-inf'), 0.0, float('inf'), 0.0])
        result = safe_divide(num, den, default_on_zero_denom=float('inf'))
        np.testing.assert_array_almost_equal(result, expected)

    def test_division_by_zero_numpy_array_all_zeros_denom_default_inf(self):
        num = np.array([1.0, -1.0, 0.0])
        den = np.array([0.0, 0.0, 0.0])
        expected = np.array([float('inf'), float('-inf'), 0.0])
        result = safe_divide(num, den, default_on_zero_denom=float('inf'))
        np.testing.assert_array_almost_equal(result, expected)

class TestNormalizeVector(unittest.TestCase):

    def test_normalize_typical_vector(self):
        vector = np.array([3.0, 4.0])
        expected = np.array([0.6, 0.8])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

        vector = np.array([1.0, 1.0, 1.0])
        norm = np.sqrt(3)
        expected = np.array([1/norm, 1/norm, 1/norm])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

    def test_normalize_already_normalized_vector(self):
        vector = np.array([0.6, 0.8])
        expected = np.array([0.6, 0.8])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

    def test_normalize_zero_vector(self):
        vector = np.array([0.0, 0.0, 0.0])
        expected = np.array([0.0, 0.0, 0.0])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

    def test_normalize_small_magnitude_vector(self):
        vector = np.array([1e-15, 1e-15]) # Smaller than default epsilon for norm
        expected = np.array([0.0, 0.0])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

        vector = np.array([1e-10, 1e-10]) # Larger than default epsilon for norm
        norm = np.linalg.norm(vector)
        expected = vector / norm
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)


    def test_normalize_vector_along_axis(self):
        vector = np.array([5.0, 0.0, 0.0])
        expected = np.array([1.0, 0.0, 0.0])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

        vector = np.array([0.0, -2.0, 0.0])
        expected = np.array([0.0, -1.0, 0.0])
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected)

    def test_normalize_list_input(self):
        vector_list = [3, 4]
        expected = np.array([0.6, 0.8])
        np.testing.assert_array_almost_equal(normalize_vector(vector_list), expected)

    def test_normalize_custom_epsilon(self):
        vector = np.array([1e-5, 1e-5])
        # With default epsilon (1e-12), this vector is normalized
        norm = np.linalg.norm(vector)
        expected_norm = vector / norm
        np.testing.assert_array_almost_equal(normalize_vector(vector), expected_norm)

        # With larger epsilon, this vector is treated as zero
        expected_zero = np.array([0.0, 0.0])
        np.testing.assert_array_almost_equal(normalize_vector(vector, epsilon=1e-4), expected_zero)

class TestVectorAndScalarHelpers(unittest.TestCase):

    def test_as_vector3_rejects_wrong_shape(self):
        np.testing.assert_array_equal(as_vector3([1, 2, 3]), np.array([1.0, 2.0, 3.0]))
        with self.assertRaises(PhysicsError):
            as_vector3([1.0, 2.0])

    def test_cross_and_distance(self):
        np.testing.assert_array_almost_equal(vector_cross([1, 0, 0], [0, 1, 0]), [0.0, 0.0, 1.0])
        self.assertAlmostEqual(distance([0, 0, 0], [3, 4, 0]), 5.0)

    def test_normalize_angle_range(self):
        self.assertAlmostEqual(normalize_angle(-math.pi / 2), 1.5 * math.pi)
        self.assertAlmostEqual(normalize_angle(5 * math.pi), math.pi)
        self.assertEqual(normalize_angle(TWO_PI), 0.0)
        self.assertEqual(normalize_angle(-1e-20), 0.0)
        for angle in (-100.0, -1.0, 0.0, 3.0, 7.0, 1e4):
            wrapped = normalize_angle(angle)
            self.assertGreaterEqual(wrapped, 0.0)
            self.assertLess(wrapped, TWO_PI)

    def test_interpolation(self):
        self.assertAlmostEqual(lerp(2.0, 4.0, 0.25), 2.5)
        self.assertAlmostEqual(smooth_lerp(0.0, 10.0, 0.5), 5.0)
        self.assertAlmostEqual(smooth_lerp(0.0, 10.0, 0.0), 0.0)
        self.assertAlmostEqual(smooth_lerp(0.0, 10.0, 1.0), 10.0)

    def test_clamp_and_map_range(self):
        self.assertEqual(clamp(5, 0, 3), 3)
        self.assertEqual(clamp(-1, 0, 3), 0)
        self.assertAlmostEqual(map_range(5.0, 0.0, 10.0, 100.0, 200.0), 150.0)
        with self.assertRaises(PhysicsError):
            map_range(1.0, 2.0, 2.0, 0.0, 1.0)

class TestRotations(unittest.TestCase):

    def test_rotation_about_z(self):
        matrix = rotation_matrix([0, 0, 1], math.pi / 2)
        np.testing.assert_array_almost_equal(apply_rotation(matrix, [1, 0, 0]), [0.0, 1.0, 0.0])

    def test_rotation_matrix_is_orthonormal(self):
        matrix = rotation_matrix([1, 2, 3], 0.7)
        np.testing.assert_array_almost_equal(matrix @ matrix.T, np.eye(3))
        self.assertAlmostEqual(np.linalg.det(matrix), 1.0)

    def test_zero_axis_raises(self):
        with self.assertRaises(PhysicsError):
            rotation_matrix([0, 0, 0], 1.0)

    def test_perifocal_matrix_matches_composed_rotations(self):
        node, inc, arg = 0.4, 0.3, 1.1
        z_axis, x_axis = [0, 0, 1], [1, 0, 0]
        composed = rotation_matrix(z_axis, node) @ rotation_matrix(x_axis, inc) @ rotation_matrix(z_axis, arg)
        np.testing.assert_array_almost_equal(perifocal_to_reference_matrix(node, inc, arg), composed)

class TestGravitation(unittest.TestCase):

    def test_gravitational_force(self):
        force = gravitational_force(1.0, 1.0, 1.0)
        self.assertAlmostEqual(force, GRAVITATIONAL_CONSTANT)
        self.assertEqual(gravitational_force(1.0, 1.0, 0.0), 0.0)

    def test_earth_orbital_period_is_about_a_year(self):
        period_days = orbital_period(AU_M, SOLAR_MASS_KG) / 86400.0
        self.assertAlmostEqual(period_days, 365.25, delta=0.5)

    def test_circular_velocity(self):
        self.assertAlmostEqual(circular_orbital_velocity(SOLAR_MASS_KG, AU_M) / 1000.0, 29.78, delta=0.05)
        with self.assertRaises(PhysicsError):
            circular_orbital_velocity(SOLAR_MASS_KG, 0.0)

    def test_orbital_period_invalid(self):
        with self.assertRaises(PhysicsError):
            orbital_period(-1.0, SOLAR_MASS_KG)

class TestKeplerSolver(unittest.TestCase):

    def test_circular_orbit_returns_mean_anomaly(self):
        for M in (0.0, 0.5, 2.0, 5.5):
            self.assertEqual(solve_kepler_equation(M, 0.0), M)

    def test_residual_is_small(self):
        for e in (0.01, 0.1, 0.3, 0.5, 0.7, 0.9):
            for M in np.linspace(0.0, TWO_PI, 13):
                E = solve_kepler_equation(M, e)
                self.assertLess(abs(E - e * math.sin(E) - M), 1e-7, msg=f"e={e}, M={M}")

    def test_invalid_eccentricity(self):
        with self.assertRaises(PhysicsError):
            solve_kepler_equation(1.0, 1.0)
        with self.assertRaises(PhysicsError):
            solve_kepler_equation(1.0, -0.1)
        with self.assertRaises(PhysicsError):
            solve_kepler_equation(float('nan'), 0.5)

    def test_iteration_cap_warns(self):
        with self.assertWarns(KeplerConvergenceWarning):
            E = solve_kepler_equation(0.1, 0.999, tolerance=0.0, max_iterations=3)
        self.assertTrue(math.isfinite(E))

    def test_converged_solution_does_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            solve_kepler_equation(1.0, 0.5)

    def test_anomaly_conversions_are_inverse(self):
        for e in (0.0, 0.2, 0.8):
            for E in (-2.5, -0.3, 0.0, 1.0, 3.0):
                nu = true_anomaly_from_eccentric(E, e)
                self.assertAlmostEqual(eccentric_from_true_anomaly(nu, e), E, places=10)

    def test_true_anomaly_leads_eccentric_before_apoapsis(self):
        nu = true_anomaly_from_eccentric(1.0, 0.5)
        self.assertGreater(nu, 1.0)
        self.assertAlmostEqual(true_anomaly_from_eccentric(math.pi, 0.5), math.pi)

class TestBSpline(unittest.TestCase):

    def setUp(self):
        self.points = [[0, 0, 0], [1, 2, 0], [3, 3, 1], [4, 0, 2]]

    def test_endpoints(self):
        np.testing.assert_array_almost_equal(bspline_interpolation(self.points, 0.0), self.points[0])
        np.testing.assert_array_almost_equal(bspline_interpolation(self.points, 1.0), self.points[-1])

    def test_parameter_is_clamped(self):
        np.testing.assert_array_almost_equal(bspline_interpolation(self.points, -3.0), self.points[0])
        np.testing.assert_array_almost_equal(bspline_interpolation(self.points, 7.0), self.points[-1])

    def test_linear_degree_interpolates_segment(self):
        result = bspline_interpolation([[0.0, 0.0], [2.0, 4.0]], 0.5, degree=3)
        np.testing.assert_array_almost_equal(result, [1.0, 2.0])

    def test_curve_stays_in_convex_hull(self):
        points = np.array(self.points, dtype=float)
        for t in np.linspace(0.0, 1.0, 21):
            value = bspline_interpolation(points, t)
            self.assertTrue(np.all(value >= points.min(axis=0) - 1e-12))
            self.assertTrue(np.all(value <= points.max(axis=0) + 1e-12))

    def test_degenerate_inputs(self):
        np.testing.assert_array_almost_equal(bspline_interpolation([[5, 6, 7]], 0.3), [5, 6, 7])
        np.testing.assert_array_almost_equal(bspline_interpolation([1.0, 3.0], 0.5), [2.0])
        with self.assertRaises(PhysicsError):
            bspline_interpolation([], 0.5)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
