# test_coordinates.py
import math
import unittest
from datetime import datetime, timezone

import numpy as np

from config import AU_M, J2000_JD, SOLAR_MASS_KG
from coordinates import CoordinateTransform
from physics_utils import PhysicsError
from solarsystem import OrbitalElements

class TestSphericalConversions(unittest.TestCase):

    def setUp(self):
        self.transform = CoordinateTransform()

    def test_spherical_round_trip(self):
        vector = self.transform.spherical_to_cartesian(2.0, 1.2, -0.4)
        radius, longitude, latitude = self.transform.cartesian_to_spherical(vector)
        self.assertAlmostEqual(radius, 2.0)
        self.assertAlmostEqual(longitude, 1.2)
        self.assertAlmostEqual(latitude, -0.4)

    def test_negative_longitude_is_wrapped(self):
        _, longitude, _ = self.transform.cartesian_to_spherical([0.0, -1.0, 0.0])
        self.assertAlmostEqual(longitude, 1.5 * math.pi)

    def test_zero_vector(self):
        self.assertEqual(self.transform.cartesian_to_spherical([0.0, 0.0, 0.0]), (0.0, 0.0, 0.0))

class TestEclipticConversions(unittest.TestCase):

    def setUp(self):
        self.transform = CoordinateTransform()
        self.obliquity = math.radians(23.4392911)

    def test_x_axis_is_invariant(self):
        np.testing.assert_array_almost_equal(self.transform.equatorial_to_ecliptic([1.0, 0.0, 0.0]), [1.0, 0.0, 0.0])

    def test_celestial_pole_maps_to_tilted_ecliptic_pole(self):
        ecliptic = self.transform.equatorial_to_ecliptic([0.0, 0.0, 1.0])
        np.testing.assert_array_almost_equal(ecliptic, [0.0, math.sin(self.obliquity), math.cos(self.obliquity)])

    def test_vector_round_trip(self):
        vector = np.array([0.3, -1.7, 2.2]) * AU_M
        restored = self.transform.ecliptic_to_equatorial(self.transform.equatorial_to_ecliptic(vector))
        np.testing.assert_allclose(restored, vector, rtol=1e-12)

    def test_summer_solstice_point(self):
        # Ecliptic longitude 90 deg lies at RA 6h, Dec = +obliquity
        ra, dec = self.transform.ecliptic_angles_to_equatorial(math.pi / 2, 0.0)
        self.assertAlmostEqual(ra, math.pi / 2)
        self.assertAlmostEqual(dec, self.obliquity)

    def test_angle_round_trip(self):
        longitude, latitude = self.transform.equatorial_angles_to_ecliptic(2.5, 0.3)
        ra, dec = self.transform.ecliptic_angles_to_equatorial(longitude, latitude)
        self.assertAlmostEqual(ra, 2.5)
        self.assertAlmostEqual(dec, 0.3)

    def test_true_obliquity_of_date_is_used_when_given(self):
        vector = [0.0, 0.0, 1.0]
        fixed = self.transform.equatorial_to_ecliptic(vector)
        of_date = self.transform.equatorial_to_ecliptic(vector, jd=J2000_JD + 36525.0)
        self.assertFalse(np.allclose(fixed, of_date, rtol=0.0, atol=1e-9))
        self.assertAlmostEqual(np.linalg.norm(of_date), 1.0)

class TestHorizontalConversions(unittest.TestCase):

    def test_object_on_meridian(self):
        # Hour angle 0 and dec below the zenith: due south, altitude 90 - (lat - dec)
        latitude = math.radians(40.0)
        dec = math.radians(10.0)
        azimuth, altitude = CoordinateTransform.equatorial_to_horizontal(1.0, dec, latitude, 1.0)
        self.assertAlmostEqual(azimuth, math.pi)
        self.assertAlmostEqual(altitude, math.radians(60.0))

    def test_north_celestial_pole_is_due_north(self):
        latitude = math.radians(52.0)
        azimuth, altitude = CoordinateTransform.equatorial_to_horizontal(0.0, math.pi / 2 - 1e-9, latitude, 3.0)
        self.assertAlmostEqual(altitude, latitude, places=6)
        self.assertTrue(azimuth < 1e-3 or azimuth > 2 * math.pi - 1e-3)

    def test_rising_object_is_east(self):
        # On the equator an equatorial object six hours before transit rises due east
        azimuth, altitude = CoordinateTransform.equatorial_to_horizontal(math.pi / 2, 0.0, 0.0, 0.0)
        self.assertAlmostEqual(azimuth, math.pi / 2)
        self.assertAlmostEqual(altitude, 0.0)

    def test_round_trip(self):
        latitude = math.radians(-33.9)
        lst = 4.2
        for ra, dec in ((0.3, 0.2), (3.0, -0.9), (5.9, 1.1)):
            azimuth, altitude = CoordinateTransform.equatorial_to_horizontal(ra, dec, latitude, lst)
            ra_back, dec_back = CoordinateTransform.horizontal_to_equatorial(azimuth, altitude, latitude, lst)
            self.assertAlmostEqual(ra_back, ra)
            self.assertAlmostEqual(dec_back, dec)

class TestFramesAndVectors(unittest.TestCase):

    def test_helio_geo_round_trip(self):
        earth = [AU_M, 0.0, 0.0]
        mars = [1.5 * AU_M, 0.2 * AU_M, 0.0]
        geocentric = CoordinateTransform.heliocentric_to_geocentric(mars, earth)
        np.testing.assert_array_almost_equal(geocentric, [0.5 * AU_M, 0.2 * AU_M, 0.0])
        np.testing.assert_array_almost_equal(CoordinateTransform.geocentric_to_heliocentric(geocentric, earth), mars)

    def test_ra_dec_vector_round_trip(self):
        vector = CoordinateTransform.ra_dec_to_vector(4.0, -0.5)
        self.assertAlmostEqual(np.linalg.norm(vector), 1.0)
        ra, dec = CoordinateTransform.vector_to_ra_dec(vector * 7.0)
        self.assertAlmostEqual(ra, 4.0)
        self.assertAlmostEqual(dec, -0.5)

    def test_zero_vector_has_no_direction(self):
        with self.assertRaises(PhysicsError):
            CoordinateTransform.vector_to_ra_dec([0.0, 0.0, 0.0])

    def test_orbital_element_facades(self):
        elements = OrbitalElements.from_degrees(1.2 * AU_M, 0.1, 5.0, 40.0, 70.0, 200.0, SOLAR_MASS_KG)
        position, velocity = CoordinateTransform.orbital_elements_to_rectangular(elements)
        recovered = CoordinateTransform.rectangular_to_orbital_elements(position, velocity, SOLAR_MASS_KG)
        self.assertAlmostEqual(recovered.semi_major_axis / elements.semi_major_axis, 1.0, places=8)
        self.assertAlmostEqual(recovered.eccentricity, elements.eccentricity, places=8)
        self.assertAlmostEqual(recovered.inclination, elements.inclination, places=8)

class TestUnitFacades(unittest.TestCase):

    def setUp(self):
        self.transform = CoordinateTransform()

    def test_au_scale(self):
        self.assertEqual(self.transform.au_to_meters(2.0), 2.0 * AU_M)
        self.assertAlmostEqual(self.transform.meters_to_au(AU_M / 2.0), 0.5)
        custom = CoordinateTransform(au=1000.0)
        self.assertEqual(custom.au_to_meters(3.0), 3000.0)
        with self.assertRaises(PhysicsError):
            CoordinateTransform(au=0.0)

    def test_angle_units(self):
        self.assertAlmostEqual(self.transform.degrees_to_radians(180.0), math.pi)
        self.assertAlmostEqual(self.transform.radians_to_degrees(math.pi / 2), 90.0)
        self.assertAlmostEqual(self.transform.hours_to_radians(6.0), math.pi / 2)
        self.assertAlmostEqual(self.transform.radians_to_hours(math.pi), 12.0)

    def test_hms(self):
        angle = CoordinateTransform.hms_to_radians(13, 10, 46.3668)
        hours, minutes, seconds = CoordinateTransform.radians_to_hms(angle)
        self.assertEqual((hours, minutes), (13, 10))
        self.assertAlmostEqual(seconds, 46.3668, places=6)
        self.assertEqual(CoordinateTransform.radians_to_hms(-math.pi / 2)[0], 18)

    def test_dms(self):
        angle = CoordinateTransform.dms_to_radians(-1, 23, 26, 21.448)
        sign, degrees, minutes, seconds = CoordinateTransform.radians_to_dms(angle)
        self.assertEqual((sign, degrees, minutes), (-1, 23, 26))
        self.assertAlmostEqual(seconds, 21.448, places=6)

    def test_time_facades(self):
        self.assertEqual(self.transform.calculate_julian_day(datetime(2000, 1, 1, 12, tzinfo=timezone.utc)), J2000_JD)
        lst = self.transform.calculate_lst(J2000_JD, 0.0)
        self.assertAlmostEqual(math.degrees(lst), 280.46061837, places=6)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
