# test_solarsystem.py
import copy
import math
import unittest

import numpy as np

from config import config, AU_M, SOLAR_MASS_KG, EARTH_MASS_KG, JULIAN_YEAR_SECONDS
from physics_utils import PhysicsError, TWO_PI, circular_orbital_velocity
from solarsystem import (OrbitalElements, CelestialBody, KeplerianOrbit, system_energy, calculate_total_energy,
                         calculate_center_of_mass, build_solar_system)

def relative_error(actual, expected):
    return np.linalg.norm(np.asarray(actual) - np.asarray(expected)) / np.linalg.norm(expected)

class TestOrbitalElements(unittest.TestCase):

    def test_period_is_derived(self):
        elements = OrbitalElements(semi_major_axis=AU_M, eccentricity=0.0167, central_body_mass=SOLAR_MASS_KG)
        self.assertAlmostEqual(elements.orbital_period / JULIAN_YEAR_SECONDS, 1.0, delta=1e-3)
        self.assertAlmostEqual(elements.mean_motion, TWO_PI / elements.orbital_period)

    def test_invalid_elements_rejected(self):
        with self.assertRaises(PhysicsError):
            OrbitalElements(semi_major_axis=AU_M, eccentricity=1.0)
        with self.assertRaises(PhysicsError):
            OrbitalElements(semi_major_axis=AU_M, eccentricity=-0.1)
        with self.assertRaises(PhysicsError):
            OrbitalElements(semi_major_axis=0.0, eccentricity=0.1)
        with self.assertRaises(PhysicsError):
            OrbitalElements(semi_major_axis=AU_M, eccentricity=0.1, orbital_period=0.0)
        with self.assertRaises(PhysicsError):
            OrbitalElements(semi_major_axis=AU_M, eccentricity=0.1, central_body_mass=0.0)
        with self.assertRaises(PhysicsError):
            OrbitalElements(semi_major_axis=float('nan'), eccentricity=0.1)

    def test_inconsistent_period_is_kept_with_warning(self):
        with self.assertLogs(level='WARNING'):
            elements = OrbitalElements(semi_major_axis=AU_M, eccentricity=0.0, orbital_period=1.0e6)
        self.assertEqual(elements.orbital_period, 1.0e6)

    def test_from_degrees(self):
        elements = OrbitalElements.from_degrees(AU_M, 0.1, 90.0, -90.0, 370.0, 180.0, SOLAR_MASS_KG)
        self.assertAlmostEqual(elements.inclination, math.pi / 2)
        self.assertAlmostEqual(elements.longitude_of_ascending_node, 1.5 * math.pi)
        self.assertAlmostEqual(elements.argument_of_periapsis, math.radians(10.0))
        self.assertAlmostEqual(elements.mean_anomaly_at_epoch, math.pi)

class TestCelestialBody(unittest.TestCase):

    def test_initial_state_captured_and_restored(self):
        body = CelestialBody(id="probe", mass=1.0, position=[1, 2, 3], velocity=[4, 5, 6])
        body.position = np.array([9.0, 9.0, 9.0])
        body.acceleration = np.array([1.0, 1.0, 1.0])
        body.restore_initial_state()
        np.testing.assert_array_equal(body.position, [1.0, 2.0, 3.0])
        np.testing.assert_array_equal(body.velocity, [4.0, 5.0, 6.0])
        np.testing.assert_array_equal(body.acceleration, np.zeros(3))

    def test_initial_state_is_a_copy(self):
        body = CelestialBody(id="probe", mass=1.0, position=[1, 2, 3])
        body.position[0] = 100.0
        self.assertEqual(body.initial_state['position'][0], 1.0)

    def test_name_defaults_to_id(self):
        self.assertEqual(CelestialBody(id="ceres", mass=1.0).name, "ceres")

    def test_negative_mass_or_radius_rejected(self):
        with self.assertRaises(PhysicsError):
            CelestialBody(id="bad", mass=-1.0)
        with self.assertRaises(PhysicsError):
            CelestialBody(id="bad", mass=1.0, radius=-5.0)

    def test_keplerian_requires_orbit(self):
        with self.assertRaises(PhysicsError):
            CelestialBody(id="bad", mass=1.0, keplerian=True)

    def test_rotation_at(self):
        body = CelestialBody(id="earth", mass=EARTH_MASS_KG, rotation_period=86400.0)
        self.assertAlmostEqual(body.rotation_at(21600.0), math.pi / 2)
        self.assertAlmostEqual(math.cos(body.rotation_at(86400.0 * 3)), 1.0)
        static = CelestialBody(id="rock", mass=1.0, rotation=0.5)
        self.assertEqual(static.rotation_at(1e9), 0.5)

class TestKeplerianOrbit(unittest.TestCase):

    def setUp(self):
        self.elements = OrbitalElements.from_degrees(1.523679 * AU_M, 0.0934, 1.85, 49.558, 286.502, 19.412,
                                                     SOLAR_MASS_KG)
        self.orbit = KeplerianOrbit(self.elements)

    def test_requires_elements(self):
        with self.assertRaises(PhysicsError):
            KeplerianOrbit({'semi_major_axis': 1.0})

    def test_radius_within_apsides(self):
        periapsis, apoapsis = self.orbit.calculate_apsides()
        for t in np.linspace(0.0, self.elements.orbital_period, 25):
            r = np.linalg.norm(self.orbit.get_position_at_time(t))
            self.assertGreaterEqual(r, periapsis * (1 - 1e-12))
            self.assertLessEqual(r, apoapsis * (1 + 1e-12))

    def test_position_is_periodic(self):
        start = self.orbit.get_position_at_time(0.0)
        after = self.orbit.get_position_at_time(3 * self.elements.orbital_period)
        self.assertLess(relative_error(after, start), 1e-9)

    def test_speed_matches_vis_viva(self):
        position, velocity = self.orbit.get_state_at_time(1.0e6)
        expected = self.orbit.calculate_velocity_at_distance(np.linalg.norm(position))
        self.assertAlmostEqual(np.linalg.norm(velocity) / expected, 1.0, places=10)
        np.testing.assert_array_equal(self.orbit.get_velocity_at_time(1.0e6), velocity)

    def test_periapsis_position(self):
        elements = OrbitalElements(semi_major_axis=AU_M, eccentricity=0.5, central_body_mass=SOLAR_MASS_KG)
        position = KeplerianOrbit(elements).get_position_at_time(0.0)
        np.testing.assert_allclose(position, [0.5 * AU_M, 0.0, 0.0], atol=1e-3)

    def test_vis_viva_errors(self):
        with self.assertRaises(PhysicsError):
            self.orbit.calculate_velocity_at_distance(0.0)
        with self.assertRaises(PhysicsError):
            self.orbit.calculate_velocity_at_distance(3.0 * self.elements.semi_major_axis)

    def test_period_and_semi_major_axis_are_inverse(self):
        period = KeplerianOrbit.calculate_orbital_period(AU_M, SOLAR_MASS_KG)
        self.assertAlmostEqual(KeplerianOrbit.calculate_semi_major_axis(period, SOLAR_MASS_KG) / AU_M, 1.0, places=12)
        with self.assertRaises(PhysicsError):
            KeplerianOrbit.calculate_semi_major_axis(-1.0, SOLAR_MASS_KG)

    def test_time_of_flight(self):
        period = self.elements.orbital_period
        self.assertAlmostEqual(self.orbit.calculate_time_of_flight(0.0, math.pi) / period, 0.5)
        self.assertAlmostEqual(self.orbit.calculate_time_of_flight(1.0, 1.0), 0.0)
        wrapped = self.orbit.calculate_time_of_flight(math.pi, 0.0)
        self.assertAlmostEqual(wrapped / period, 0.5)
        self.assertGreaterEqual(self.orbit.calculate_time_of_flight(2.0, 1.0), 0.0)
        # Equal arcs are swept faster at periapsis
        self.assertLess(self.orbit.calculate_time_of_flight(-0.1, 0.1), self.orbit.calculate_time_of_flight(math.pi - 0.1, math.pi + 0.1))

    def test_update_elements_rederives_period(self):
        old_period = self.elements.orbital_period
        updated = self.orbit.update_elements(semi_major_axis=4.0 * self.elements.semi_major_axis)
        self.assertAlmostEqual(updated.orbital_period / old_period, 8.0)
        with self.assertRaises(PhysicsError):
            self.orbit.update_elements(eccentricity=1.5)
        with self.assertRaises(PhysicsError):
            self.orbit.update_elements(colour='red')

    def test_get_elements_returns_copy(self):
        copy_of_elements = self.orbit.get_elements()
        copy_of_elements.eccentricity = 0.5
        self.assertAlmostEqual(self.orbit.elements.eccentricity, 0.0934)

class TestStateToElements(unittest.TestCase):
    """Elements -> state -> elements -> state must close to a relative error below 1e-6."""

    def assert_round_trip(self, elements, time_seconds=0.0):
        position, velocity = KeplerianOrbit(elements).get_state_at_time(time_seconds)
        recovered = KeplerianOrbit.calculate_orbital_elements(position, velocity, elements.central_body_mass,
                                                              epoch=time_seconds)
        position_back, velocity_back = KeplerianOrbit(recovered).get_state_at_time(time_seconds)
        self.assertLess(relative_error(position_back, position), 1e-6)
        self.assertLess(relative_error(velocity_back, velocity), 1e-6)
        self.assertAlmostEqual(recovered.semi_major_axis / elements.semi_major_axis, 1.0, places=8)
        self.assertAlmostEqual(recovered.eccentricity, elements.eccentricity, places=8)
        return recovered

    def test_general_orbit(self):
        elements = OrbitalElements.from_degrees(2.3 * AU_M, 0.25, 12.0, 80.0, 140.0, 33.0, SOLAR_MASS_KG)
        recovered = self.assert_round_trip(elements, time_seconds=1.5e7)
        self.assertAlmostEqual(recovered.inclination, elements.inclination, places=9)
        self.assertAlmostEqual(recovered.longitude_of_ascending_node, elements.longitude_of_ascending_node, places=9)
        self.assertAlmostEqual(recovered.argument_of_periapsis, elements.argument_of_periapsis, places=7)

    def test_high_eccentricity(self):
        self.assert_round_trip(OrbitalElements.from_degrees(3.0 * AU_M, 0.9, 30.0, 10.0, 20.0, 5.0, SOLAR_MASS_KG))

    def test_equatorial_eccentric_orbit(self):
        elements = OrbitalElements.from_degrees(AU_M, 0.2, 0.0, 0.0, 75.0, 40.0, SOLAR_MASS_KG)
        recovered = self.assert_round_trip(elements)
        self.assertEqual(recovered.longitude_of_ascending_node, 0.0)
        self.assertAlmostEqual(recovered.argument_of_periapsis, math.radians(75.0), places=7)

    def test_retrograde_equatorial_orbit(self):
        elements = OrbitalElements.from_degrees(AU_M, 0.2, 180.0, 0.0, 75.0, 40.0, SOLAR_MASS_KG)
        recovered = self.assert_round_trip(elements)
        self.assertAlmostEqual(recovered.inclination, math.pi)
        self.assertEqual(recovered.longitude_of_ascending_node, 0.0)

    def test_circular_inclined_orbit(self):
        elements = OrbitalElements.from_degrees(AU_M, 0.0, 30.0, 60.0, 0.0, 45.0, SOLAR_MASS_KG)
        recovered = self.assert_round_trip(elements)
        self.assertEqual(recovered.argument_of_periapsis, 0.0)
        self.assertAlmostEqual(recovered.longitude_of_ascending_node, math.radians(60.0), places=9)

    def test_circular_equatorial_orbit(self):
        radius = AU_M
        speed = circular_orbital_velocity(SOLAR_MASS_KG, radius)
        position = [radius * math.cos(1.0), radius * math.sin(1.0), 0.0]
        velocity = [-speed * math.sin(1.0), speed * math.cos(1.0), 0.0]
        recovered = KeplerianOrbit.calculate_orbital_elements(position, velocity, SOLAR_MASS_KG)
        self.assertEqual(recovered.longitude_of_ascending_node, 0.0)
        self.assertEqual(recovered.argument_of_periapsis, 0.0)
        position_back, velocity_back = KeplerianOrbit(recovered).get_state_at_time(0.0)
        self.assertLess(relative_error(position_back, position), 1e-6)
        self.assertLess(relative_error(velocity_back, velocity), 1e-6)

    def test_unbound_and_rectilinear_rejected(self):
        escape = math.sqrt(2.0) * circular_orbital_velocity(SOLAR_MASS_KG, AU_M)
        with self.assertRaises(PhysicsError):
            KeplerianOrbit.calculate_orbital_elements([AU_M, 0, 0], [0, escape * 1.01, 0], SOLAR_MASS_KG)
        with self.assertRaises(PhysicsError):
            KeplerianOrbit.calculate_orbital_elements([AU_M, 0, 0], [-1000.0, 0, 0], SOLAR_MASS_KG)
        with self.assertRaises(PhysicsError):
            KeplerianOrbit.calculate_orbital_elements([0, 0, 0], [0, 1000.0, 0], SOLAR_MASS_KG)

    def test_eccentricity_vector_points_to_periapsis(self):
        elements = OrbitalElements(semi_major_axis=AU_M, eccentricity=0.3, central_body_mass=SOLAR_MASS_KG)
        position, velocity = KeplerianOrbit(elements).get_state_at_time(1.0e6)
        e_vec = KeplerianOrbit.calculate_eccentricity_vector(position, velocity, elements.gravitational_parameter)
        np.testing.assert_allclose(e_vec, [0.3, 0.0, 0.0], atol=1e-9)

class TestEnergyAndCenterOfMass(unittest.TestCase):

    def test_two_body_energy(self):
        positions = np.array([[0.0, 0.0, 0.0], [AU_M, 0.0, 0.0]])
        velocities = np.array([[0.0, 0.0, 0.0], [0.0, 30000.0, 0.0]])
        masses = np.array([SOLAR_MASS_KG, EARTH_MASS_KG])
        energy = system_energy(positions, velocities, masses)
        self.assertAlmostEqual(energy['kinetic'] / (0.5 * EARTH_MASS_KG * 30000.0 ** 2), 1.0)
        expected_potential = -config.Physics.G * SOLAR_MASS_KG * EARTH_MASS_KG / AU_M
        self.assertAlmostEqual(energy['potential'] / expected_potential, 1.0)
        self.assertAlmostEqual(energy['total'], energy['kinetic'] + energy['potential'])

    def test_coincident_pair_is_skipped(self):
        positions = np.zeros((2, 3))
        with self.assertLogs(level='WARNING'):
            energy = system_energy(positions, np.zeros((2, 3)), np.array([1.0, 1.0]))
        self.assertEqual(energy['potential'], 0.0)

    def test_calculate_total_energy_of_bodies(self):
        self.assertEqual(calculate_total_energy([])['total'], 0.0)
        bodies = [CelestialBody(id="a", mass=2.0, velocity=[1, 0, 0]), CelestialBody(id="b", mass=1.0, position=[1, 0, 0])]
        energy = calculate_total_energy(bodies, G=1.0)
        self.assertAlmostEqual(energy['kinetic'], 1.0)
        self.assertAlmostEqual(energy['potential'], -2.0)

    def test_center_of_mass(self):
        bodies = [CelestialBody(id="a", mass=3.0, position=[0, 0, 0], velocity=[0, 4, 0]),
                  CelestialBody(id="b", mass=1.0, position=[4, 0, 0], velocity=[0, 0, 0])]
        position, velocity, total_mass = calculate_center_of_mass(bodies)
        np.testing.assert_array_almost_equal(position, [1.0, 0.0, 0.0])
        np.testing.assert_array_almost_equal(velocity, [0.0, 3.0, 0.0])
        self.assertEqual(total_mass, 4.0)
        self.assertEqual(calculate_center_of_mass([])[2], 0.0)

class TestBuildSolarSystem(unittest.TestCase):

    def test_creation_order_and_primaries(self):
        bodies = build_solar_system()
        ids = [b.id for b in bodies]
        self.assertEqual(ids[0], "sun")
        self.assertEqual(len(ids), len(config.SolarSystem.PLANET_DATA))
        self.assertEqual(len(set(ids)), len(ids))
        for moon_id, primary_id in (("moon", "earth"), ("io", "jupiter"), ("titan", "saturn")):
            self.assertLess(ids.index(primary_id), ids.index(moon_id))
            moon = bodies[ids.index(moon_id)]
            self.assertEqual(moon.central_body_id, primary_id)

    def test_earth_is_about_one_au_from_sun(self):
        bodies = {b.id: b for b in build_solar_system()}
        distance_au = np.linalg.norm(bodies["earth"].position - bodies["sun"].position) / AU_M
        self.assertGreater(distance_au, 0.98)
        self.assertLess(distance_au, 1.02)
        moon_distance = np.linalg.norm(bodies["moon"].position - bodies["earth"].position)
        self.assertGreater(moon_distance, 3.5e8)
        self.assertLess(moon_distance, 4.1e8)

    def test_units_are_si(self):
        earth = {b.id: b for b in build_solar_system()}["earth"]
        self.assertAlmostEqual(earth.radius, 6371.0e3)
        self.assertAlmostEqual(earth.rotation_period, 23.9345 * 3600.0)
        self.assertEqual(earth.group, "planet")

    def test_keplerian_mode(self):
        bodies = build_solar_system(keplerian=True)
        self.assertFalse(bodies[0].keplerian)
        self.assertTrue(all(b.keplerian for b in bodies[1:]))

    def test_barycentric_shift(self):
        bodies = build_solar_system(barycentric=True)
        position, velocity, _ = calculate_center_of_mass(bodies)
        self.assertLess(np.linalg.norm(position), 1.0)
        self.assertLess(np.linalg.norm(velocity), 1.0e-6)
        np.testing.assert_array_equal(bodies[0].initial_state['position'], bodies[0].position)

    def test_missing_sun_or_primary(self):
        data = copy.deepcopy(config.SolarSystem.PLANET_DATA)
        del data['Sun']
        with self.assertRaises(PhysicsError):
            build_solar_system(planet_data=data)

        data = copy.deepcopy(config.SolarSystem.PLANET_DATA)
        data['Phobos'] = dict(data['Moon'], central_body='Vulcan')
        with self.assertRaises(PhysicsError):
            build_solar_system(planet_data=data)

    def test_missing_planet_is_skipped(self):
        data = copy.deepcopy(config.SolarSystem.PLANET_DATA)
        for name in ('Neptune',):
            del data[name]
        with self.assertLogs(level='WARNING'):
            bodies = build_solar_system(planet_data=data)
        self.assertNotIn("neptune", [b.id for b in bodies])

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
