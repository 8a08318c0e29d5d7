# tests/test_arithmetic.py

import unittest
import math
import numpy as np
from polypos import Position, CoordinateSystem

CARTESIAN = CoordinateSystem.CARTESIAN
SPHERICAL = CoordinateSystem.SPHERICAL
CYLINDRICAL = CoordinateSystem.CYLINDRICAL


def raw(p):
    return [p.a, p.b, p.c]


class TestComponentArithmetic(unittest.TestCase):
    def test_add_and_sub(self):
        p = Position.cartesian(1, 2, 3).add((1, 1, 1))
        self.assertEqual(raw(p), [2.0, 3.0, 4.0])
        p.sub(Position.cartesian(2, 0, -1))
        self.assertEqual(raw(p), [0.0, 3.0, 5.0])

    def test_receiver_ends_in_cartesian(self):
        p = Position.spherical(1, math.pi / 2, 0).add((0, 0, 1))
        self.assertEqual(p.system, CARTESIAN)
        np.testing.assert_allclose(raw(p), [1, 0, 1], atol=1e-12)

    def test_operand_is_forced_to_cartesian(self):
        other = Position.cylindrical(1, 0, 2)
        Position.cartesian(0, 0, 0).add(other)
        self.assertEqual(other.system, CARTESIAN)
        np.testing.assert_allclose(raw(other), [0, 2, 1], atol=1e-12)

    def test_plain_values_in_another_system(self):
        p = Position.cartesian(0, 0, 0).add((2, math.pi / 2, 0), SPHERICAL)
        np.testing.assert_allclose(raw(p), [2, 0, 0], atol=1e-12)
        p.sub((1, 0, 1), CYLINDRICAL)
        np.testing.assert_allclose(raw(p), [2, -1, -1], atol=1e-12)

    def test_add_then_sub_restores(self):
        q = Position.spherical(2, 0.7, -0.4)
        for p in (Position.cartesian(1, 2, 3), Position.cylindrical(3, -1.0, 2)):
            expected = list(p)
            p.add(q).sub(q)
            np.testing.assert_allclose(list(p), expected, atol=1e-12)

    def test_add_self(self):
        p = Position.cylindrical(1, 0, 1)
        p.add(p)
        np.testing.assert_allclose(raw(p), [0, 2, 2], atol=1e-12)

    def test_mult_and_divi(self):
        p = Position.cartesian(2, 3, 4).mult((2, 0.5, -1))
        self.assertEqual(raw(p), [4.0, 1.5, -4.0])
        p.divi((4, 3, 2))
        self.assertEqual(raw(p), [1.0, 0.5, -2.0])

    def test_divi_by_zero_follows_ieee(self):
        p = Position.cartesian(1, -1, 0).divi((0, 0, 0))
        self.assertEqual(p.x, math.inf)
        self.assertEqual(p.y, -math.inf)
        self.assertTrue(math.isnan(p.z))

    def test_bad_operand_shape(self):
        with self.assertRaises(ValueError):
            Position.cartesian(1, 2, 3).add((1, 2))


class TestScaling(unittest.TestCase):
    def test_scale_keeps_system(self):
        p = Position.spherical(2, 0.3, 0.4).scale(3)
        self.assertEqual(p.system, SPHERICAL)
        np.testing.assert_allclose(raw(p), [6, 0.3, 0.4])

        p = Position.cylindrical(2, 0.3, 5).scale(2)
        self.assertEqual(p.system, CYLINDRICAL)
        np.testing.assert_allclose(raw(p), [4, 0.3, 10])

        p = Position.cartesian(1, -2, 3).scale(-1)
        self.assertEqual(raw(p), [-1.0, 2.0, -3.0])

    def test_scaling_matches_cartesian_scaling(self):
        for p in (Position.spherical(2, 0.3, 0.4), Position.cylindrical(2, 0.3, 5)):
            x, y, z = p.clone().to_cartesian().to_array()
            p.scale(1.5)
            np.testing.assert_allclose(list(p), [1.5 * x, 1.5 * y, 1.5 * z], atol=1e-12)

    def test_untagged_scale_stays_untagged(self):
        p = Position.zero().scale(4)
        self.assertIsNone(p.system)

    def test_double_flip(self):
        p = Position.cylindrical(1, 0.2, 3)
        self.assertEqual(raw(p.clone().double_pos()), [2.0, 0.2, 6.0])
        self.assertEqual(raw(p.clone().flip()), [-1.0, 0.2, -3.0])
        self.assertEqual(raw(p.clone().flip_and_double()), [-2.0, 0.2, -6.0])

    def test_flip_spherical_points_the_other_way(self):
        p = Position.spherical(1, 0, 0).flip()
        np.testing.assert_allclose(list(p), [0, 0, -1], atol=1e-12)


class TestPowers(unittest.TestCase):
    def test_sqr_and_sqrt(self):
        p = Position.cartesian(-2, 3, 0.5).sqr()
        self.assertEqual(raw(p), [4.0, 9.0, 0.25])
        p = Position.cartesian(4, -9, 0).sqrt()
        self.assertEqual(p.x, 2.0)
        self.assertTrue(math.isnan(p.y))
        self.assertEqual(p.z, 0.0)

    def test_sqrt_positive(self):
        p = Position.cartesian(4, -9, 0).sqrt_positive()
        self.assertEqual(raw(p), [2.0, 3.0, 0.0])

    def test_sign_preserving(self):
        p = Position.cartesian(-2, 3, 0).sqr_preserve_sign()
        self.assertEqual(raw(p), [-4.0, 9.0, 0.0])
        p.sqrt_preserve_sign()
        self.assertEqual(raw(p), [-2.0, 3.0, 0.0])

    def test_magnitude_powers(self):
        p = Position.cartesian(0, 3, 4).sqr_mag_s()
        self.assertEqual(p.system, SPHERICAL)
        self.assertAlmostEqual(p.a, 25.0)
        p.sqrt_mag_s()
        self.assertAlmostEqual(p.a, 5.0)

        p = Position.cylindrical(3, 0.1, 1).sqr_mag_c()
        self.assertEqual(raw(p), [9.0, 0.1, 1.0])
        p.sqrt_mag_c()
        self.assertEqual(raw(p), [3.0, 0.1, 1.0])


class TestValueOps(unittest.TestCase):
    def test_flatten(self):
        self.assertEqual(raw(Position.cartesian(1, 2, 3).flatten()), [1.0, 0.0, 3.0])
        self.assertEqual(raw(Position.cylindrical(2, 0.5, 7).flatten()), [2.0, 0.5, 0.0])
        self.assertEqual(raw(Position.spherical(2, 0.5, 0.7).flatten()), [2.0, 0.5, 0.0])

    def test_flatten_keeps_horizontal_direction(self):
        p = Position.spherical(2, 0.5, 0.7)
        expected = p.clone().to_cartesian().to_array()
        p.flatten()
        np.testing.assert_allclose(p.to_array(CARTESIAN)[[0, 2]] / expected[[0, 2]],
                                   [1 / math.cos(0.7)] * 2, rtol=1e-12)

    def test_to_rad(self):
        p = Position.spherical(1, 90, 45).to_rad()
        np.testing.assert_allclose(raw(p), [1, math.pi / 2, math.pi / 4])
        p = Position.cylindrical(1, 180, 5).to_rad()
        np.testing.assert_allclose(raw(p), [1, math.pi, 5])
        self.assertEqual(raw(Position.cartesian(90, 90, 90).to_rad()), [90.0, 90.0, 90.0])

    def test_floor_ceil_round(self):
        self.assertEqual(raw(Position.cartesian(1.5, -1.5, 2.4).floor()), [1.0, -2.0, 2.0])
        self.assertEqual(raw(Position.cartesian(1.5, -1.5, 2.4).ceil()), [2.0, -1.0, 3.0])
        self.assertEqual(raw(Position.cartesian(1.5, -1.5, 2.4).round()), [2.0, -1.0, 2.0])

    def test_round_halves_go_up(self):
        self.assertEqual(raw(Position.cartesian(-2.5, 2.5, -0.5).round()), [-2.0, 3.0, 0.0])
        self.assertEqual(raw(Position.cartesian(-2.6, -2.4, 0.49).round()), [-3.0, -2.0, 0.0])

    def test_rounding_passes_non_finite_values_through(self):
        for method in ("floor", "ceil", "round"):
            p = Position.cartesian(1, -1, 0).divi((0, 0, 0))
            getattr(p, method)()
            self.assertEqual(p.a, math.inf, method)
            self.assertEqual(p.b, -math.inf, method)
            self.assertTrue(math.isnan(p.c), method)

    def test_rounding_acts_on_current_system(self):
        p = Position.spherical(2.6, 0.4, 0.2).round()
        self.assertEqual(p.system, SPHERICAL)
        self.assertEqual(raw(p), [3.0, 0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
