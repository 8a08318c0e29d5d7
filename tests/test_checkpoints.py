# tests/test_checkpoints.py

import unittest
import logging
import numpy as np
from polypos import Position, CoordinateSystem

CARTESIAN = CoordinateSystem.CARTESIAN
SPHERICAL = CoordinateSystem.SPHERICAL


class TestCheckpoints(unittest.TestCase):
    def test_revert_restores_values_and_system(self):
        p = Position.spherical(2, 0.5, 0.25).set_checkpoint()
        p.add((1, 1, 1)).rotate_around_x(0.3)
        self.assertEqual(p.system, CARTESIAN)
        p.revert()
        self.assertEqual(p.system, SPHERICAL)
        self.assertEqual((p.a, p.b, p.c), (2.0, 0.5, 0.25))

    def test_revert_keeps_checkpoint(self):
        p = Position.cartesian(1, 2, 3).set_checkpoint()
        p.scale(5).revert()
        p.scale(7).revert()
        self.assertEqual(list(p), [1.0, 2.0, 3.0])
        self.assertIsNotNone(p.checkpoint)

    def test_checkpoint_is_a_snapshot(self):
        p = Position.cartesian(1, 2, 3).set_checkpoint()
        p.set_x(10)
        self.assertEqual(p.checkpoint.x, 1.0)

    def test_set_checkpoint_again_overwrites(self):
        p = Position.cartesian(1, 2, 3).set_checkpoint()
        snapshot = p.checkpoint
        p.set_values(4, 5, 6).set_checkpoint()
        self.assertIs(p.checkpoint, snapshot)
        p.set_values(0, 0, 0).revert()
        self.assertEqual(list(p), [4.0, 5.0, 6.0])

    def test_set_checkpoint_from_other_copies_its_chain(self):
        other = Position.cartesian(7, 8, 9).set_checkpoint()
        other.set_values(1, 1, 1)
        p = Position.cartesian(0, 0, 0).set_checkpoint(other)
        self.assertEqual(list(p.revert()), [1.0, 1.0, 1.0])
        nested = p.checkpoint.checkpoint
        self.assertIsNotNone(nested)
        self.assertIsNot(nested, other.checkpoint)
        self.assertEqual(list(nested), [7.0, 8.0, 9.0])

    def test_set_checkpoint_from_values(self):
        p = Position.cartesian(0, 0, 0).set_checkpoint((3, 2, 1))
        self.assertEqual(list(p.revert()), [3.0, 2.0, 1.0])

    def test_revert_without_checkpoint_is_noop(self):
        p = Position.cartesian(1, 2, 3)
        with self.assertLogs("polypos.position", level=logging.DEBUG):
            p.revert()
        self.assertEqual(list(p), [1.0, 2.0, 3.0])

    def test_clear_checkpoint(self):
        p = Position.cartesian(1, 2, 3).set_checkpoint().clear_checkpoint()
        self.assertIsNone(p.checkpoint)

    def test_clone_copies_checkpoint_chain(self):
        p = Position.cartesian(1, 2, 3).set_checkpoint()
        p.checkpoint.set_checkpoint((9, 9, 9))
        c = p.clone()
        self.assertIsNot(c.checkpoint, p.checkpoint)
        self.assertIsNot(c.checkpoint.checkpoint, p.checkpoint.checkpoint)
        self.assertEqual(list(c.checkpoint.checkpoint), [9.0, 9.0, 9.0])
        c.checkpoint.set_x(100)
        self.assertEqual(p.checkpoint.x, 1.0)

    def test_from_position(self):
        p = Position.cylindrical(1, 2, 3).set_checkpoint()
        q = Position.from_position(p)
        self.assertEqual((q.a, q.b, q.c, q.system), (p.a, p.b, p.c, p.system))
        self.assertIsNotNone(q.checkpoint)


class TestArrays(unittest.TestCase):
    def test_to_array_current_system(self):
        p = Position.cylindrical(1, 2, 3)
        np.testing.assert_array_equal(p.to_array(), [1, 2, 3])
        self.assertEqual(p.to_array().dtype, np.float64)

    def test_to_array_in_system(self):
        p = Position.spherical(1, 0, 0)
        np.testing.assert_allclose(p.to_array(CARTESIAN), [0, 0, 1], atol=1e-12)
        self.assertEqual(p.system, CARTESIAN)

    def test_fill_array(self):
        buffer = np.full(5, -1.0)
        Position.cartesian(1, 2, 3).fill_array(buffer[1:])
        np.testing.assert_array_equal(buffer, [-1, 1, 2, 3, -1])

    def test_many_with_systems(self):
        positions = [Position.cartesian(1, 2, 3),
                     Position.spherical(4, 0.5, 0.25),
                     Position.cylindrical(7, 0.1, 9)]
        flat = Position.to_array_many(positions)
        self.assertEqual(flat.shape, (12,))
        np.testing.assert_array_equal(flat[4:8], [4, 0.5, 0.25, int(SPHERICAL)])
        for i, original in enumerate(positions):
            restored = Position.from_array_many(flat, i)
            self.assertEqual(restored.system, original.system)
            self.assertEqual((restored.a, restored.b, restored.c),
                             (original.a, original.b, original.c))

    def test_many_untagged_written_as_cartesian(self):
        flat = Position.to_array_many([Position.zero()])
        np.testing.assert_array_equal(flat, [0, 0, 0, int(CARTESIAN)])

    def test_many_in_one_system(self):
        positions = [Position.spherical(2, 0.5, 0.25), Position.cartesian(1, 1, 0)]
        flat = Position.to_array_many(positions, SPHERICAL)
        self.assertEqual(flat.shape, (6,))
        restored = Position.from_array_many(flat, 1, SPHERICAL)
        self.assertEqual(restored.system, SPHERICAL)
        np.testing.assert_allclose(list(restored), [1, 1, 0], atol=1e-12)

    def test_many_xyz(self):
        positions = [Position.cylindrical(1, 0, 2), Position.cartesian(3, 4, 5)]
        flat = Position.to_array_many_xyz(positions)
        np.testing.assert_allclose(flat, [0, 2, 1, 3, 4, 5], atol=1e-12)
        q = Position.from_array_many_xyz(flat, 1)
        self.assertEqual(q.system, CARTESIAN)
        self.assertEqual(list(q), [3.0, 4.0, 5.0])


if __name__ == "__main__":
    unittest.main()
