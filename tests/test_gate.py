#!/usr/bin/env python3
"""
Unit tests for positioning fixes and the GPS validity gate.
"""

import unittest
import sys
import os

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from speedfusion.errors import ConfigurationError
from speedfusion.sensors import (
    PositionFix, InertialFrame, GPSValidityGate, GateConfig,
    REJECT_ACCURACY, REJECT_SPEED, REJECT_STALE, REJECT_JUMP
)


def make_fix(speed=10.0, accuracy=5.0, timestamp=100.0, course=-1.0):
    return PositionFix(
        latitude=37.7749,
        longitude=-122.4194,
        speed=speed,
        horizontal_accuracy=accuracy,
        course=course,
        timestamp=timestamp
    )


class TestPositionFix(unittest.TestCase):
    """Test PositionFix validity flags."""

    def test_valid_position(self):
        fix = make_fix()
        self.assertTrue(fix.has_valid_position)
        self.assertFalse(fix.has_valid_course)
        self.assertEqual(fix.coordinate.latitude, 37.7749)

    def test_negative_accuracy_is_invalid(self):
        self.assertFalse(make_fix(accuracy=-1.0).has_valid_position)

    def test_out_of_range_latitude(self):
        fix = PositionFix(latitude=95.0, longitude=0.0, speed=1.0,
                          horizontal_accuracy=5.0, timestamp=0.0)
        self.assertFalse(fix.has_valid_position)


class TestInertialFrame(unittest.TestCase):
    """Test InertialFrame helpers."""

    def test_from_vectors(self):
        frame = InertialFrame.from_vectors((0.3, 0.4, 0.0), (0.0, 0.0, 0.1), timestamp=1.5)

        self.assertEqual(frame.timestamp, 1.5)
        self.assertAlmostEqual(frame.acceleration_magnitude, 0.5)
        self.assertAlmostEqual(frame.rotation_magnitude, 0.1)
        self.assertAlmostEqual(frame.acceleration_ms2, 0.5 * 9.80665)

    def test_default_rotation(self):
        frame = InertialFrame(0.1, 0.0, 0.0, timestamp=0.0)
        self.assertEqual(frame.rotation_magnitude, 0.0)


class TestGateConfig(unittest.TestCase):
    """Test GateConfig validation."""

    def test_defaults(self):
        config = GateConfig()
        self.assertEqual(config.max_horizontal_accuracy, 15.0)
        self.assertEqual(config.speed_noise_floor, 0.2)
        self.assertEqual(config.max_fix_age, 2.0)
        self.assertEqual(config.max_speed_jump, 3.0)
        self.assertEqual(config.jump_accel_threshold, 0.05)

    def test_from_dict(self):
        config = GateConfig.from_dict({"max_fix_age": 1})
        self.assertEqual(config.max_fix_age, 1.0)
        self.assertEqual(config.to_dict()["max_speed_jump"], 3.0)

    def test_invalid_options(self):
        for values in ({"max_age": 1.0}, {"max_speed_jump": -1.0},
                       {"max_horizontal_accuracy": 0.0}, {"max_fix_age": "old"}):
            with self.assertRaises(ConfigurationError, msg=str(values)):
                GateConfig.from_dict(values)


class TestGPSValidityGate(unittest.TestCase):
    """Test GPSValidityGate rules."""

    def setUp(self):
        self.gate = GPSValidityGate()

    def test_accept(self):
        speed = self.gate.evaluate(make_fix(speed=10.0), current_speed=9.0, accel_magnitude=0.0)

        self.assertEqual(speed, 10.0)
        self.assertIsNone(self.gate.last_rejection)
        self.assertEqual(self.gate.accepted_count, 1)

    def test_reject_poor_accuracy(self):
        self.assertIsNone(self.gate.evaluate(make_fix(accuracy=20.0), 10.0, 0.0))
        self.assertEqual(self.gate.last_rejection, REJECT_ACCURACY)

        # The limit itself is already too coarse
        self.assertIsNone(self.gate.evaluate(make_fix(accuracy=15.0), 10.0, 0.0))

    def test_reject_missing_accuracy(self):
        self.assertIsNone(self.gate.evaluate(make_fix(accuracy=-1.0), 10.0, 0.0))
        self.assertEqual(self.gate.last_rejection, REJECT_ACCURACY)

    def test_reject_invalid_speed(self):
        self.assertIsNone(self.gate.evaluate(make_fix(speed=-1.0), 0.0, 0.0))
        self.assertEqual(self.gate.last_rejection, REJECT_SPEED)

        self.assertIsNone(self.gate.evaluate(make_fix(speed=float('nan')), 0.0, 0.0))
        self.assertEqual(self.gate.last_rejection, REJECT_SPEED)

    def test_noise_floor_coerced_to_zero(self):
        self.assertEqual(self.gate.evaluate(make_fix(speed=0.15), 0.0, 0.0), 0.0)
        self.assertEqual(self.gate.evaluate(make_fix(speed=0.2), 0.0, 0.0), 0.2)

    def test_reject_stale(self):
        fix = make_fix(timestamp=100.0)
        self.assertIsNone(self.gate.evaluate(fix, 10.0, 0.0, now=102.5))
        self.assertEqual(self.gate.last_rejection, REJECT_STALE)

        self.assertEqual(self.gate.evaluate(fix, 10.0, 0.0, now=101.5), 10.0)

    def test_reject_jump_without_acceleration(self):
        self.assertIsNone(self.gate.evaluate(make_fix(speed=25.0), 10.0, 0.01))
        self.assertEqual(self.gate.last_rejection, REJECT_JUMP)

    def test_jump_allowed_under_acceleration(self):
        self.assertEqual(self.gate.evaluate(make_fix(speed=25.0), 10.0, 0.3), 25.0)

    def test_rules_checked_in_order(self):
        """A fix failing several rules reports the first one."""
        fix = make_fix(speed=-1.0, accuracy=30.0, timestamp=0.0)
        self.gate.evaluate(fix, 10.0, 0.0, now=50.0)
        self.assertEqual(self.gate.last_rejection, REJECT_ACCURACY)

    def test_statistics(self):
        self.gate.evaluate(make_fix(), 10.0, 0.0)
        self.gate.evaluate(make_fix(accuracy=50.0), 10.0, 0.0)
        self.gate.evaluate(make_fix(speed=30.0), 10.0, 0.0)

        stats = self.gate.get_statistics()
        self.assertEqual(stats['accepted'], 1)
        self.assertEqual(stats['rejected'][REJECT_ACCURACY], 1)
        self.assertEqual(stats['rejected'][REJECT_JUMP], 1)
        self.assertEqual(stats['rejected'][REJECT_STALE], 0)
        self.assertEqual(stats['last_rejection'], REJECT_JUMP)


if __name__ == '__main__':
    unittest.main()
