#!/usr/bin/env python3
"""
Tests for the drag and lap timing state machines.
"""

import unittest
import threading
import sys
import os

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from speedfusion.errors import ConfigurationError
from speedfusion.math.units import SpeedUnit
from speedfusion.math.utils import offset_coordinate
from speedfusion.sensors import InertialFrame, PositionFix, Coordinate
from speedfusion.sessions import (
    DragSession, DragState, LapSession, LapState, Track, RunMetrics, LapRecord,
    predict_next_lap
)

BASE_LAT = 37.7749
BASE_LON = -122.4194
MPH_30 = 30 / 2.23694


def fix_at(timestamp, north_m=0.0, east_m=0.0, speed=10.0, accuracy=5.0):
    lat, lon = offset_coordinate(BASE_LAT, BASE_LON, north_m, east_m)
    return PositionFix(
        latitude=lat,
        longitude=lon,
        speed=speed,
        horizontal_accuracy=accuracy,
        timestamp=timestamp
    )


class TestDragSession(unittest.TestCase):
    """Test DragSession launch, target and finish handling."""

    def setUp(self):
        self.finished = []

    def test_constant_acceleration_run(self):
        """3 m/s² from rest with 10 Hz fixes to 30 mph."""
        session = DragSession(target_speed=MPH_30, on_finish=self.finished.append)
        self.assertEqual(session.state, DragState.ARMED)

        for i in range(100):
            t = i * 0.1
            state = session.handle_position(fix_at(t, north_m=1.5 * t * t, speed=3.0 * t))
            if i < 2:
                self.assertEqual(state, DragState.ARMED)
            if state is DragState.FINISHED:
                break

        self.assertEqual(i, 45)
        self.assertEqual(len(self.finished), 1)

        metrics = self.finished[0]
        self.assertIsInstance(metrics, RunMetrics)
        self.assertAlmostEqual(metrics.elapsed_time, 4.3, places=6)
        self.assertAlmostEqual(metrics.peak_speed, 13.5, places=6)
        self.assertAlmostEqual(metrics.distance_traveled, 1.5 * (4.5 ** 2 - 0.2 ** 2), delta=0.05)
        self.assertAlmostEqual(metrics.started_at, 0.2, places=6)

        table = metrics.as_dict(SpeedUnit.MPH)
        self.assertAlmostEqual(table["peak_speed_mph"], 13.5 * 2.23694, places=4)
        self.assertAlmostEqual(table["target_speed_mph"], 30.0, places=4)
        self.assertNotIn("target_distance_m", table)

    def test_finish_is_idempotent(self):
        """A target finish followed by a manual stop yields one record."""
        session = DragSession(target_speed=10.0, target_distance=50.0,
                              on_finish=self.finished.append)

        session.handle_position(fix_at(0.0, speed=1.0))
        self.assertEqual(session.state, DragState.RUNNING)

        # Strong acceleration lets the large speed step through the gate
        session.handle_inertial(InertialFrame.from_vectors((0.3, 0.0, 0.0), timestamp=0.5))
        self.assertEqual(session.snapshot().elapsed, 0.5)

        state = session.handle_position(fix_at(1.0, north_m=100.0, speed=12.0))
        self.assertEqual(state, DragState.FINISHED)

        metrics = session.metrics
        self.assertEqual(session.manual_stop(), metrics)
        self.assertIs(session.manual_stop(), metrics)
        self.assertEqual(session.handle_position(fix_at(2.0, speed=20.0)), DragState.FINISHED)
        self.assertEqual(len(self.finished), 1)

        self.assertAlmostEqual(metrics.elapsed_time, 1.0)
        self.assertAlmostEqual(metrics.distance_traveled, 100.0, delta=0.05)
        self.assertEqual(metrics.peak_speed, 12.0)
        self.assertEqual(metrics.target_distance, 50.0)

    def test_manual_stop_while_running(self):
        session = DragSession(target_speed=40.0, on_finish=self.finished.append)
        session.handle_position(fix_at(0.0, speed=2.0))
        session.handle_position(fix_at(1.0, north_m=3.0, speed=4.0))

        metrics = session.manual_stop()

        self.assertEqual(session.state, DragState.FINISHED)
        self.assertEqual(self.finished, [metrics])
        self.assertAlmostEqual(metrics.elapsed_time, 1.0)
        self.assertEqual(metrics.peak_speed, 4.0)
        self.assertEqual(len(metrics.speed_data), 2)

    def test_manual_stop_before_launch(self):
        """Stopping an armed session aborts it without a record."""
        session = DragSession(target_speed=10.0, on_finish=self.finished.append)
        session.handle_position(fix_at(0.0, speed=0.1))

        self.assertIsNone(session.manual_stop())
        self.assertEqual(session.state, DragState.FINISHED)
        self.assertIsNone(session.metrics)
        self.assertEqual(self.finished, [])

    def test_rejected_fix_does_not_launch(self):
        session = DragSession(target_speed=10.0)
        session.handle_position(fix_at(0.0, speed=5.0, accuracy=40.0))
        self.assertEqual(session.state, DragState.ARMED)

    def test_fused_distance_source(self):
        session = DragSession(target_distance=15.0, distance_source="fused",
                              on_finish=self.finished.append)

        session.handle_position(fix_at(0.0, speed=10.0))
        session.handle_position(fix_at(1.0, north_m=10.0, speed=10.0))
        self.assertEqual(session.state, DragState.RUNNING)
        self.assertAlmostEqual(session.snapshot().distance, 10.0)

        session.handle_position(fix_at(2.0, north_m=20.0, speed=10.0))

        self.assertEqual(session.state, DragState.FINISHED)
        self.assertAlmostEqual(self.finished[0].distance_traveled, 20.0)
        self.assertAlmostEqual(self.finished[0].elapsed_time, 2.0)

    def test_invalid_configuration(self):
        with self.assertRaises(ConfigurationError):
            DragSession()
        with self.assertRaises(ConfigurationError):
            DragSession(target_speed=-5.0)
        with self.assertRaises(ConfigurationError):
            DragSession(target_speed="fast")
        with self.assertRaises(ConfigurationError):
            DragSession(target_distance=100.0, distance_source="odometer")
        with self.assertRaises(ConfigurationError):
            DragSession(target_distance=100.0, launch_speed=None)

    def test_finish_elapsed_from_triggering_fix(self):
        """Inertial frames running ahead do not stretch the finishing time."""
        session = DragSession(target_speed=10.0, on_finish=self.finished.append)
        session.handle_position(fix_at(0.0, speed=1.0))
        for t in (0.5, 1.0, 1.5):
            session.handle_inertial(InertialFrame.from_vectors((0.3, 0.0, 0.0), timestamp=t))
        self.assertAlmostEqual(session.snapshot().elapsed, 1.5)

        state = session.handle_position(fix_at(1.0, north_m=10.0, speed=12.0))

        self.assertEqual(state, DragState.FINISHED)
        self.assertAlmostEqual(self.finished[0].elapsed_time, 1.0)
        self.assertAlmostEqual(session.snapshot().elapsed, 1.0)

    def test_listeners_run_outside_session_lock(self):
        """A listener may wait on another thread that reads the session."""
        session = DragSession(target_speed=10.0)
        reads_completed = []

        def listener(snapshot):
            reader = threading.Thread(target=session.snapshot, daemon=True)
            reader.start()
            reader.join(timeout=1.0)
            reads_completed.append(not reader.is_alive())

        session.fusion.add_listener(listener)
        session.handle_inertial(InertialFrame.from_vectors((0.0, 0.0, 0.0), timestamp=0.0))
        session.handle_position(fix_at(0.5, speed=1.0))

        self.assertEqual(reads_completed, [True, True])

    def test_concurrent_streams_deliver_once(self):
        """Both streams on their own threads still finish exactly once."""
        session = DragSession(target_speed=100.0, on_finish=self.finished.append)

        def feed_inertial():
            for i in range(151):
                session.handle_inertial(
                    InertialFrame.from_vectors((0.1, 0.0, 0.0), timestamp=i * 0.02))

        def feed_position():
            for i in range(31):
                t = i * 0.1
                session.handle_position(fix_at(t, north_m=1.5 * t * t, speed=3.0 * t))

        threads = [threading.Thread(target=feed_inertial), threading.Thread(target=feed_position)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(session.state, DragState.RUNNING)
        session.manual_stop()
        session.manual_stop()
        self.assertEqual(len(self.finished), 1)


class TestLapPrediction(unittest.TestCase):
    """Test predict_next_lap."""

    def test_no_laps(self):
        self.assertEqual(predict_next_lap([], 12.0), 0.0)

    def test_average_at_the_line(self):
        self.assertAlmostEqual(predict_next_lap([60.0, 62.0], 0.0), 61.0)

    def test_scaled_by_pace(self):
        self.assertAlmostEqual(predict_next_lap([60.0, 62.0], 31.0), 30.5)


class TestLapSession(unittest.TestCase):
    """Test LapSession crossing detection and the lap record."""

    def setUp(self):
        self.track = Track("Test Circuit", Coordinate(BASE_LAT, BASE_LON))
        self.records = []
        self.session = LapSession(self.track, on_finish=self.records.append)

    def drive(self):
        """Far away, first crossing, re-entry, far side, second crossing, re-entry."""
        s = self.session
        s.handle_position(fix_at(0.0, north_m=200.0, speed=15.0))
        self.assertEqual(s.state, LapState.WAITING_FOR_FIRST_CROSS)

        s.handle_position(fix_at(1.0, north_m=0.0, speed=15.0))
        self.assertEqual(s.state, LapState.TIMING)

        s.handle_inertial(InertialFrame.from_vectors((0.1, 0.0, 0.0), timestamp=1.5))
        self.assertAlmostEqual(s.snapshot().current_lap_time, 0.5)

        s.handle_position(fix_at(2.0, north_m=3.0, speed=15.0))
        s.handle_position(fix_at(30.0, north_m=300.0, speed=15.0))
        s.handle_position(fix_at(60.0, north_m=0.0, speed=15.0))
        self.assertEqual(s.lap_durations, (59.0,))
        self.assertAlmostEqual(s.predicted_next_lap, 59.0)

        s.handle_position(fix_at(62.0, east_m=2.0, speed=15.0))

    def test_lap_retrigger_guard(self):
        self.drive()

        self.assertEqual(self.session.lap_durations, (59.0,))
        self.assertAlmostEqual(self.session.predicted_next_lap, 2.0)
        self.assertAlmostEqual(self.session.snapshot().current_lap_time, 2.0)

    def test_finish_session(self):
        self.drive()

        record = self.session.finish_session()

        self.assertIsInstance(record, LapRecord)
        self.assertEqual(self.session.state, LapState.FINISHED)
        self.assertEqual(record.track_name, "Test Circuit")
        self.assertEqual(record.total_laps, 1)
        self.assertEqual(record.best_lap, 59.0)
        self.assertEqual(record.average_lap, 59.0)
        self.assertEqual(len(record.route), 5)
        self.assertEqual(len(record.speed_data), 5)
        self.assertEqual(len(record.gps_speed_data), 5)
        self.assertEqual(len(record.accel_data), 1)
        self.assertEqual(record.as_dict()["total_laps"], 1.0)

        self.assertIs(self.session.finish_session(), record)
        self.assertEqual(self.records, [record])

    def test_no_logging_after_finish(self):
        self.drive()
        record = self.session.finish_session()

        state = self.session.handle_position(fix_at(120.0, north_m=0.0, speed=15.0))
        self.session.handle_inertial(InertialFrame.from_vectors((0.2, 0.0, 0.0), timestamp=121.0))

        self.assertEqual(state, LapState.FINISHED)
        self.assertEqual(self.session.lap_durations, (59.0,))
        self.assertEqual(len(record.route), 5)

    def test_invalid_position_not_in_route(self):
        self.drive()
        self.session.handle_position(fix_at(70.0, north_m=50.0, speed=15.0, accuracy=-1.0))

        record = self.session.finish_session()

        self.assertEqual(len(record.route), 5)
        self.assertEqual(len(record.speed_data), 6)
        self.assertEqual(len(record.gps_speed_data), 5)

    def test_listeners_run_outside_session_lock(self):
        reads_completed = []

        def listener(snapshot):
            reader = threading.Thread(target=self.session.snapshot, daemon=True)
            reader.start()
            reader.join(timeout=1.0)
            reads_completed.append(not reader.is_alive())

        self.session.fusion.add_listener(listener)
        self.session.handle_position(fix_at(0.0, north_m=0.0, speed=15.0))
        self.session.handle_inertial(InertialFrame.from_vectors((0.1, 0.0, 0.0), timestamp=0.5))

        self.assertEqual(reads_completed, [True, True])

    def test_finish_without_laps(self):
        self.session.handle_position(fix_at(0.0, north_m=0.0, speed=15.0))
        self.assertEqual(self.session.state, LapState.TIMING)

        self.assertIsNone(self.session.finish_session())
        self.assertEqual(self.session.state, LapState.FINISHED)
        self.assertEqual(self.records, [])

    def test_invalid_position_is_not_a_crossing(self):
        self.session.handle_position(fix_at(0.0, north_m=0.0, speed=15.0, accuracy=-1.0))
        self.assertEqual(self.session.state, LapState.WAITING_FOR_FIRST_CROSS)

    def test_invalid_configuration(self):
        with self.assertRaises(ConfigurationError):
            LapSession(Track("No line", None))
        with self.assertRaises(ConfigurationError):
            LapSession(None)
        with self.assertRaises(ConfigurationError):
            LapSession(self.track, crossing_radius=0.0)
        with self.assertRaises(ConfigurationError):
            LapSession(self.track, min_lap_time=-1.0)


if __name__ == '__main__':
    unittest.main()
