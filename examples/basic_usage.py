#!/usr/bin/env python3
"""
Basic usage example of the speed estimation system.

This example feeds simulated sensor streams through a drag session and a
lap session without any platform dependencies.
"""

import sys
import os
import numpy as np

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from speedfusion.config import Config
from speedfusion.logger import get_logger
from speedfusion.math.constants import GRAVITY_MS2
from speedfusion.math.utils import offset_coordinate
from speedfusion.sensors import InertialFrame, PositionFix, Coordinate
from speedfusion.sessions import Track, DragState

logger = get_logger("examples.basic_usage")

START_LAT = 37.7749
START_LON = -122.4194


def simulate_drag_run(duration=12.0, dt=0.02, accel=3.0, rng=None):
    """
    Simulate a standing start with constant acceleration.

    Args:
        duration: Simulation duration in seconds
        dt: Inertial frame interval in seconds
        accel: Longitudinal acceleration in m/s²
        rng: numpy Generator for sensor noise

    Yields:
        (frame, fix) tuples, fix is None between GPS updates
    """
    rng = rng or np.random.default_rng()
    launch_time = 1.0

    # Noise parameters
    accel_noise = 0.01   # g
    gyro_noise = 0.005   # rad/s
    speed_noise = 0.15   # m/s
    position_noise = 1.0 # m

    steps = int(duration / dt)
    for i in range(steps + 1):
        t = i * dt
        moving = max(0.0, t - launch_time)
        speed = accel * moving
        distance = 0.5 * accel * moving ** 2
        accel_g = accel / GRAVITY_MS2 if t >= launch_time else 0.0

        frame = InertialFrame.from_vectors(
            (accel_g + rng.normal(0, accel_noise), rng.normal(0, accel_noise), rng.normal(0, accel_noise)),
            rng.normal(0, gyro_noise, 3),
            timestamp=t
        )

        # GPS updates at 10 Hz
        fix = None
        if i % 5 == 0:
            lat, lon = offset_coordinate(START_LAT, START_LON,
                                         distance + rng.normal(0, position_noise), 0.0)
            fix = PositionFix(
                latitude=lat,
                longitude=lon,
                speed=max(0.0, speed + rng.normal(0, speed_noise)),
                horizontal_accuracy=4.0,
                timestamp=t
            )

        yield frame, fix


def simulate_laps(laps=3, radius=80.0, speed=20.0, rate_hz=1.0):
    """
    Simulate a car circling a round track at constant speed.

    Yields:
        PositionFix samples; the start/finish point is at angle zero
    """
    period = 2 * np.pi * radius / speed
    steps = int(laps * period * rate_hz) + 2
    for i in range(steps):
        t = i / rate_hz
        angle = speed / radius * t
        lat, lon = offset_coordinate(START_LAT, START_LON,
                                     radius * np.sin(angle), radius * (np.cos(angle) - 1))
        yield PositionFix(
            latitude=lat,
            longitude=lon,
            speed=speed,
            horizontal_accuracy=3.0,
            course=np.degrees(angle) % 360,
            timestamp=t
        )


def run_drag(config: Config):
    """Time a 0-60 mph run."""
    unit = config.speed_unit
    target = unit.to_mps(60.0) if unit.value == "mph" else unit.to_mps(100.0)

    session = config.create_drag_session(target_speed=target)
    print(f"Drag session armed, target {unit.convert(target):.0f} {unit.label}")

    last_print = -1.0
    for frame, fix in simulate_drag_run(rng=np.random.default_rng(42)):
        session.handle_inertial(frame)
        if fix is not None:
            state = session.handle_position(fix)
            if state is DragState.FINISHED:
                break

        if frame.timestamp - last_print >= 2.0:
            snapshot = session.snapshot()
            print(f"  t={frame.timestamp:5.2f}s  {snapshot.state.value:8s}  "
                  f"speed {unit.convert(snapshot.speed):5.1f} {unit.label}  "
                  f"distance {snapshot.distance:6.1f} m")
            last_print = frame.timestamp

    metrics = session.manual_stop()
    if metrics is None:
        print("Run never started")
        return

    print("\n=== Drag Result ===")
    for name, value in metrics.as_dict(unit).items():
        print(f"  {name}: {value:.2f}")
    print(f"Estimator: {session.fusion.get_statistics()['estimator']}")


def run_laps(config: Config):
    """Time three laps around a round track."""
    track = Track("Oval", Coordinate(START_LAT, START_LON))

    def on_finish(record):
        logger.info("Lap record ready: %d laps", record.total_laps)

    session = config.create_lap_session(track, on_finish=on_finish)
    for fix in simulate_laps():
        session.handle_position(fix)

    record = session.finish_session()
    if record is None:
        print("No lap completed")
        return

    print("\n=== Lap Result ===")
    for i, duration in enumerate(record.lap_durations, 1):
        print(f"  Lap {i}: {duration:6.2f} s")
    print(f"  Best: {record.best_lap:.2f} s  Average: {record.average_lap:.2f} s")
    print(f"  Predicted next lap: {record.predicted_next_lap:.2f} s")


def main():
    """Main example function."""
    print("Speed Fusion - Basic Usage Example")
    print("=" * 50)

    config = Config(sys.argv[1] if len(sys.argv) > 1 else None)
    config.setup_logging()

    run_drag(config)
    run_laps(config)

    print("\nSimulation completed!")


if __name__ == "__main__":
    main()
