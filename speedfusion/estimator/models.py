"""
Motion and measurement models for the speed estimator.
"""

import numpy as np


class MotionModel:
    """
    Forward-speed model driven by debounced acceleration.

    State: [speed, accel_bias]
    """

    @staticmethod
    def predict_state(state: np.ndarray, dt: float, control_accel: float = 0.0,
                      control_active: bool = False) -> np.ndarray:
        """
        Predict next state using motion model.

        Args:
            state: Current state [speed, accel_bias]
            dt: Time step in seconds
            control_accel: Control acceleration in m/s²
            control_active: Whether the control input qualified this tick

        Returns:
            Predicted state vector
        """
        speed, bias = state

        # The bias only corrupts ticks where acceleration is integrated
        if control_active:
            speed = speed + (control_accel - bias) * dt

        return np.array([speed, bias])

    @staticmethod
    def jacobian_F(dt: float, control_active: bool = False) -> np.ndarray:
        """
        Compute Jacobian of motion model with respect to state.

        Returns:
            2x2 Jacobian matrix F
        """
        F = np.eye(2)
        if control_active:
            F[0, 1] = -dt  # dspeed/dbias
        return F

    @staticmethod
    def process_noise_matrix(process_noise_variance: float,
                             bias_process_variance: float, dt: float) -> np.ndarray:
        """
        Compute process noise covariance matrix.

        Returns:
            2x2 process noise covariance matrix Q
        """
        return np.diag([
            process_noise_variance * dt**2,  # speed noise
            bias_process_variance * dt       # bias random walk
        ])


class MeasurementModel:
    """
    GPS Doppler measurement model, z = speed + noise.
    """

    @staticmethod
    def gps_measurement(state: np.ndarray) -> np.ndarray:
        """Expected GPS measurement [speed]."""
        return np.array([state[0]])

    @staticmethod
    def gps_jacobian_H() -> np.ndarray:
        """1x2 Jacobian matrix H for GPS speed."""
        return np.array([[1.0, 0.0]])

    @staticmethod
    def measurement_noise_matrix(gps_measurement_variance: float) -> np.ndarray:
        """1x1 measurement noise covariance matrix R."""
        return np.array([[gps_measurement_variance]])
