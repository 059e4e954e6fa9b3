"""
Physical constants and conversion factors for speed estimation.
"""

import math

# Earth parameters
EARTH_RADIUS_M = 6371000.0  # Earth radius in meters
GRAVITY_MS2 = 9.80665       # Standard gravity in m/s²

# Conversion factors
DEG_TO_RAD = math.pi / 180.0
RAD_TO_DEG = 180.0 / math.pi
MPS_TO_MPH = 2.23694
MPS_TO_KMH = 3.6

# Sensor rates
GPS_UPDATE_RATE_HZ = 1.0    # Typical Doppler fix rate
IMU_UPDATE_RATE_HZ = 50.0   # Device-motion frame rate

# Event timing
LAUNCH_SPEED_MPS = 0.44704      # 1 mph
CROSSING_RADIUS_M = 10.0        # Start/finish detection radius
MIN_LAP_TIME_S = 5.0            # Re-trigger guard at the line
