"""Centralized constants, thresholds, and column aliases for the fusion core."""
from __future__ import annotations

# Time-base detection envelope
TIME_SCAN_ROWS = 200
TIME_SCALE_EXPONENTS = tuple(range(9, -4, -1))   # scale = 10**-e, e from 9 down to -3
TIME_DT_MIN_S = 0.0005
TIME_DT_MAX_S = 2.0
TIME_RATE_MIN_HZ = 1.0
TIME_RATE_MAX_HZ = 500.0
TIME_FALLBACK_DT_S = 0.01   # assume 100 Hz when no scale fits

DEFAULT_SAMPLE_RATE_HZ = 100.0

# Fusion preprocessing
ACC_HIGHPASS_HZ = 0.5
GYRO_DEG_THRESHOLD = 10.0   # |gx|+|gy|+|gz| of the first sample
INIT_WINDOW_S = 0.1         # window used to seed the filter from gravity/north
DEFAULT_BETA = 0.1
ALGORITHMS = ("madgwick", "mahony", "complementary")
FILTER_INITS = ("first_sample", "identity")

# Display filtering
DISPLAY_SMOOTH_WINDOW = 5
DISPLAY_LOWPASS_HZ = 10.0
DISPLAY_HIGHPASS_HZ = 0.5
MAGNITUDE_EWMA_ALPHA = 0.3
MAX_PLOT_POINTS = 5000

# CSV column aliases (already sanitized: lowercase, separators collapsed to "_")
TIME_CANDS = ["time", "t", "timestamp", "timesec", "times", "sec", "seconds"]
ACC = {
    "x": ["acc_x", "accel_x", "ax", "accelerometer_x", "accx"],
    "y": ["acc_y", "accel_y", "ay", "accelerometer_y", "accy"],
    "z": ["acc_z", "accel_z", "az", "accelerometer_z", "accz"],
}
GYR = {
    "x": ["gyro_x", "gx", "gyroscope_x", "gyrox", "gyr_x"],
    "y": ["gyro_y", "gy", "gyroscope_y", "gyroy", "gyr_y"],
    "z": ["gyro_z", "gz", "gyroscope_z", "gyroz", "gyr_z"],
}
MAG = {
    "x": ["mag_x", "mx", "magnetometer_x", "magx"],
    "y": ["mag_y", "my", "magnetometer_y", "magy"],
    "z": ["mag_z", "mz", "magnetometer_z", "magz"],
}
# sensor -> axis -> ordered candidates; first match wins
AXIS_CANDIDATES = {
    "acc": ACC,
    "gyro": GYR,
    "mag": MAG,
}

# Joint roles for the arm-angle analysis (proximal to distal)
JOINT_ROLES = ("shoulder", "elbow", "wrist")
