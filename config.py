"""
Indoor positioning host configuration.
"""

# Fusion filter configuration
FUSION_CONFIG = {
    "dt_s": 0.05,               # Nominal prediction step (~20 Hz)
    "position_q": 0.05,         # Position process noise per step
    "velocity_q": 0.5,          # Velocity process noise per step
    "initial_variance": 100.0,  # Prior variance (10 m std dev)
}

# Multilateration / RTT fix configuration
RANGING_CONFIG = {
    "min_anchors": 3,           # Minimum anchors with known coordinates
    "default_std_dev_m": 1.3,   # Used when readings carry no std dev
    "sigma_scale": 1.5,         # Inflation of the mean range std dev
    "min_sigma_m": 1.0,         # Fix sigma clamp (lower)
    "max_sigma_m": 6.0,         # Fix sigma clamp (upper)
}

# Pedestrian dead reckoning
PDR_CONFIG = {
    "step_length_m": 0.7,       # Average step length, calibrate per user
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Synthetic walk used by main.py
SIMULATION_CONFIG = {
    "anchors": {
        "7c:8b:ca:12:34:56": {"x": 0.0, "y": 0.0},
        "7c:8b:ca:12:34:57": {"x": 10.0, "y": 0.0},
        "7c:8b:ca:12:34:58": {"x": 5.0, "y": 8.0},
        "7c:8b:ca:12:34:59": {"x": 0.0, "y": 8.0},
    },
    "start": (2.0, 2.0),        # True start position (m)
    "leg_steps": 8,             # Steps per side of the rectangular walk
    "steps": 64,                # Total steps
    "ranging_every": 4,         # Ranging cycle every N steps
    "range_noise_m": 0.3,       # Range noise std dev (m)
    "heading_noise_rad": 0.05,  # Heading noise std dev (rad)
    "seed": 7,
    "print_interval": 4,        # Print every N published fixes
}
