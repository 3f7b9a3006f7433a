"""
Indoor Positioning (IPOS) Core Package.

Fuses Wi-Fi RTT multilateration fixes with pedestrian dead-reckoning
displacements into a single smoothed 2D position on one building floor.

Package structure:
- proto: Value types exchanged between components (readings, fixes, steps)
- localization: Anchor registry, multilateration, Kalman filter, orchestration
- sensors: Step displacement source (PDR)
- metrics: Diagnostics, counters, histograms
- errors: Typed, recoverable error hierarchy
"""

__version__ = "0.1.0"
__author__ = "IPOS Team"
