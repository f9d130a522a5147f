"""
Temporal transfer function.

Modules
-------
transfer     Φ(hours, classification, mode), linear pro-rata scale, profiles.
calibration  Offline comparison of Φ with realised completed-cycle ratios.
"""
