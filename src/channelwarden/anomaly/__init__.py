"""
Behavioral anomaly detection.

- **anomaly_detector.py**: ``AnomalyDetector`` recording behavior events,
  scoring a subject's recent action stream against per-action-type frequency
  ceilings and triggering automatic temporary bans for high-severity patterns.
"""
