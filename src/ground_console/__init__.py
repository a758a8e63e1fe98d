"""
Ground Control Console

Serial telemetry ingestion and launch sequencing for a mission ground
station, with a PyQt6 operator window.
"""

__version__ = "1.0.0"
