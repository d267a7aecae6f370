"""
Meter Reader - Source Package

Tracks utility-meter readings captured from a photo or typed in by hand,
and reports how much each meter consumed in the current billing period.

DESIGN PRINCIPLES:
1. OCR suggests → Human confirms → System saves
2. Readings are an append-only log
3. Consumption is always derived, never stored
4. Every mutation is persisted and audited
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Meter Reader Team"
