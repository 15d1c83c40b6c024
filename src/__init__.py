# BioPheno - Source Package
"""
BioPheno: plant tray photo analysis GUI application.

This package provides a PySide6-based GUI for:
- Vegetation segmentation with the excess-green index
- Gray/white/black reference color calibration
- ROI group statistics (NGRDI, mACI, GI, anthocyanin estimate)
- Marker-based tray leveling and narrative reports
"""

__version__ = "0.1.0"
