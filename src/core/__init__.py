# BioPheno Core Module
"""
Core business logic module for BioPheno.

Contains:
- Shape geometry and hit-testing
- Reference color calibration
- Vegetation classification and color indices
- ROI group aggregation and regression
- Display buffer rendering
- The full analysis pipeline and session state
- The Qt-free shape editor
"""
