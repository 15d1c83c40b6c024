# BioPheno GUI Components
"""
Reusable GUI components for BioPheno.

Components:
- ImageCanvas: Photo viewer with shape overlays, built on PyQtGraph
- CanvasInterface: Toolbar, canvas and side panel page layout
- StatusBar: Cursor coordinates and zoom level
"""
