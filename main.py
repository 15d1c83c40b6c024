#!/usr/bin/env python
"""
BioPheno - plant tray photo analysis GUI.

Main entry point for the application.

Usage
-----
    uv run python main.py

or:
    python main.py
"""

import sys


def main() -> int:
    """
    Main entry point for the BioPheno application.

    Returns
    -------
    int
        Exit code (0 for success, non-zero for error).
    """
    from loguru import logger
    from PySide6.QtWidgets import QApplication
    import pyqtgraph as pg

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
               "<level>{message}</level>",
        level="DEBUG"
    )

    logger.info("Starting BioPheno...")

    # Configure PyQtGraph
    pg.setConfigOptions(
        imageAxisOrder='row-major',
        antialias=True,
    )

    from src import __version__

    # Create application
    app = QApplication(sys.argv)
    app.setApplicationName("BioPheno")
    app.setApplicationVersion(__version__)

    app.setStyle("Fusion")

    # Import and create main window
    from src.gui.main_window import MainWindow

    window = MainWindow()
    window.show()

    logger.info("Application started successfully")

    exit_code = app.exec()

    logger.info(f"Application exited with code: {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
