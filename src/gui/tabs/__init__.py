# BioPheno Tab Modules
"""
Tab modules for the BioPheno window.

Tabs:
- AnalysisTab: Gallery, shape editing, calibration, statistics and reports
- SettingsTab: Theme, language, analysis defaults and service credentials
"""
