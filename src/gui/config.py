from enum import Enum
from PySide6.QtCore import QLocale, QObject
from qfluentwidgets import (
    QConfig,
    qconfig,
    ConfigItem,
    FolderValidator,
    OptionsConfigItem,
    OptionsValidator,
    RangeConfigItem,
    RangeValidator,
    EnumSerializer,
    Theme
)

import darkdetect
from loguru import logger
from pathlib import Path
from typing import Dict
import json

from src.core.aggregation import RegressionParams, TargetIndex
from src.core.classification import DEFAULT_THRESHOLD
from src.utils.export import DEFAULT_REMOTE_PATH, GitHubTarget
from src.utils.marker import DEFAULT_MARKER_MODEL
from src.utils.report import DEFAULT_REPORT_MODEL

class Language(Enum):
    """Language enumeration."""
    AUTO = "Auto"
    ENGLISH = "en_US"
    JAPANESE = "ja_JP"

class Config(QConfig):
    """
    Configuration for the application.
    """

    # Theme Mode: Light, Dark, Auto
    themeMode = OptionsConfigItem(
        "General", "ThemeMode", Theme.AUTO, OptionsValidator(Theme), EnumSerializer(Theme), restart=False
    )

    # Language: Auto, English, Japanese
    language = OptionsConfigItem(
        "General", "Language", Language.AUTO, OptionsValidator(Language), EnumSerializer(Language), restart=True
    )

    # Segmentation
    threshold = RangeConfigItem(
        "Analysis", "Threshold", int(DEFAULT_THRESHOLD), RangeValidator(0, 100)
    )

    # Regression model for the anthocyanin estimate
    regressionSlope = ConfigItem("Regression", "Slope", 1.5)
    regressionIntercept = ConfigItem("Regression", "Intercept", 0.2)
    regressionTarget = OptionsConfigItem(
        "Regression", "Target", TargetIndex.MACI, OptionsValidator(TargetIndex), EnumSerializer(TargetIndex)
    )

    # Physical edge length of the printed marker, 0 disables area output
    markerSize = ConfigItem("Marker", "Size", 0.0)

    # Vision / narrative service
    geminiApiKey = ConfigItem("Gemini", "ApiKey", "")
    markerModel = ConfigItem("Gemini", "MarkerModel", DEFAULT_MARKER_MODEL)
    reportModel = ConfigItem("Gemini", "ReportModel", DEFAULT_REPORT_MODEL)

    # Archival export
    exportDir = ConfigItem("Export", "Folder", "", FolderValidator())
    githubOwner = ConfigItem("GitHub", "Owner", "")
    githubRepo = ConfigItem("GitHub", "Repo", "")
    githubToken = ConfigItem("GitHub", "Token", "")
    githubPath = ConfigItem("GitHub", "Path", DEFAULT_REMOTE_PATH)


def regression_from_config(config: Config) -> RegressionParams:
    """Build regression parameters from persisted settings."""
    return RegressionParams(
        slope=float(config.get(config.regressionSlope)),
        intercept=float(config.get(config.regressionIntercept)),
        target_index=config.get(config.regressionTarget),
    )


def github_target_from_config(config: Config) -> GitHubTarget:
    """Build the upload destination from persisted settings."""
    return GitHubTarget(
        owner=config.get(config.githubOwner),
        repo=config.get(config.githubRepo),
        token=config.get(config.githubToken),
        path=config.get(config.githubPath) or DEFAULT_REMOTE_PATH,
    )


class Translator(QObject):
    """
    Manages application translations.
    """

    def __init__(self):
        super().__init__()
        logger.debug(f"Requested language from config: {cfg.get(cfg.language)}")
        self._current_language = self.get_language(cfg.get(cfg.language))
        logger.info(f"Current language from config: {self._current_language}")
        self._translations: Dict[Language, Dict[str, str]] = {}
        self._load_translations()

    def _load_translations(self):
        """Load all translation files from locales directory."""
        locales_dir = Path(__file__).parent / "resource" / "i18n"
        if not locales_dir.exists():
            logger.error(f"Locales directory not found: {locales_dir}")
            return

        for file_path in locales_dir.glob("*.json"):
            try:
                lang = Language(file_path.stem)
                with open(file_path, "r", encoding="utf-8") as f:
                    self._translations[lang] = json.load(f)
                logger.debug(f"Loaded translations for: {lang.name}")
            except (ValueError, OSError) as e:
                logger.error(f"Failed to load translation {file_path}: {e}")

    def get_language(self, language: Language) -> Language:
        """Resolve ``AUTO`` against the system locale."""
        if language == Language.AUTO:
            locale = QLocale.system().name()  # e.g., en_US, ja_JP
            if locale.startswith("ja"):
                return Language.JAPANESE
            return Language.ENGLISH
        return language

    def set_language(self, language: Language) -> None:
        """Switch the active language; texts built afterwards use it."""
        language = self.get_language(language)
        if language == self._current_language:
            return
        self._current_language = language
        logger.info(f"Language switched to: {language}")

    def tr(self, key: str) -> str:
        """
        Get translated string for the given key.

        If translation is missing for current language, falls back to English,
        then to the key itself.
        """
        result = self._translations.get(self._current_language, {}).get(key)
        if result is not None:
            return result

        if self._current_language != Language.ENGLISH:
            result = self._translations.get(Language.ENGLISH, {}).get(key)
            if result is not None:
                return result

        return key


cfg = Config()
qconfig.load('config.json', cfg)

# Global instance
translator = Translator()

def tr(key: str) -> str:
    """Helper function to translate a key using the global translator."""
    return translator.tr(key)


QSS_DIR = Path(__file__).parent / "resource" / "qss"


def theme_name() -> str:
    """Effective ``light``/``dark`` name, resolving the automatic theme."""
    theme = cfg.themeMode.value
    if theme == Theme.AUTO:
        return "dark" if darkdetect.isDark() else "light"
    return theme.value.lower()


def apply_qss(widget, filename: str) -> None:
    """Load ``resource/qss/<theme>/<filename>`` onto ``widget`` if present."""
    qss_path = QSS_DIR / theme_name() / filename
    if qss_path.exists():
        widget.setStyleSheet(qss_path.read_text(encoding="utf-8"))
