from PySide6.QtWidgets import QWidget, QLabel, QFileDialog
from PySide6.QtCore import Qt
from qfluentwidgets import (
    ScrollArea,
    SettingCardGroup,
    PushSettingCard,
    OptionsSettingCard,
    RangeSettingCard,
    SettingCard,
    LineEdit,
    PasswordLineEdit,
    DoubleSpinBox,
    ExpandLayout,
    InfoBar,
    InfoBarPosition,
    setTheme,
)
from qfluentwidgets import FluentIcon as FIF

from src.gui.config import apply_qss, cfg, Language, tr, translator


class LineEditSettingCard(SettingCard):
    """Setting card bound to a free-text config item."""

    def __init__(self, config_item, icon, title, content=None, password=False, parent=None):
        super().__init__(icon, title, content, parent)
        self.configItem = config_item
        self.lineEdit = PasswordLineEdit(self) if password else LineEdit(self)
        self.lineEdit.setFixedWidth(260)
        self.lineEdit.setText(str(cfg.get(config_item)))
        self.lineEdit.editingFinished.connect(self._on_edited)
        self.hBoxLayout.addWidget(self.lineEdit, 0, Qt.AlignmentFlag.AlignRight)
        self.hBoxLayout.addSpacing(16)

    def _on_edited(self):
        cfg.set(self.configItem, self.lineEdit.text().strip())


class DoubleSettingCard(SettingCard):
    """Setting card bound to a float config item."""

    def __init__(self, config_item, icon, title, content=None, minimum=0.0, maximum=1e6, parent=None):
        super().__init__(icon, title, content, parent)
        self.configItem = config_item
        self.spinBox = DoubleSpinBox(self)
        self.spinBox.setRange(minimum, maximum)
        self.spinBox.setDecimals(2)
        self.spinBox.setValue(float(cfg.get(config_item)))
        self.spinBox.valueChanged.connect(lambda value: cfg.set(self.configItem, float(value)))
        self.hBoxLayout.addWidget(self.spinBox, 0, Qt.AlignmentFlag.AlignRight)
        self.hBoxLayout.addSpacing(16)


class SettingsTab(ScrollArea):
    """
    Settings Interface.
    """

    def __init__(self, parent=None):
        super().__init__(parent)

        self.scrollWidget = QWidget()
        self.expandLayout = ExpandLayout(self.scrollWidget)

        self.setWidget(self.scrollWidget)
        self.setWidgetResizable(True)
        self.setObjectName("settingsInterface")

        self._init_ui()
        self._load_settings()
        self._connect_signals()

    def _init_ui(self):
        """Initialize UI controls."""
        self.setViewportMargins(0, 80, 0, 20)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)

        # --- Settings Header ---
        self.settingLabel = QLabel(tr("nav.settings"), self)
        self.settingLabel.setObjectName("settingLabel")
        self.settingLabel.move(36, 30)

        # --- General Group ---
        self.generalGroup = SettingCardGroup(
            tr("settings.group.general"), self.scrollWidget
        )

        self.themeCard = OptionsSettingCard(
            cfg.themeMode,
            FIF.BRUSH,
            tr("settings.label.theme"),
            tr("settings.desc.theme"),
            texts=[
                tr("settings.theme.light"),
                tr("settings.theme.dark"),
                tr("settings.theme.auto"),
            ],
            parent=self.generalGroup,
        )

        self.languageCard = OptionsSettingCard(
            cfg.language,
            FIF.LANGUAGE,
            tr("settings.label.language"),
            tr("settings.desc.language"),
            texts=[
                tr("settings.lang.auto"),
                tr("settings.lang.en"),
                tr("settings.lang.ja"),
            ],
            parent=self.generalGroup,
        )

        self.generalGroup.addSettingCard(self.themeCard)
        self.generalGroup.addSettingCard(self.languageCard)

        # --- Analysis Group ---
        self.analysisGroup = SettingCardGroup(
            tr("settings.group.analysis"), self.scrollWidget
        )

        self.thresholdCard = RangeSettingCard(
            cfg.threshold,
            FIF.FILTER,
            tr("settings.label.threshold"),
            tr("settings.desc.threshold"),
            parent=self.analysisGroup,
        )

        self.markerSizeCard = DoubleSettingCard(
            cfg.markerSize,
            FIF.ZOOM,
            tr("settings.label.marker_size"),
            tr("settings.desc.marker_size"),
            parent=self.analysisGroup,
        )

        self.analysisGroup.addSettingCard(self.thresholdCard)
        self.analysisGroup.addSettingCard(self.markerSizeCard)

        # --- Gemini Group ---
        self.geminiGroup = SettingCardGroup(
            tr("settings.group.gemini"), self.scrollWidget
        )

        self.apiKeyCard = LineEditSettingCard(
            cfg.geminiApiKey,
            FIF.FINGERPRINT,
            tr("settings.label.api_key"),
            tr("settings.desc.api_key"),
            password=True,
            parent=self.geminiGroup,
        )
        self.markerModelCard = LineEditSettingCard(
            cfg.markerModel,
            FIF.CAMERA,
            tr("settings.label.marker_model"),
            parent=self.geminiGroup,
        )
        self.reportModelCard = LineEditSettingCard(
            cfg.reportModel,
            FIF.DOCUMENT,
            tr("settings.label.report_model"),
            parent=self.geminiGroup,
        )

        self.geminiGroup.addSettingCard(self.apiKeyCard)
        self.geminiGroup.addSettingCard(self.markerModelCard)
        self.geminiGroup.addSettingCard(self.reportModelCard)

        # --- Export Group ---
        self.exportGroup = SettingCardGroup(
            tr("settings.group.export"), self.scrollWidget
        )

        self.exportDirCard = PushSettingCard(
            tr("settings.btn.browse"),
            FIF.FOLDER,
            tr("settings.label.export_dir"),
            cfg.exportDir.value,
            self.exportGroup,
        )
        self.githubOwnerCard = LineEditSettingCard(
            cfg.githubOwner, FIF.GITHUB, tr("settings.label.github_owner"), parent=self.exportGroup
        )
        self.githubRepoCard = LineEditSettingCard(
            cfg.githubRepo, FIF.GITHUB, tr("settings.label.github_repo"), parent=self.exportGroup
        )
        self.githubPathCard = LineEditSettingCard(
            cfg.githubPath, FIF.FOLDER, tr("settings.label.github_path"), parent=self.exportGroup
        )
        self.githubTokenCard = LineEditSettingCard(
            cfg.githubToken,
            FIF.FINGERPRINT,
            tr("settings.label.github_token"),
            password=True,
            parent=self.exportGroup,
        )

        for card in (
            self.exportDirCard,
            self.githubOwnerCard,
            self.githubRepoCard,
            self.githubPathCard,
            self.githubTokenCard,
        ):
            self.exportGroup.addSettingCard(card)

        # --- Add Groups to Layout ---
        self.expandLayout.setSpacing(28)
        self.expandLayout.setContentsMargins(36, 10, 36, 0)
        self.expandLayout.addWidget(self.generalGroup)
        self.expandLayout.addWidget(self.analysisGroup)
        self.expandLayout.addWidget(self.geminiGroup)
        self.expandLayout.addWidget(self.exportGroup)

        self.scrollWidget.setObjectName("scrollWidget")
        self.setQss()

    def _load_settings(self):
        """Sync cards that are not bound to QConfig automatically."""
        if not cfg.exportDir.value:
            self.exportDirCard.setContent(tr("settings.placeholder.no_dir"))
        else:
            self.exportDirCard.setContent(cfg.exportDir.value)

    def _connect_signals(self):
        """Connect signals."""
        self.exportDirCard.clicked.connect(self._browse_export_dir)
        cfg.themeChanged.connect(self.setQss)
        cfg.themeChanged.connect(setTheme)
        cfg.language.valueChanged.connect(self.setLanguage)

    def _browse_export_dir(self):
        """Open file dialog to select the local export directory."""
        directory = QFileDialog.getExistingDirectory(
            self,
            tr("settings.btn.browse"),
            cfg.exportDir.value or "",
        )
        if directory:
            self.exportDirCard.setContent(directory)
            cfg.set(cfg.exportDir, directory)

    def _on_restart_needed(self):
        """Show restart warning."""
        InfoBar.warning(
            title=tr("settings.msg.restart_title"),
            content=tr("settings.msg.restart"),
            orient=Qt.Orientation.Horizontal,
            isClosable=True,
            position=InfoBarPosition.TOP_RIGHT,
            duration=5000,
            parent=self,
        )

    def setQss(self):
        apply_qss(self, "setting_interface.qss")

    def setLanguage(self, language: Language):
        """Set language."""
        translator.set_language(language)
        self._on_restart_needed()
