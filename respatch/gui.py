import logging
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QIntValidator
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from respatch import __version__
from respatch.config import AppSection, Config, load_config
from respatch.errors import ConfigError, PatchError, ReadFailure
from respatch.files import has_backup, is_installed, patch_app, restore_app
from respatch.settings import (
    Settings,
    default_settings_path,
    load_settings,
    save_settings,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = "patches.ini"


class MainWindow(QMainWindow):
    def __init__(self) -> None:
        """Initialize the main window, restore settings and load the default config.

        The configuration is taken from the saved settings if it still exists,
        otherwise from patches.ini in the current directory.
        """
        super().__init__()

        self.config: Optional[Config] = None
        self.settings_file = default_settings_path()
        self.settings = Settings()

        self.setWindowTitle(f"Resolution Patcher v{__version__}")
        self.setMinimumSize(800, 600)

        self.init_ui()
        self.load_settings()
        self.load_defaults()

    def load_settings(self) -> None:
        """Restore game directory and resolution from the settings file."""
        self.settings = load_settings(self.settings_file)
        if self.settings.game_dir:
            self.game_dir_txt.setText(self.settings.game_dir)
        if self.settings.width is not None:
            self.width_txt.setText(str(self.settings.width))
        if self.settings.height is not None:
            self.height_txt.setText(str(self.settings.height))

    def save_settings(self, notify: bool = False) -> None:
        """Store the current window state in the settings file.

        Failures are logged; with notify set they are also shown in a dialog.
        """
        app = self.selected_app()
        self.settings = Settings(
            game_dir=self.game_dir_txt.text().strip() or None,
            config_path=self.settings.config_path,
            selected_app=app.name if app else self.settings.selected_app,
            width=self.resolution_value(self.width_txt),
            height=self.resolution_value(self.height_txt),
        )
        if not save_settings(self.settings_file, self.settings) and notify:
            QMessageBox.warning(self, "Warning", "Failed to save settings")

    def load_defaults(self) -> None:
        """Load the saved configuration, or patches.ini when present."""
        if self.settings.config_path and Path(self.settings.config_path).exists():
            self.load_config_file(self.settings.config_path)
        elif Path(DEFAULT_CONFIG).exists():
            self.load_config_file(DEFAULT_CONFIG)

    def resolution_value(self, field: QLineEdit) -> Optional[int]:
        text = field.text().strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            return None

    def selected_app(self) -> Optional[AppSection]:
        if self.config is None:
            return None
        name = self.app_cbox.currentData()
        if name is None:
            return None
        try:
            return self.config.get_app(name)
        except KeyError:
            return None

    def select_game_dir(self) -> None:
        """Pick the directory holding the application's files."""
        selected_path = QFileDialog.getExistingDirectory(
            self, "Select game directory", self.game_dir_txt.text()
        )
        if selected_path:
            self.game_dir_txt.setText(selected_path)
            self.save_settings(notify=True)

    def select_config(self) -> None:
        """Pick and load a configuration file."""
        selected_file, _ = QFileDialog.getOpenFileName(
            self,
            "Load config file",
            filter="Config file (*.ini);;All Files (*)",
        )
        if selected_file:
            self.load_config_file(selected_file)

    def load_config_file(self, path: str) -> None:
        """Load a configuration and list its applications.

        Args:
            path: Path to the configuration file

        Note:
            Shows the error in place of the details if the file cannot be
            read or is not a valid configuration.
        """
        try:
            config = load_config(path)
        except (ReadFailure, ConfigError) as e:
            logger.error("Failed to load config %s: %s", path, e)
            self.config = None
            self.app_cbox.blockSignals(True)
            self.app_cbox.clear()
            self.app_cbox.blockSignals(False)
            self.details_lbl.setText(f"Failed to load config: {e}")
            self.details_lbl.setStyleSheet("color: red;")
            self.update_patch_button_state()
            return

        self.config = config
        self.settings.config_path = str(Path(path).resolve())

        # Block signals while populating to avoid triggering app_changed
        self.app_cbox.blockSignals(True)
        self.app_cbox.clear()
        for app in config.apps:
            self.app_cbox.addItem(app.name, app.name)

        restored_index = 0
        if self.settings.selected_app:
            index = self.app_cbox.findData(self.settings.selected_app)
            if index != -1:
                restored_index = index
        self.app_cbox.setCurrentIndex(restored_index if config.apps else -1)
        self.app_cbox.blockSignals(False)

        self.app_changed(self.app_cbox.currentIndex())

    def app_changed(self, index: int) -> None:
        """Show the details of the selected application."""
        app = self.selected_app() if index != -1 else None
        self.details_lbl.setStyleSheet("")
        if app is None:
            self.details_lbl.setText("")
        else:
            self.details_lbl.setText(app.details)
        self.update_patch_button_state()
        if app is not None:
            self.save_settings()

    def update_patch_button_state(self) -> None:
        """Enable patching only when the checkfile is present and a resolution is set.

        Restoring requires the checkfile and an existing backup.
        """
        app = self.selected_app()
        game_dir = self.game_dir_txt.text().strip()

        if app is None:
            self.patch_btn.setText("Patch")
            self.patch_btn.setEnabled(False)
            self.restore_btn.setEnabled(False)
            return

        self.patch_btn.setText(f"Patch {app.checkfile}")
        installed = bool(game_dir) and is_installed(app, game_dir)
        has_resolution = (
            self.resolution_value(self.width_txt) is not None
            and self.resolution_value(self.height_txt) is not None
        )
        self.patch_btn.setEnabled(installed and has_resolution)
        self.restore_btn.setEnabled(installed and has_backup(app, game_dir))

    def apply_patches(self) -> None:
        """Apply the selected application's patch chain.

        Shows a success message with the modified files, or the reason the
        chain could not be applied.
        """
        app = self.selected_app()
        width = self.resolution_value(self.width_txt)
        height = self.resolution_value(self.height_txt)
        game_dir = self.game_dir_txt.text().strip()
        if app is None or width is None or height is None or not game_dir:
            return

        self.save_settings(notify=True)

        try:
            written = patch_app(app, game_dir, width, height)
        except PatchError as e:
            QMessageBox.critical(self, "Error", f"Patch failed to apply: {e}")
            return
        except ReadFailure as e:
            QMessageBox.critical(self, "Error", f"Failed to access files: {e}")
            return
        except ValueError as e:
            QMessageBox.critical(self, "Error", f"Invalid resolution: {e}")
            return

        QMessageBox.information(
            self,
            "Success",
            "Patch applied successfully to:\n" + "\n".join(str(p) for p in written),
        )
        self.update_patch_button_state()

    def restore_patches(self) -> None:
        """Restore the selected application's files from their backups."""
        app = self.selected_app()
        game_dir = self.game_dir_txt.text().strip()
        if app is None or not game_dir:
            return

        try:
            restored = restore_app(app, game_dir)
        except ReadFailure as e:
            QMessageBox.critical(self, "Error", f"Failed to restore backup: {e}")
            return

        if restored:
            QMessageBox.information(
                self,
                "Success",
                "Restored:\n" + "\n".join(str(p) for p in restored),
            )
        else:
            QMessageBox.warning(self, "Warning", "No backup found for reversing the patch!")

    def init_ui(self) -> None:
        """Initialize the user interface.

        Creates and arranges all UI components:
        - Config bar: Game directory field with picker and config loader
        - App group: Application selector and scrollable details
        - Resolution row: Width and height inputs
        - Patch and restore buttons

        Sets up layouts and connects signals to handlers.
        """
        central_widget = QWidget()
        self.setCentralWidget(central_widget)

        main_layout = QVBoxLayout(central_widget)

        # -----------------------------------------
        config_layout = QHBoxLayout()

        self.game_dir_txt = QLineEdit()
        self.game_dir_txt.setPlaceholderText("Game file directory")
        self.game_dir_txt.textChanged.connect(self.update_patch_button_state)

        select_game_dir_btn = QPushButton("...")
        select_game_dir_btn.clicked.connect(self.select_game_dir)

        load_config_btn = QPushButton("Load config")
        load_config_btn.clicked.connect(self.select_config)

        config_layout.addWidget(self.game_dir_txt)
        config_layout.addWidget(select_game_dir_btn)
        config_layout.addWidget(load_config_btn)
        # -----------------------------------------
        app_group = QGroupBox("Application")
        app_layout = QVBoxLayout()

        self.app_cbox = QComboBox()
        self.app_cbox.currentIndexChanged.connect(self.app_changed)

        details_scroll = QScrollArea()
        details_scroll.setWidgetResizable(True)
        self.details_lbl = QLabel()
        self.details_lbl.setWordWrap(True)
        self.details_lbl.setAlignment(
            Qt.AlignmentFlag.AlignTop | Qt.AlignmentFlag.AlignLeft
        )
        details_scroll.setWidget(self.details_lbl)

        app_layout.addWidget(self.app_cbox)
        app_layout.addWidget(details_scroll)
        app_group.setLayout(app_layout)
        # -----------------------------------------
        resolution_layout = QHBoxLayout()

        self.width_txt = QLineEdit()
        self.width_txt.setPlaceholderText("Width...")
        self.width_txt.setValidator(QIntValidator(0, 0xFFFF, self))
        self.width_txt.textChanged.connect(self.update_patch_button_state)

        self.height_txt = QLineEdit()
        self.height_txt.setPlaceholderText("Height...")
        self.height_txt.setValidator(QIntValidator(0, 0xFFFF, self))
        self.height_txt.textChanged.connect(self.update_patch_button_state)

        resolution_layout.addWidget(QLabel("Width:"))
        resolution_layout.addWidget(self.width_txt)
        resolution_layout.addStretch()
        resolution_layout.addWidget(QLabel("Height:"))
        resolution_layout.addWidget(self.height_txt)
        # -----------------------------------------
        buttons_layout = QHBoxLayout()

        self.patch_btn = QPushButton("Patch")
        self.patch_btn.clicked.connect(self.apply_patches)
        self.patch_btn.setEnabled(False)

        self.restore_btn = QPushButton("Restore")
        self.restore_btn.clicked.connect(self.restore_patches)
        self.restore_btn.setEnabled(False)

        buttons_layout.addWidget(self.patch_btn, 1)
        buttons_layout.addWidget(self.restore_btn)

        main_layout.addLayout(config_layout)
        main_layout.addWidget(app_group)
        main_layout.addLayout(resolution_layout)
        main_layout.addLayout(buttons_layout)


def configure_logging(level: int = logging.INFO) -> None:
    """Set up console logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s: %(message)s",
    )


def main() -> None:
    """Main entry point for the application.

    Creates the QApplication, sets the Fusion style, creates and shows
    the main window, then starts the event loop.
    """
    configure_logging()
    app = QApplication(sys.argv)
    app.setStyle("Fusion")
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
