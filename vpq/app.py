# vpq/app.py
import sys

from PySide6.QtWidgets import QApplication

from .utils.logging_setup import setup_logging
from .utils.settings import load_settings
from .main_window import MainWindow


def main() -> int:
    app = QApplication(sys.argv)
    app.setApplicationName("vpq")
    settings = load_settings()
    setup_logging(settings["data_dir"], settings.get("log_level", "INFO"))
    win = MainWindow(settings)
    win.show()
    # After the window exists so recovery messages reach the console
    win.load_queue()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
