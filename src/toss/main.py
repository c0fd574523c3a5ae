import sys
import os
import time

import logging
import argparse
import traceback  # For global exception handler

from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import QApplication, QMessageBox

from toss.core.app_settings import (
    DEFAULT_THUMBNAIL_CACHE_DIR,
    ENABLE_FILE_LOGGING_ENV,
    LOG_DIR,
    LOG_FILE_NAME,
    SETTINGS_APPLICATION,
    SETTINGS_ORGANIZATION,
    get_thumbnail_cache_size_bytes,
)


def load_stylesheet(filename: str = "dark_theme.qss") -> str:
    """Load the QSS stylesheet shipped next to the ui package."""
    path = os.path.join(os.path.dirname(__file__), "ui", filename)
    try:
        with open(path, "r", encoding="utf-8") as f:
            logging.info(f"Loading stylesheet: {path}")
            return f.read()
    except OSError as e:
        logging.warning(f"Stylesheet not loaded from '{path}': {e}")
        return ""


# --- Global Exception Handler ---
def global_exception_handler(exc_type, exc_value, exc_traceback):
    """Handles any unhandled exception, logs it, and shows an error dialog."""
    # Don't show a dialog for KeyboardInterrupt (Ctrl+C)
    if issubclass(exc_type, KeyboardInterrupt):
        logging.info("Application terminated by user.")
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    error_message_details = "".join(
        traceback.format_exception(exc_type, exc_value, exc_traceback)
    )
    logging.critical(f"Unhandled exception occurred:\n{error_message_details}")

    app_instance = QApplication.instance()
    main_error_text = (
        f"A critical error occurred: {str(exc_value)}\n\n"
        "The application may become unstable or need to close.\n"
        "Please report this error with the details provided."
    )

    if app_instance:
        try:
            error_box = QMessageBox()
            error_box.setIcon(QMessageBox.Icon.Critical)
            error_box.setWindowTitle("Application Error")
            error_box.setText(main_error_text)
            error_box.setDetailedText(error_message_details)  # Full traceback
            error_box.setStandardButtons(QMessageBox.StandardButton.Ok)
            error_box.exec()
        except Exception as e_msgbox:
            logging.error(
                f"Failed to display error dialog: {str(e_msgbox)}\nOriginal error:\n{error_message_details}"
            )
    else:
        logging.critical(
            f"Unhandled exception caught (QApplication not available):\n{error_message_details}"
        )


def setup_logging(debug: bool = False) -> None:
    root_logger = logging.getLogger()

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)-8s - [%(name)s] - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    level = logging.DEBUG if debug else logging.INFO

    if sys.stderr is not None:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    enable_file_logging_env = os.environ.get(ENABLE_FILE_LOGGING_ENV, "false")
    # In GUI builds without a console, default to file logging on
    want_file_logging = enable_file_logging_env.lower() == "true" or sys.stderr is None
    root_logger.setLevel(logging.DEBUG)
    if want_file_logging:
        try:
            log_file_path = os.path.join(LOG_DIR, LOG_FILE_NAME)
            os.makedirs(LOG_DIR, exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            root_logger.addHandler(file_handler)
            logging.info(f"File logging enabled: {log_file_path}")
        except Exception as e_file_log:
            logging.error(
                f"Failed to initialize file logging: {e_file_log}", exc_info=True
            )
    else:
        logging.info(
            f"File logging disabled. To enable, set {ENABLE_FILE_LOGGING_ENV}=true."
        )

    # --- Suppress verbose third-party loggers ---
    logging.getLogger("PIL").setLevel(logging.INFO)
    logging.getLogger("PIL.PngImagePlugin").setLevel(logging.INFO)
    logging.getLogger("PIL.TiffImagePlugin").setLevel(logging.INFO)
    logging.getLogger("PIL.Image").setLevel(logging.INFO)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toss", description="Triage a folder of images into Keep, Maybe and Yeet."
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--folder", type=str, help="Open specified folder at startup")
    group.add_argument("--project", type=str, help="Open specified project at startup")
    parser.add_argument(
        "--clear-cache", action="store_true", help="Clear the thumbnail cache before starting"
    )
    parser.add_argument("--debug", action="store_true", help="Log DEBUG to the console")
    return parser


def main(argv=None):
    """Main application entry point."""
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.debug)

    sys.excepthook = global_exception_handler
    logging.debug("Global exception hook set.")

    main_start_time = time.perf_counter()
    logging.info("Application starting...")

    app = QApplication(sys.argv)
    app.setOrganizationName(SETTINGS_ORGANIZATION)
    app.setApplicationName(SETTINGS_APPLICATION)

    from toss.core.caching.thumbnail_cache import ThumbnailCache
    from toss.ui.main_window import MainWindow

    thumbnail_cache = ThumbnailCache(
        DEFAULT_THUMBNAIL_CACHE_DIR, size_limit=get_thumbnail_cache_size_bytes()
    )
    if args.clear_cache:
        clear_start_time = time.perf_counter()
        thumbnail_cache.clear()
        logging.info(
            f"Caches cleared via command line in {time.perf_counter() - clear_start_time:.4f}s"
        )

    initial_folder = os.path.abspath(args.folder) if args.folder else None
    initial_project = os.path.abspath(args.project) if args.project else None

    mainwindow_instantiation_start_time = time.perf_counter()
    window = MainWindow(
        initial_folder=initial_folder,
        initial_project=initial_project,
        thumbnail_cache=thumbnail_cache,
    )
    logging.debug(
        f"MainWindow instantiated in {time.perf_counter() - mainwindow_instantiation_start_time:.4f}s"
    )
    window.show()

    def apply_stylesheet():
        stylesheet = load_stylesheet()
        if stylesheet:
            app.setStyleSheet(stylesheet)

    QTimer.singleShot(0, apply_stylesheet)

    logging.info(
        f"Application setup complete in {time.perf_counter() - main_start_time:.4f}s. Entering event loop."
    )
    exit_code = app.exec()
    logging.info(
        f"Application exited with code {exit_code}. Total runtime: {time.perf_counter() - main_start_time:.4f}s"
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
