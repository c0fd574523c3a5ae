"""
Application Settings Module
Manages persistent application settings using QSettings.
"""

import os
from PyQt6.QtCore import QSettings

from toss.core.models import OutputMode

# --- Settings Constants ---

# Settings organization and application name
SETTINGS_ORGANIZATION = "Toss"
SETTINGS_APPLICATION = "Toss"

# Settings keys
THUMBNAIL_CACHE_SIZE_MB_KEY = "Cache/ThumbnailCacheSizeMB"
RECENT_FOLDERS_KEY = "UI/RecentFolders"  # Key for recent folders list
DEFAULT_OUTPUT_MODE_KEY = "Triage/DefaultOutputMode"  # move | copy
CONFIRM_EXIT_KEY = "Triage/ConfirmExit"  # Ask before discarding a session
GESTURE_COMMIT_ON_RELEASE_KEY = (
    "Triage/GestureCommitOnRelease"  # Preview on press, classify on release
)

# Default values
DEFAULT_THUMBNAIL_CACHE_SIZE_MB = 512
MAX_RECENT_FOLDERS = 10  # Max number of recent folders to store
DEFAULT_OUTPUT_MODE = OutputMode.MOVE
DEFAULT_CONFIRM_EXIT = True
DEFAULT_GESTURE_COMMIT_ON_RELEASE = True

# --- Image Constants ---
SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"}
THUMBNAIL_SIZE = 150  # Default thumbnail edge in pixels
FILMSTRIP_THUMBNAIL_SIZE = 100  # Gallery / filmstrip thumbnails
THUMBNAIL_MIN_FILE_SIZE = 64 * 1024  # Values above this are stored as files by diskcache

# --- Project Files ---
PROJECT_CONFIG_FILENAME = "toss-project.json"
OUTPUT_METADATA_FILENAME = "toss-metadata.json"
MAX_CONFLICT_SUFFIX = 1000  # Give up renaming after this many collisions

# --- Cache Locations ---
DEFAULT_THUMBNAIL_CACHE_DIR = os.path.join(
    os.path.expanduser("~"), ".cache", "toss_thumbnails"
)

# --- Logging ---
LOG_DIR = os.path.join(os.path.expanduser("~"), ".toss_logs")
LOG_FILE_NAME = "toss_app.log"
ENABLE_FILE_LOGGING_ENV = "TOSS_ENABLE_FILE_LOGGING"


def _get_settings() -> QSettings:
    """Get a QSettings instance with the application's organization and name."""
    return QSettings(SETTINGS_ORGANIZATION, SETTINGS_APPLICATION)


# --- Thumbnail Cache Size ---
def get_thumbnail_cache_size_mb() -> int:
    """Gets the configured thumbnail cache size in MB from settings."""
    settings = _get_settings()
    return settings.value(
        THUMBNAIL_CACHE_SIZE_MB_KEY, DEFAULT_THUMBNAIL_CACHE_SIZE_MB, type=int
    )


def set_thumbnail_cache_size_mb(size_mb: int):
    settings = _get_settings()
    settings.setValue(THUMBNAIL_CACHE_SIZE_MB_KEY, size_mb)


def get_thumbnail_cache_size_bytes() -> int:
    return get_thumbnail_cache_size_mb() * 1024 * 1024


# --- Recent Folders ---
def get_recent_folders() -> list[str]:
    """Gets the list of recent folders from settings."""
    settings = _get_settings()
    recent_folders = settings.value(RECENT_FOLDERS_KEY, [], type=list)
    # Filter out folders that no longer exist
    return [folder for folder in recent_folders if os.path.isdir(folder)]


def add_recent_folder(path: str):
    """Adds a folder to the top of the recent folders list."""
    if not path or not os.path.isdir(path):
        return

    settings = _get_settings()
    recent_folders = get_recent_folders()

    normalized_path = os.path.normpath(path)

    # Remove if already exists (case-insensitive on Windows)
    recent_folders = [
        p
        for p in recent_folders
        if os.path.normpath(p).lower() != normalized_path.lower()
    ]

    recent_folders.insert(0, normalized_path)

    if len(recent_folders) > MAX_RECENT_FOLDERS:
        recent_folders = recent_folders[:MAX_RECENT_FOLDERS]

    settings.setValue(RECENT_FOLDERS_KEY, recent_folders)


# --- Triage Settings ---
def get_default_output_mode() -> OutputMode:
    """Gets the output mode used for newly added source folders."""
    settings = _get_settings()
    mode_str = settings.value(
        DEFAULT_OUTPUT_MODE_KEY, DEFAULT_OUTPUT_MODE.value, type=str
    )
    return OutputMode.from_string(mode_str)


def set_default_output_mode(mode: OutputMode):
    settings = _get_settings()
    settings.setValue(DEFAULT_OUTPUT_MODE_KEY, mode.value)


def get_confirm_exit() -> bool:
    """Get whether leaving a session with classifications asks first."""
    settings = _get_settings()
    return settings.value(CONFIRM_EXIT_KEY, DEFAULT_CONFIRM_EXIT, type=bool)


def set_confirm_exit(confirm: bool):
    settings = _get_settings()
    settings.setValue(CONFIRM_EXIT_KEY, confirm)


def get_gesture_commit_on_release() -> bool:
    """Get whether classify keys preview on press and commit on release."""
    settings = _get_settings()
    return settings.value(
        GESTURE_COMMIT_ON_RELEASE_KEY, DEFAULT_GESTURE_COMMIT_ON_RELEASE, type=bool
    )


def set_gesture_commit_on_release(enabled: bool):
    settings = _get_settings()
    settings.setValue(GESTURE_COMMIT_ON_RELEASE_KEY, enabled)
