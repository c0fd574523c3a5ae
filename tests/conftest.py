import os

# Widgets are created without a display in CI
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PIL import Image
from PyQt6.QtCore import QSettings

from toss.core import app_settings
from toss.core.models import ImageFile


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Route app_settings to a throwaway ini file instead of the user's settings."""
    ini_path = str(tmp_path / "settings.ini")

    def _settings():
        return QSettings(ini_path, QSettings.Format.IniFormat)

    monkeypatch.setattr(app_settings, "_get_settings", _settings)
    return ini_path


@pytest.fixture
def make_image_file(tmp_path):
    """Write a small real image to disk and return its path."""

    def _make(name="img.jpg", size=(64, 48), color=(200, 30, 30), folder=None):
        directory = folder or tmp_path
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(str(directory), name)
        fmt = "PNG" if name.lower().endswith(".png") else "JPEG"
        Image.new("RGB", size, color).save(path, fmt)
        return path

    return _make


@pytest.fixture
def fake_images():
    """Build ImageFile records that need not exist on disk."""

    def _make(*ids):
        return [
            ImageFile(
                id=i, path=f"/photos/{i}.jpg", name=f"{i}.jpg", size=1000 * (n + 1)
            )
            for n, i in enumerate(ids)
        ]

    return _make
