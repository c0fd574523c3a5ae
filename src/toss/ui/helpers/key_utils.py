from __future__ import annotations
from typing import Union

from PyQt6.QtCore import Qt


def normalize_key(key: Union[int, Qt.Key]) -> Union[int, Qt.Key]:
    """QKeyEvent.key() gives a plain int; map it onto Qt.Key where possible."""
    if isinstance(key, Qt.Key):
        return key
    try:
        return Qt.Key(key)
    except ValueError:
        return key


def normalize_modifiers(
    modifiers: Union[int, Qt.KeyboardModifier, None],
) -> Qt.KeyboardModifier:
    if modifiers is None:
        return Qt.KeyboardModifier.NoModifier
    if isinstance(modifiers, Qt.KeyboardModifier):
        return modifiers
    return Qt.KeyboardModifier(modifiers)
