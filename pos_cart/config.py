# pos_cart/config.py
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QSettings

APP_NAME = "POS Cart Editor"
SETTINGS_SCOPE = ("PosCart", "CartEditor")
SETTINGS_GROUP = "cart"

DATA_DIR = "data"
DB_FILE_NAME = "pos_cart.db"

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = DATA_PATH / DB_FILE_NAME


@dataclass
class CartSettings:
    allow_label_editing: bool = False
    default_uom: str = "Nos"
    price_warning_ms: int = 3000
    notice_ms: int = 3000
    max_discount: float = 100.0


def _coerce(raw, default):
    """Convert a QSettings value to the type of `default`; None on failure."""
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        return None
    try:
        return type(default)(raw)
    except (TypeError, ValueError):
        return None


def load_settings(qsettings: Optional[QSettings] = None) -> CartSettings:
    """
    Read CartSettings from QSettings (keys under the "cart/" group).
    Missing or malformed keys keep their defaults.
    """
    qs = qsettings if qsettings is not None else QSettings(*SETTINGS_SCOPE)
    defaults = CartSettings()
    values = {}
    for f in fields(CartSettings):
        default = getattr(defaults, f.name)
        raw = qs.value(f"{SETTINGS_GROUP}/{f.name}", None)
        if raw is None:
            continue
        val = _coerce(raw, default)
        if val is not None:
            values[f.name] = val
    return CartSettings(**values)


def save_settings(settings: CartSettings, qsettings: Optional[QSettings] = None) -> None:
    qs = qsettings if qsettings is not None else QSettings(*SETTINGS_SCOPE)
    for f in fields(CartSettings):
        qs.setValue(f"{SETTINGS_GROUP}/{f.name}", getattr(settings, f.name))
    qs.sync()
