from __future__ import annotations

DEFAULT_WIDTH = 80
WIDTH_STEP = 5
MIN_WIDTH = 20
JUMP_STRIDE = 80

TOC_URL = "TOC"
STATE_SUFFIX = ".folio.json"
LOG_FILE_ENV = "FOLIO_LOG_FILE"

# Solarized base03.
BACKGROUND_COLOR = 0x002833

# key symbol -> Book action name
KEYMAP: dict[str, str] = {
    "q": "quit",
    "l": "next_chapter",
    "h": "previous_chapter",
    "/": "toggle_menu",
    "j": "menu_down",
    "k": "menu_up",
    "m": "mark",
    "'": "jump_to_mark",
    " ": "jump_scroll",
    "+": "widen",
    "-": "narrow",
    "=": "reset_width",
}
