"""
Font selection for measuring and drawing.

Helvetica by default. Set KP_FONT_PATH (and optionally KP_FONT_BOLD_PATH) to a
TrueType file to get Cyrillic glyphs; it is registered with reportlab once.
"""

import os
import logging

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

log = logging.getLogger("kp.fonts")

DEFAULT_FONT = "Helvetica"
DEFAULT_BOLD_FONT = "Helvetica-Bold"

_registered = {}


def _register(name: str, path: str):
    if name in _registered:
        return _registered[name]
    try:
        pdfmetrics.registerFont(TTFont(name, path))
        _registered[name] = name
        log.info("Registered font %s from %s", name, path)
    except Exception as e:
        log.warning("Font %s not usable (%s), falling back to Helvetica", path, e)
        _registered[name] = None
    return _registered[name]


def resolve_fonts():
    """(regular, bold) font names to use."""
    path = os.environ.get("KP_FONT_PATH", "")
    if not path:
        return DEFAULT_FONT, DEFAULT_BOLD_FONT
    regular = _register("KPRegular", path)
    if not regular:
        return DEFAULT_FONT, DEFAULT_BOLD_FONT
    bold_path = os.environ.get("KP_FONT_BOLD_PATH", "")
    bold = _register("KPBold", bold_path) if bold_path else None
    return regular, bold or regular
