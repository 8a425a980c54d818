# wiki_harvest/parser/color.py
"""
Color normalization: any CSS color notation the site uses → ``#rrggbbaa``.

Accepted input: ``#rgb``, ``#rgba``, ``#rrggbb``, ``#rrggbbaa``,
``rgb()``/``rgba()`` (comma or space syntax, numbers or percentages, optional
``/ alpha``), ``hsl()``/``hsla()``, CSS named colors and ``transparent``.
Anything else yields a :class:`ColorParseError` value, never an exception.
"""
from __future__ import annotations

import colorsys
import re
from dataclasses import dataclass
from typing import List, Optional, Union

import webcolors

__all__ = ("ColorParseError", "normalize", "style_property")

_HEX_RE = re.compile(r"^#([0-9a-f]{3,8})$")
_FUNC_RE = re.compile(r"^(rgba?|hsla?)\((.*)\)$", re.S)
_HUE_UNITS = {"deg": 1.0, "grad": 0.9, "turn": 360.0, "rad": 57.29577951308232}


@dataclass(frozen=True, slots=True)
class ColorParseError:
    """Unrecognized color value; the field carrying it is treated as absent."""

    raw: str
    reason: str


class _BadColor(ValueError):
    pass


def normalize(raw: str) -> Union[str, ColorParseError]:
    """Return *raw* as lowercase ``#rrggbbaa`` or a :class:`ColorParseError`."""
    value = raw.strip().lower().replace("!important", "").strip()
    if not value:
        return ColorParseError(raw, "empty color value")
    try:
        if value == "transparent":
            return "#00000000"
        if value.startswith("#"):
            return _from_hex(value)
        match = _FUNC_RE.match(value)
        if match:
            func, body = match.groups()
            channels, alpha = _split_args(body)
            if func.startswith("rgb"):
                return _from_rgb(channels, alpha)
            return _from_hsl(channels, alpha)
        return _from_name(value)
    except _BadColor as exc:
        return ColorParseError(raw, str(exc))


def style_property(style: Optional[str], name: str) -> Optional[str]:
    """Value of CSS property *name* in an inline ``style`` attribute (last one wins)."""
    if not style:
        return None
    found: Optional[str] = None
    for declaration in style.split(";"):
        prop, sep, val = declaration.partition(":")
        if sep and prop.strip().lower() == name and val.strip():
            found = val.strip()
    return found


# --------------------------------------------------------------------------- #
# notations                                                                   #
# --------------------------------------------------------------------------- #


def _from_hex(value: str) -> str:
    match = _HEX_RE.match(value)
    if not match:
        raise _BadColor(f"invalid hex color {value!r}")
    digits = match.group(1)
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    elif len(digits) not in (6, 8):
        raise _BadColor(f"hex color must have 3, 4, 6 or 8 digits, got {len(digits)}")
    if len(digits) == 6:
        digits += "ff"
    return "#" + digits


def _from_name(value: str) -> str:
    try:
        return webcolors.name_to_hex(value) + "ff"
    except ValueError:
        raise _BadColor(f"unknown color name {value!r}") from None


def _split_args(body: str) -> tuple[List[str], Optional[str]]:
    body = body.strip()
    if "," in body:
        parts = [p.strip() for p in body.split(",")]
        if len(parts) not in (3, 4):
            raise _BadColor("expected 3 or 4 comma-separated components")
        return parts[:3], (parts[3] if len(parts) == 4 else None)
    main, _, alpha = body.partition("/")
    parts = main.split()
    if len(parts) != 3:
        raise _BadColor("expected 3 space-separated components")
    alpha = alpha.strip()
    return parts, (alpha or None)


def _number(token: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise _BadColor(f"invalid number {token!r}") from None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _alpha_byte(token: Optional[str]) -> int:
    if token is None:
        return 255
    if token.endswith("%"):
        alpha = _number(token[:-1]) / 100
    else:
        alpha = _number(token)
    return round(_clamp(alpha, 0.0, 1.0) * 255)


def _rgb_channel(token: str) -> int:
    if token.endswith("%"):
        return round(_clamp(_number(token[:-1]), 0.0, 100.0) * 2.55)
    return round(_clamp(_number(token), 0.0, 255.0))


def _from_rgb(channels: List[str], alpha: Optional[str]) -> str:
    r, g, b = (_rgb_channel(c) for c in channels)
    return f"#{r:02x}{g:02x}{b:02x}{_alpha_byte(alpha):02x}"


def _hue(token: str) -> float:
    for unit, factor in _HUE_UNITS.items():
        if token.endswith(unit):
            return (_number(token[: -len(unit)]) * factor) % 360
    return _number(token) % 360


def _percent(token: str) -> float:
    return _clamp(_number(token.rstrip("%")), 0.0, 100.0) / 100


def _from_hsl(channels: List[str], alpha: Optional[str]) -> str:
    hue, sat, light = _hue(channels[0]), _percent(channels[1]), _percent(channels[2])
    r, g, b = colorsys.hls_to_rgb(hue / 360, light, sat)
    return f"#{round(r * 255):02x}{round(g * 255):02x}{round(b * 255):02x}{_alpha_byte(alpha):02x}"
