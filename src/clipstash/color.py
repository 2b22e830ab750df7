"""Parsing of CSS color literals copied to the clipboard.

Accepted forms (case-insensitive, surrounding whitespace ignored):

- ``#rgb``, ``#rgba``, ``#rrggbb``, ``#rrggbbaa``
- ``rgb()``/``rgba()`` with numbers (0-255) or percentages, comma or space
  separated, and an optional alpha (``, a`` or ``/ a``)
- ``hsl()``/``hsla()`` with a hue in degrees and percentage saturation and
  lightness, optional alpha
- ``hwb()`` with a hue, whiteness and blackness percentages, optional ``/ a``
- CSS named colors and ``transparent``
"""

import colorsys
import math
import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int
    a: float = 1.0

    def hex(self) -> str:
        value = f"#{self.r:02x}{self.g:02x}{self.b:02x}"
        if self.a < 1.0:
            value += f"{round(self.a * 255):02x}"
        return value


NAMED_COLORS: dict[str, str] = {
    "aliceblue": "f0f8ff", "antiquewhite": "faebd7", "aqua": "00ffff", "aquamarine": "7fffd4",
    "azure": "f0ffff", "beige": "f5f5dc", "bisque": "ffe4c4", "black": "000000",
    "blanchedalmond": "ffebcd", "blue": "0000ff", "blueviolet": "8a2be2", "brown": "a52a2a",
    "burlywood": "deb887", "cadetblue": "5f9ea0", "chartreuse": "7fff00", "chocolate": "d2691e",
    "coral": "ff7f50", "cornflowerblue": "6495ed", "cornsilk": "fff8dc", "crimson": "dc143c",
    "cyan": "00ffff", "darkblue": "00008b", "darkcyan": "008b8b", "darkgoldenrod": "b8860b",
    "darkgray": "a9a9a9", "darkgreen": "006400", "darkgrey": "a9a9a9", "darkkhaki": "bdb76b",
    "darkmagenta": "8b008b", "darkolivegreen": "556b2f", "darkorange": "ff8c00", "darkorchid": "9932cc",
    "darkred": "8b0000", "darksalmon": "e9967a", "darkseagreen": "8fbc8f", "darkslateblue": "483d8b",
    "darkslategray": "2f4f4f", "darkslategrey": "2f4f4f", "darkturquoise": "00ced1", "darkviolet": "9400d3",
    "deeppink": "ff1493", "deepskyblue": "00bfff", "dimgray": "696969", "dimgrey": "696969",
    "dodgerblue": "1e90ff", "firebrick": "b22222", "floralwhite": "fffaf0", "forestgreen": "228b22",
    "fuchsia": "ff00ff", "gainsboro": "dcdcdc", "ghostwhite": "f8f8ff", "gold": "ffd700",
    "goldenrod": "daa520", "gray": "808080", "green": "008000", "greenyellow": "adff2f",
    "grey": "808080", "honeydew": "f0fff0", "hotpink": "ff69b4", "indianred": "cd5c5c",
    "indigo": "4b0082", "ivory": "fffff0", "khaki": "f0e68c", "lavender": "e6e6fa",
    "lavenderblush": "fff0f5", "lawngreen": "7cfc00", "lemonchiffon": "fffacd", "lightblue": "add8e6",
    "lightcoral": "f08080", "lightcyan": "e0ffff", "lightgoldenrodyellow": "fafad2", "lightgray": "d3d3d3",
    "lightgreen": "90ee90", "lightgrey": "d3d3d3", "lightpink": "ffb6c1", "lightsalmon": "ffa07a",
    "lightseagreen": "20b2aa", "lightskyblue": "87cefa", "lightslategray": "778899", "lightslategrey": "778899",
    "lightsteelblue": "b0c4de", "lightyellow": "ffffe0", "lime": "00ff00", "limegreen": "32cd32",
    "linen": "faf0e6", "magenta": "ff00ff", "maroon": "800000", "mediumaquamarine": "66cdaa",
    "mediumblue": "0000cd", "mediumorchid": "ba55d3", "mediumpurple": "9370db", "mediumseagreen": "3cb371",
    "mediumslateblue": "7b68ee", "mediumspringgreen": "00fa9a", "mediumturquoise": "48d1cc",
    "mediumvioletred": "c71585", "midnightblue": "191970", "mintcream": "f5fffa", "mistyrose": "ffe4e1",
    "moccasin": "ffe4b5", "navajowhite": "ffdead", "navy": "000080", "oldlace": "fdf5e6",
    "olive": "808000", "olivedrab": "6b8e23", "orange": "ffa500", "orangered": "ff4500",
    "orchid": "da70d6", "palegoldenrod": "eee8aa", "palegreen": "98fb98", "paleturquoise": "afeeee",
    "palevioletred": "db7093", "papayawhip": "ffefd5", "peachpuff": "ffdab9", "peru": "cd853f",
    "pink": "ffc0cb", "plum": "dda0dd", "powderblue": "b0e0e6", "purple": "800080",
    "rebeccapurple": "663399", "red": "ff0000", "rosybrown": "bc8f8f", "royalblue": "4169e1",
    "saddlebrown": "8b4513", "salmon": "fa8072", "sandybrown": "f4a460", "seagreen": "2e8b57",
    "seashell": "fff5ee", "sienna": "a0522d", "silver": "c0c0c0", "skyblue": "87ceeb",
    "slateblue": "6a5acd", "slategray": "708090", "slategrey": "708090", "snow": "fffafa",
    "springgreen": "00ff7f", "steelblue": "4682b4", "tan": "d2b48c", "teal": "008080",
    "thistle": "d8bfd8", "tomato": "ff6347", "turquoise": "40e0d0", "violet": "ee82ee",
    "wheat": "f5deb3", "white": "ffffff", "whitesmoke": "f5f5f5", "yellow": "ffff00",
    "yellowgreen": "9acd32",
}

_HEX_RE = re.compile(r"#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})")
_FUNC_RE = re.compile(r"(rgba?|hsla?|hwb)\(\s*(.*?)\s*\)")
_NUMBER = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?"
_PERCENT_RE = re.compile(rf"({_NUMBER})%")
_NUMBER_RE = re.compile(rf"({_NUMBER})")
_HUE_RE = re.compile(rf"({_NUMBER})(deg|grad|rad|turn)?")

_HUE_UNITS = {None: 1.0, "deg": 1.0, "grad": 0.9, "rad": 57.29577951308232, "turn": 360.0}


def _split_args(args: str) -> tuple[list[str], str | None] | None:
    """Split function arguments into channels and an optional alpha."""
    if "," in args:
        parts = [p.strip() for p in args.split(",")]
        if "/" in args or any(not p for p in parts):
            return None
        if len(parts) == 4:
            return parts[:3], parts[3]
        return (parts, None) if len(parts) == 3 else None

    alpha = None
    if "/" in args:
        args, alpha = (s.strip() for s in args.split("/", 1))
        if not alpha or "/" in alpha:
            return None
    parts = args.split()
    return (parts, alpha) if len(parts) == 3 else None


def _parse_alpha(value: str | None) -> float | None:
    if value is None:
        return 1.0
    match = _PERCENT_RE.fullmatch(value)
    if match:
        alpha = float(match.group(1)) / 100
    elif _NUMBER_RE.fullmatch(value):
        alpha = float(value)
    else:
        return None
    return alpha if 0.0 <= alpha <= 1.0 else None


def _parse_percent(value: str) -> float | None:
    match = _PERCENT_RE.fullmatch(value)
    if not match:
        return None
    percent = float(match.group(1))
    return percent / 100 if 0.0 <= percent <= 100.0 else None


def _parse_hue(value: str) -> float | None:
    match = _HUE_RE.fullmatch(value)
    if not match:
        return None
    degrees = float(match.group(1)) * _HUE_UNITS[match.group(2)]
    if not math.isfinite(degrees):
        return None
    return degrees % 360 / 360


def _parse_rgb(channels: list[str]) -> tuple[int, int, int] | None:
    # Channels must be all numbers or all percentages
    if all(c.endswith("%") for c in channels):
        values = [_parse_percent(c) for c in channels]
        if any(v is None for v in values):
            return None
        return tuple(round(v * 255) for v in values)

    values = []
    for channel in channels:
        if not _NUMBER_RE.fullmatch(channel):
            return None
        value = float(channel)
        if not 0.0 <= value <= 255.0:
            return None
        values.append(round(value))
    return tuple(values)


def _parse_hsl(channels: list[str]) -> tuple[int, int, int] | None:
    hue = _parse_hue(channels[0])
    saturation = _parse_percent(channels[1])
    lightness = _parse_percent(channels[2])
    if hue is None or saturation is None or lightness is None:
        return None
    r, g, b = colorsys.hls_to_rgb(hue, lightness, saturation)
    return round(r * 255), round(g * 255), round(b * 255)


def _parse_hwb(channels: list[str]) -> tuple[int, int, int] | None:
    hue = _parse_hue(channels[0])
    white = _parse_percent(channels[1])
    black = _parse_percent(channels[2])
    if hue is None or white is None or black is None:
        return None
    if white + black >= 1.0:
        gray = round(white / (white + black) * 255)
        return gray, gray, gray
    r, g, b = colorsys.hls_to_rgb(hue, 0.5, 1.0)
    scale = 1.0 - white - black
    return tuple(round((c * scale + white) * 255) for c in (r, g, b))


def _parse_hex(digits: str) -> Color:
    if len(digits) in (3, 4):
        digits = "".join(c * 2 for c in digits)
    r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
    return Color(r, g, b, a)


def parse_color(text: str) -> Color | None:
    value = text.strip().lower()
    if not value:
        return None

    match = _HEX_RE.fullmatch(value)
    if match:
        return _parse_hex(match.group(1))

    if value == "transparent":
        return Color(0, 0, 0, 0.0)
    if value in NAMED_COLORS:
        return _parse_hex(NAMED_COLORS[value])

    match = _FUNC_RE.fullmatch(value)
    if not match:
        return None

    name, args = match.groups()
    split = _split_args(args)
    if split is None:
        return None
    channels, alpha_raw = split

    if name == "hwb" and alpha_raw is not None and "," in args:
        return None
    alpha = _parse_alpha(alpha_raw)
    if alpha is None:
        return None

    if name.startswith("rgb"):
        rgb = _parse_rgb(channels)
    elif name.startswith("hsl"):
        rgb = _parse_hsl(channels)
    else:
        rgb = _parse_hwb(channels)

    if rgb is None:
        return None
    return Color(*rgb, alpha)
