"""Generic helpers (colors, coercion, formatting, profiling)."""

from __future__ import annotations

import functools
import logging
import math
import time
from typing import Any, Dict, List, Optional, Tuple

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")


def _hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    hex_color = hex_color.lstrip("#")
    if len(hex_color) == 3:
        hex_color = "".join(ch * 2 for ch in hex_color)
    if len(hex_color) != 6:
        raise ValueError(f"Invalid hex color: {hex_color}")
    return tuple(int(hex_color[i : i + 2], 16) for i in (0, 2, 4))


def _rgb_to_hex(rgb: Tuple[float, float, float]) -> str:
    channels = [max(0, min(255, int(round(c)))) for c in rgb]
    return "#{:02X}{:02X}{:02X}".format(*channels)


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _interpolate_rgb(low: str, high: str, t: float) -> Tuple[float, float, float]:
    t = clamp(t)
    r1, g1, b1 = _hex_to_rgb(low)
    r2, g2, b2 = _hex_to_rgb(high)
    return (_lerp(r1, r2, t), _lerp(g1, g2, t), _lerp(b1, b2, t))


def _scale_rgb(rgb: Tuple[float, float, float], factor: float) -> Tuple[float, float, float]:
    return tuple(c * factor for c in rgb)


def make_ramp_color(low: str, high: str, t: float, darken: float) -> Dict[str, str]:
    """Background on the low->high ramp, border the same color darkened."""
    rgb = _interpolate_rgb(low, high, t)
    return {
        "background": _rgb_to_hex(rgb),
        "border": _rgb_to_hex(_scale_rgb(rgb, darken)),
    }


def coerce_number(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings, ``None`` for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(num):
        return None
    return num


def _coerce_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _coerce_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _truncate_text(text: str, max_len: int = 160) -> str:
    text = str(text)
    if len(text) <= max_len:
        return text
    return text[: max_len - 3].rstrip() + "..."


def summarize_counts(counts: Dict[str, int], top_n: int = 6) -> Tuple[str, int]:
    """``"key: n | key: n (+k more)"`` sorted by count descending, and the total."""
    entries = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    total = sum(count for _, count in entries)
    summary = " | ".join(f"{key}: {count}" for key, count in entries[:top_n])
    if len(entries) > top_n:
        summary += f" (+{len(entries) - top_n} more)"
    return summary, total


def profile_time(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start_time
        logging.info("[PROFILE] Function '%s' executed in %.3f seconds", func.__name__, elapsed)
        return result

    return wrapper
