"""Pure text formatting helpers for the dashboard report.

Nothing here reads the clock, the environment or the terminal: identical
input always yields identical output.
"""

from datetime import datetime, timezone

RESET = "\x1b[0m"
BOLD = "\x1b[1m"

COLORS: dict[str, str] = {
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "orange": "\x1b[38;5;208m",
    "blue": "\x1b[34m",
    "cyan": "\x1b[36m",
    "white": "\x1b[37m",
    "gray": "\x1b[90m",
}

_BYTE_UNITS = ("B", "KB", "MB", "GB")

SHORT_TIME_FORMAT = "%H:%M:%S"
LONG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def colorize(text: str, color: str = "", bold: bool = False, enabled: bool = True) -> str:
    """Wrap text in ANSI codes; unknown colors and ``enabled=False`` pass through."""
    if not enabled:
        return text
    seq = BOLD if bold else ""
    seq += COLORS.get(color, "")
    return f"{seq}{text}{RESET}"


def format_bytes(size: int) -> str:
    """Binary (1024-based) size with up to two decimals: ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    number = ("%.2f" % value).rstrip("0").rstrip(".")
    return f"{number} {_BYTE_UNITS[unit]}"


def format_uptime(seconds: float) -> str:
    """Largest applicable unit combination, leading zero units omitted.

    ``Xd Yh Zm`` / ``Xh Ym Zs`` / ``Xm Ys`` / ``Xs``
    """
    total = max(int(seconds), 0)
    minutes, secs = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_time(timestamp: datetime, short: bool = False) -> str:
    """UTC time; naive datetimes are taken as UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime(SHORT_TIME_FORMAT if short else LONG_TIME_FORMAT)


def progress_band(progress: int) -> str:
    """Urgency color for a 0-100 percentage (bands at 75/50/25)."""
    if progress >= 75:
        return "green"
    if progress >= 50:
        return "yellow"
    if progress >= 25:
        return "orange"
    return "red"


def render_progress_bar(progress: int, width: int = 20, use_colors: bool = True) -> str:
    """Fixed-width ``[███░░░]`` bar filled proportionally to ``progress``."""
    clamped = min(max(progress, 0), 100)
    filled = (2 * clamped * width + 100) // 200
    bar = "█" * filled + "░" * (width - filled)
    return colorize(f"[{bar}]", progress_band(clamped), enabled=use_colors)
