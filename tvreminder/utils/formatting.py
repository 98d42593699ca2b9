import textwrap
from typing import Optional


def safe_string(value: Optional[str], fallback: str = "N/A") -> str:
    return value if value else fallback


def trim_string(value: str, max_len: int) -> str:
    """Cut to max_len characters, ending with '...' when shortened"""
    if len(value) <= max_len:
        return value
    return value[:max_len - 3] + "..."


def dedent(text: str) -> str:
    return textwrap.dedent(text).strip()


def episode_code(season: Optional[int], number: Optional[int]) -> str:
    if season is None or number is None:
        return "N/A"
    return f"S{season:02d}E{number:02d}"


def format_air_time(value) -> str:
    """'Mon Jan 2, 15:04'"""
    return f"{value:%a %b} {value.day}, {value:%H:%M}"


def format_air_day(value) -> str:
    """'Jan 2 (Mon)'"""
    return f"{value:%b} {value.day} ({value:%a})"
