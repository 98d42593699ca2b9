"""
Inline keyboards and list texts shown by the bot
"""
import html
from datetime import datetime
from typing import List, Sequence, Tuple

from tvreminder.modules.sources.base import ShowResult
from tvreminder.modules.transport.base import Button, Keyboard
from tvreminder.services import callbacks
from tvreminder.services.callbacks import CallbackData
from tvreminder.services.subscriptions import ShowProgress
from tvreminder.utils.formatting import episode_code, format_air_day, format_air_time, safe_string, trim_string


CANCEL_ROW = [Button("❌ Cancel", CallbackData.of(callbacks.CANCEL).encode())]


def _button(text: str, action: str, *params) -> Button:
    return Button(text, CallbackData.of(action, *params).encode())


def search_results_keyboard(results: Sequence[ShowResult], limit: int = 5) -> Keyboard:
    rows = []
    for position, result in enumerate(results[:limit], start=1):
        label = f"{position}. {trim_string(result.name, 25)} ({safe_string(result.premiered)})"
        rows.append([_button(label, callbacks.ACCEPT_SHOW_NAME, position)])
    rows.append(CANCEL_ROW)
    return rows


def seasons_keyboard(seasons: Sequence[int]) -> Keyboard:
    rows = [[_button(f"Season {season}", callbacks.SELECT_SEASON, season)] for season in seasons]
    rows.append(CANCEL_ROW)
    return rows


def episodes_keyboard(episodes) -> Keyboard:
    rows = [
        [_button(trim_string(f"{ep.number}. {ep.title}", 60), callbacks.SELECT_EPISODE, ep.number)]
        for ep in episodes
    ]
    rows.append(CANCEL_ROW)
    return rows


def _upcoming(row: ShowProgress, now: datetime) -> bool:
    return row.next_air_date is not None and row.next_air_date > now


def show_row_label(row: ShowProgress, now: datetime) -> str:
    line = row.name
    if row.notifications_enabled and _upcoming(row, now):
        line = "🔔 " + line
    if row.has_progress:
        line += f" ({episode_code(row.season, row.episode)})"
    if row.has_next:
        if _upcoming(row, now):
            line += f" - Next Ep {format_air_day(row.next_air_date)}"
        else:
            line += " - Next Ep Out ✅"
    return line


def shows_keyboard(rows: Sequence[ShowProgress], now: datetime) -> Keyboard:
    return [[_button(show_row_label(row, now), callbacks.SELECT_SHOW, index)] for index, row in enumerate(rows)]


def show_detail(row: ShowProgress, index: int) -> Tuple[str, Keyboard]:
    """HTML detail text and action buttons for one /shows row"""
    lines = [f"<b>{html.escape(row.name)}</b>", ""]
    if row.has_progress:
        lines.append(f"Current episode: {episode_code(row.season, row.episode)}")
    else:
        lines.append("Current episode: Not set")
    if row.next_air_date is not None:
        lines.append(f"Next episode air date: {format_air_time(row.next_air_date)}")
    else:
        lines.append("Next episode air date: N/A")
    lines.append(f"Notifications: {'Enabled' if row.notifications_enabled else 'Disabled'}")

    toggle_text = "Disable Notifications" if row.notifications_enabled else "Enable Notifications"
    keyboard = [
        [_button(toggle_text, callbacks.TOGGLE_NOTIFICATIONS, index)],
        [_button("Mark next as watched", callbacks.MARK_NEXT_WATCHED, index)],
        [_button("<< Back to shows list", callbacks.BACK_TO_SHOWS)],
    ]
    return "\n".join(lines) + "\n", keyboard


def history_text(rows: Sequence[ShowProgress]) -> str:
    lines: List[str] = ["Your shows:"]
    for row in rows:
        progress = episode_code(row.season, row.episode) if row.has_progress else "not started"
        bell = "on" if row.notifications_enabled else "off"
        lines.append(f"• {row.name} - {progress}, notifications {bell}")
    return "\n".join(lines)
