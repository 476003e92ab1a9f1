"""AppleScript sources for Apple Terminal.

Tabs are addressed as ``tab <index> of window id <id>``. Terminal has no
scripting verb for new tabs, so tab creation and Ctrl-C go through System
Events keystrokes and need Terminal to be frontmost.
"""

from __future__ import annotations

from terminator.bridge import escape_applescript_string as esc

APP = "Terminal"


def _activate(activate: bool) -> str:
    return "    activate\n" if activate else ""


def _target(window_id: str, tab_index: str) -> str:
    return (
        f"    set targetWindow to window id {int(window_id)}\n"
        f"    set targetTab to tab {int(tab_index)} of targetWindow\n"
    )


def list_tabs_script() -> str:
    """``{{windowID, tabIndex, title, tty}, ...}`` for every tab."""
    return f"""set tabList to {{}}
tell application "{APP}"
    repeat with aWindow in windows
        set windowID to id of aWindow
        repeat with aTab in tabs of aWindow
            set tabTitle to custom title of aTab
            if tabTitle is missing value then set tabTitle to ""
            set end of tabList to {{windowID as string, (index of aTab) as string, tabTitle, tty of aTab}}
        end repeat
    end repeat
end tell
return tabList"""


def frontmost_window_script() -> str:
    return f"""tell application "{APP}"
    if (count of windows) is 0 then return ""
    return (id of front window) as string
end tell"""


def create_window_script(title: str, *, activate: bool) -> str:
    """New window; returns ``{windowID, tabIndex, tty, title}``."""
    return f"""tell application "{APP}"
{_activate(activate)}    set newTab to do script ""
    delay 0.2
    set targetWindow to front window
    set custom title of newTab to "{esc(title)}"
    return {{(id of targetWindow) as string, (index of newTab) as string, tty of newTab, custom title of newTab}}
end tell"""


def create_tab_script(window_id: str, title: str) -> str:
    """New tab via Cmd-T in ``window_id``; returns ``{windowID, tabIndex, tty, title}``."""
    return f"""tell application "{APP}"
    activate
    set targetWindow to window id {int(window_id)}
    set index of targetWindow to 1
    tell application "System Events" to keystroke "t" using command down
    delay 0.3
    set newTab to selected tab of targetWindow
    set custom title of newTab to "{esc(title)}"
    return {{(id of targetWindow) as string, (index of newTab) as string, tty of newTab, custom title of newTab}}
end tell"""


def set_title_script(window_id: str, tab_index: str, title: str) -> str:
    return f"""tell application "{APP}"
{_target(window_id, tab_index)}    set custom title of targetTab to "{esc(title)}"
end tell"""


def submit_text_script(window_id: str, tab_index: str, text: str, *, activate: bool) -> str:
    return f"""tell application "{APP}"
{_activate(activate)}{_target(window_id, tab_index)}    do script "{esc(text)}" in targetTab
end tell"""


def history_script(window_id: str, tab_index: str) -> str:
    return f"""tell application "{APP}"
{_target(window_id, tab_index)}    return history of targetTab
end tell"""


def focus_script(window_id: str, tab_index: str) -> str:
    return f"""tell application "{APP}"
{_target(window_id, tab_index)}    set selected of targetTab to true
    set frontmost of targetWindow to true
    activate
end tell"""


def clear_script(window_id: str, tab_index: str, *, activate: bool) -> str:
    """``clear && clear`` in the tab, plus Cmd-K when Terminal is in front."""
    keystroke = (
        '    tell application "System Events" to keystroke "k" using command down\n'
        if activate
        else ""
    )
    return f"""tell application "{APP}"
{_activate(activate)}{_target(window_id, tab_index)}    do script "clear && clear" in targetTab
    delay 0.1
{keystroke}end tell"""


def control_c_script(window_id: str, tab_index: str) -> str:
    """Select the tab and press Ctrl-C (key code 8) through System Events."""
    return f"""tell application "{APP}"
{_target(window_id, tab_index)}    set selected of targetTab to true
    set frontmost of targetWindow to true
    activate
    tell application "System Events" to key code 8 using control down
end tell"""
