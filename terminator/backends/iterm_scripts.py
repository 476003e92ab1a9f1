"""AppleScript sources for iTerm2.

iTerm nests sessions inside tabs inside windows. Scripts look a session up
by its unique id and fail with error -1728 when it no longer exists.
"""

from __future__ import annotations

from terminator.bridge import escape_applescript_string as esc

APP = "iTerm"
DEFAULT_PROFILE = "Default"


def _activate(activate: bool) -> str:
    return "    activate\n" if activate else ""


def _find_session(session_id: str) -> str:
    sid = esc(session_id)
    return f"""    set targetSession to missing value
    repeat with aWindow in windows
        repeat with aTab in tabs of aWindow
            repeat with aSession in sessions of aTab
                if (id of aSession as string) is "{sid}" then
                    set targetSession to aSession
                    exit repeat
                end if
            end repeat
            if targetSession is not missing value then exit repeat
        end repeat
        if targetSession is not missing value then exit repeat
    end repeat
    if targetSession is missing value then error "Session {sid} not found" number -1728
"""


def _find_window(window_id: str) -> str:
    wid = esc(window_id)
    return f"""    set targetWindow to missing value
    repeat with aWindow in windows
        if (id of aWindow as string) is "{wid}" then
            set targetWindow to aWindow
            exit repeat
        end if
    end repeat
    if targetWindow is missing value then error "Window {wid} not found" number -1728
"""


def list_sessions_script() -> str:
    """``{{windowID, tabID, sessionID, tty, name}, ...}`` for every session."""
    return f"""set sessionList to {{}}
tell application "{APP}"
    repeat with aWindow in windows
        set windowID to id of aWindow as string
        repeat with aTab in tabs of aWindow
            set tabID to id of aTab as string
            repeat with aSession in sessions of aTab
                set end of sessionList to {{windowID, tabID, id of aSession as string, tty of aSession, name of aSession}}
            end repeat
        end repeat
    end repeat
end tell
return sessionList"""


def list_windows_script() -> str:
    """``{{windowID, name}, ...}`` for grouping decisions."""
    return f"""set windowList to {{}}
tell application "{APP}"
    repeat with aWindow in windows
        set windowName to name of aWindow
        if windowName is missing value then set windowName to ""
        set end of windowList to {{id of aWindow as string, windowName}}
    end repeat
end tell
return windowList"""


def frontmost_window_script() -> str:
    return f"""tell application "{APP}"
    if (count of windows) is 0 then return ""
    return id of current window as string
end tell"""


def create_window_script(title: str, profile: str | None, *, activate: bool) -> str:
    """New window; returns ``{windowID, tabID, sessionID, tty}``."""
    return f"""tell application "{APP}"
{_activate(activate)}    set newWindow to (create window with profile "{esc(profile or DEFAULT_PROFILE)}")
    delay 0.2
    set newTab to current tab of newWindow
    set newSession to current session of newTab
    set name of newSession to "{esc(title)}"
    return {{id of newWindow as string, id of newTab as string, id of newSession as string, tty of newSession}}
end tell"""


def create_tab_script(
    window_id: str, title: str, profile: str | None, *, activate: bool
) -> str:
    """New tab in ``window_id``; returns ``{windowID, tabID, sessionID, tty}``."""
    select = "    select targetWindow\n" if activate else ""
    return f"""tell application "{APP}"
{_activate(activate)}{_find_window(window_id)}{select}    tell targetWindow
        set newTab to (create tab with profile "{esc(profile or DEFAULT_PROFILE)}")
    end tell
    delay 0.2
    set newSession to current session of newTab
    set name of newSession to "{esc(title)}"
    return {{id of targetWindow as string, id of newTab as string, id of newSession as string, tty of newSession}}
end tell"""


def set_session_name_script(session_id: str, title: str) -> str:
    return f"""tell application "{APP}"
{_find_session(session_id)}    set name of targetSession to "{esc(title)}"
end tell"""


def set_window_name_script(window_id: str, name: str) -> str:
    return f"""tell application "{APP}"
{_find_window(window_id)}    set name of targetWindow to "{esc(name)}"
end tell"""


def write_text_script(session_id: str, text: str, *, activate: bool) -> str:
    return f"""tell application "{APP}"
{_activate(activate)}{_find_session(session_id)}    tell targetSession to write text "{esc(text)}"
end tell"""


def contents_script(session_id: str) -> str:
    return f"""tell application "{APP}"
{_find_session(session_id)}    return contents of targetSession
end tell"""


def focus_script(window_id: str, tab_id: str, session_id: str) -> str:
    tid = esc(tab_id)
    return f"""tell application "{APP}"
    activate
{_find_window(window_id)}    select targetWindow
    repeat with aTab in tabs of targetWindow
        if (id of aTab as string) is "{tid}" then
            tell aTab to select
            exit repeat
        end if
    end repeat
{_find_session(session_id)}    tell targetSession to select
end tell"""


def clear_script(session_id: str, *, activate: bool) -> str:
    """``clear buffer`` plus a visible ``clear``."""
    return f"""tell application "{APP}"
{_activate(activate)}{_find_session(session_id)}    tell targetSession
        clear buffer
        write text "clear"
    end tell
end tell"""


def control_c_script(session_id: str) -> str:
    """Write ETX (Ctrl-C) without a trailing newline."""
    return f"""tell application "{APP}"
{_find_session(session_id)}    tell targetSession to write text (character id 3) newline no
end tell"""
