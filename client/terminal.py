"""
client/terminal.py -- Console implementations of the UI collaborators.

Used by the CLI in main.py. Alerts and navigation are printed; the "form" has
no inputs to reset, so it only reports the busy indicator.
"""

from typing import Callable, Optional


class TerminalAlerts:
    def show(
        self,
        title: str,
        message: str,
        severity: str,
        on_dismiss: Optional[Callable[[], None]] = None,
    ) -> None:
        marker = "[!]" if severity == "alert-danger" else "[i]"
        print(f"  {marker} {title}: {message}")
        if on_dismiss is not None:
            on_dismiss()


class TerminalNavigator:
    def __init__(self) -> None:
        self.history: list[str] = []

    @property
    def location(self) -> Optional[str]:
        return self.history[-1] if self.history else None

    def navigate(self, path: str) -> None:
        self.history.append(path)
        print(f"  -> {path}")


class TerminalForm:
    def set_busy(self, busy: bool) -> None:
        if busy:
            print("  Signing in...", end=" ", flush=True)
        else:
            print("done.")

    def clear_inputs(self) -> None:
        pass

    def focus_username(self) -> None:
        pass

    def clear_api_errors(self) -> None:
        pass
