"""Textual screens for the hire confirmation gate."""

from typing import Optional

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label

from hiring.workflow.candidates import DialogPhase

QUESTION_TEXT = "Have you completed the hiring-contract intake form for {name}?"
SUCCESS_TEXT = "{name} is hired. Send the onboarding checklist to HR."
BLOCKED_TEXT = "Hire not applied. Complete the intake form first:\n{url}"


class HireGateModal(ModalScreen[Optional[bool]]):
    """The hire-gate question.

    Dismisses with True (yes), False (no) or None when closed unanswered.
    """

    DEFAULT_CSS = """
    HireGateModal {
        align: center middle;
    }

    HireGateModal > Vertical {
        width: 64;
        height: auto;
        padding: 1 2;
        border: thick $accent;
        background: $panel;
    }

    HireGateModal #question {
        width: 100%;
        margin-bottom: 1;
    }

    HireGateModal Horizontal {
        height: auto;
        align-horizontal: right;
    }

    HireGateModal Button {
        margin-left: 2;
    }
    """

    BINDINGS = [
        Binding("y", "answer(True)", "Yes"),
        Binding("n", "answer(False)", "No"),
        Binding("escape", "close", "Close"),
    ]

    def __init__(self, candidate_name: str) -> None:
        super().__init__()
        self.candidate_name = candidate_name

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(QUESTION_TEXT.format(name=self.candidate_name), id="question")
            with Horizontal():
                yield Button("Yes", id="yes", variant="success")
                yield Button("No", id="no", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")

    def action_answer(self, confirmed: bool) -> None:
        self.dismiss(confirmed)

    def action_close(self) -> None:
        self.dismiss(None)


class HireGateApp(App[Optional[bool]]):
    """Hosts the hire gate for the CLI and exits with its result."""

    def __init__(self, candidate_name: str) -> None:
        super().__init__()
        self.candidate_name = candidate_name

    def on_mount(self) -> None:
        self.push_screen(HireGateModal(self.candidate_name), self.exit)


def ask_hire_confirmation(candidate_name: str) -> Optional[bool]:
    """Ask the gate question interactively. None means closed without an answer."""
    return HireGateApp(candidate_name).run()


def phase_message(phase: DialogPhase, candidate_name: str, form_url: str = "") -> str:
    """Display text for the read-only phases."""
    if phase == DialogPhase.SUCCESS:
        return SUCCESS_TEXT.format(name=candidate_name)
    if phase == DialogPhase.BLOCKED:
        return BLOCKED_TEXT.format(url=form_url or "(ask HR for the intake form link)")
    return ""
