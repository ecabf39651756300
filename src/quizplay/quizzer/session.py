"""Rich-powered console loop driving a :class:`QuizSession`.

The loop renders the current question (or the end-of-pass summary), reads one
command per turn from an injected input provider, and forwards it to the
engine. All scoring, mastery, and timing decisions stay in the engine; this
module only translates between keystrokes and engine transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..engine.models import Answer, SessionSnapshot, ShuffledAnswer
from ..engine.session import QuizSession
from ..engine.statistics import (
    SessionStatistics,
    calculate_grade,
    calculate_xp,
    format_elapsed,
)

__all__ = [
    "ExitAction",
    "InputProvider",
    "QuizSessionResult",
    "SessionCommand",
    "parse_session_command",
    "run_quiz_session",
]

InputProvider = Callable[[], str]
ExitAction = Literal["completed", "quit"]
CommandType = Literal[
    "select",
    "submit",
    "next",
    "grade",
    "pause",
    "resume",
    "repeat",
    "restart",
    "quit",
]

_SIMPLE_COMMANDS: dict[str, CommandType] = {
    "s": "submit",
    "submit": "submit",
    "show": "submit",
    "n": "next",
    "next": "next",
    "pause": "pause",
    "hide": "pause",
    "resume": "resume",
    "r": "repeat",
    "repeat": "repeat",
    "restart": "restart",
    "q": "quit",
    "quit": "quit",
    "exit": "quit",
}
_GRADE_COMMANDS = {
    "right": True,
    "y": True,
    "wrong": False,
    "x": False,
}


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: CommandType
    choice: int | None = None
    grade: bool | None = None


@dataclass(frozen=True)
class QuizSessionResult:
    """Return value from ``run_quiz_session``."""

    statistics: SessionStatistics
    snapshot: SessionSnapshot
    exit_action: ExitAction


def parse_session_command(raw: str | None) -> SessionCommand | None:
    """Parse raw user input into a structured command.

    Digits select the displayed choice with that number (1-based).
    """

    if raw is None:
        return None
    text = raw.strip().lower()
    if not text:
        return None
    if text.isdigit():
        return SessionCommand("select", choice=int(text))
    if text in _SIMPLE_COMMANDS:
        return SessionCommand(_SIMPLE_COMMANDS[text])
    if text in _GRADE_COMMANDS:
        return SessionCommand("grade", grade=_GRADE_COMMANDS[text])
    return None


def run_quiz_session(
    session: QuizSession,
    console: Console,
    input_provider: InputProvider,
    *,
    show_explanations: bool = True,
) -> QuizSessionResult:
    """Run the interactive loop until the learner quits or input ends."""

    _render(console, session)
    while True:
        try:
            raw = input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            console.print("\n[bold yellow]Session interrupted.[/]")
            break
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        if command.type == "quit":
            console.print("\n[bold yellow]Ending session.[/]")
            break
        if _apply_command(
            command, session, console, show_explanations=show_explanations
        ):
            _render(console, session)

    exit_action: ExitAction = "completed" if session.complete else "quit"
    return QuizSessionResult(
        statistics=session.statistics(),
        snapshot=session.snapshot(),
        exit_action=exit_action,
    )


def _apply_command(
    command: SessionCommand,
    session: QuizSession,
    console: Console,
    *,
    show_explanations: bool,
) -> bool:
    """Apply ``command``; return True when the screen should be redrawn."""

    if command.type == "pause":
        session.set_page_visible(False)
        console.print("[dim]Timer paused. Type 'resume' to continue.[/]")
        return False
    if command.type == "resume":
        session.set_page_visible(True)
        console.print("[dim]Timer resumed.[/]")
        return False
    if command.type == "restart":
        session.restart()
        console.print("[bold cyan]Progress cleared. Starting over.[/]")
        return True
    if command.type == "repeat":
        if session.repeat_wrong():
            console.print(
                f"Repeating {session.total_questions} wrong answer(s)."
            )
            return True
        console.print("[yellow]Nothing to repeat right now.[/]")
        return False
    if session.complete:
        console.print(
            "[yellow]The pass is complete. Use repeat, restart, or quit.[/]"
        )
        return False
    if command.type == "select":
        return _select(command, session, console)
    if command.type == "submit":
        return _submit(session, console, show_explanations=show_explanations)
    if command.type == "grade":
        return _grade(command, session, console, show_explanations)
    if command.type == "next":
        if session.next():
            return True
        console.print("[red]Submit an answer before moving on.[/]")
        return False
    return False


def _select(
    command: SessionCommand, session: QuizSession, console: Console
) -> bool:
    if session.flashcard:
        console.print("[yellow]Flash cards are graded with right/wrong.[/]")
        return False
    if session.submitted:
        console.print("[yellow]Already submitted. Type n for next.[/]")
        return False
    display = session.shuffled_answers
    number = command.choice or 0
    if not 1 <= number <= len(display):
        console.print(
            f"[red]'{number}' is not a valid choice for this question.[/red]"
        )
        return False
    session.select(display[number - 1].original_index)
    return True


def _submit(
    session: QuizSession, console: Console, *, show_explanations: bool
) -> bool:
    if session.flashcard:
        if session.submitted:
            console.print("[yellow]Already graded. Type n for next.[/]")
            return False
        _render_answers(console, session.correct_answers(), "Answer")
        console.print("[dim]Grade yourself: right or wrong.[/]")
        return False
    result = session.submit()
    if result is None:
        message = (
            "Already submitted. Type n for next."
            if session.submitted
            else "Select an answer first."
        )
        console.print(f"[yellow]{message}[/]")
        return False
    _render_feedback(console, session, result, show_explanations)
    return False


def _grade(
    command: SessionCommand,
    session: QuizSession,
    console: Console,
    show_explanations: bool,
) -> bool:
    if not session.flashcard:
        console.print("[yellow]right/wrong only applies to flash cards.[/]")
        return False
    result = session.submit(self_grade=command.grade)
    if result is None:
        console.print("[yellow]Already graded. Type n for next.[/]")
        return False
    _render_feedback(console, session, result, show_explanations)
    return False


def _render(console: Console, session: QuizSession) -> None:
    if session.complete:
        _render_summary(console, session)
    else:
        _render_question(console, session)


def _render_question(console: Console, session: QuizSession) -> None:
    question = session.current_question
    parts = [
        (f"Question {session.current_index + 1}", "bold cyan"),
        (f" / {session.total_questions}", "dim"),
    ]
    if session.in_repeat_pass:
        parts.append((f"  (try {session.total_tries})", "magenta"))
    console.print()
    console.rule(Text.assemble(*parts))
    console.print(Text(question.prompt, style="bold"))
    if session.flashcard:
        console.print(
            Text(
                "Commands: show, right, wrong, n (next), pause, quit",
                style="dim",
            )
        )
        return
    if session.is_multi_select:
        console.print(Text("Select all that apply.", style="italic"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="right", style="cyan")
    table.add_column("Choice")
    for number, item in enumerate(session.shuffled_answers, start=1):
        chosen = item.original_index in session.selected_answers
        row = Text("• " if chosen else "  ")
        label = Text(_answer_label(item.answer))
        if chosen:
            label.stylize("bold green")
        row += label
        table.add_row(str(number), row)
    console.print(table)
    console.print(
        Text(
            f"Answered {len(session.answer_history)}/"
            f"{session.total_questions} | Time "
            f"{format_elapsed(session.elapsed_ms)} | Commands: choice number,"
            " s (submit), n (next), pause, quit",
            style="dim",
        )
    )


def _render_feedback(
    console: Console,
    session: QuizSession,
    result: bool,
    show_explanations: bool,
) -> None:
    if result:
        console.print("[bold green]Correct![/]")
    else:
        console.print("[bold red]Incorrect.[/]")
        _render_answers(console, session.correct_answers(), "Correct answer")
    explanation = session.current_question.explanation
    if show_explanations and explanation:
        console.print(
            Panel(
                Text(explanation),
                title="Explanation",
                border_style="green" if result else "red",
            )
        )
    hint = (
        "Type n to see your results."
        if session.current_index == session.total_questions - 1
        else "Type n for the next question."
    )
    console.print(Text(hint, style="dim"))


def _render_answers(
    console: Console, answers: list[ShuffledAnswer], title: str
) -> None:
    if not answers:
        console.print("[yellow]No answer key available for this question.[/]")
        return
    for item in answers:
        console.print(
            Text.assemble(f"{title}: ", (_answer_label(item.answer), "bold"))
        )


def _render_summary(console: Console, session: QuizSession) -> None:
    stats = session.statistics()
    grade = calculate_grade(stats.percentage)
    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))

    overview = Table(
        show_header=False,
        box=box.MINIMAL_DOUBLE_HEAD,
        expand=False,
    )
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Questions", str(stats.total_questions))
    overview.add_row("Answered", str(stats.total_answered))
    overview.add_row("Correct", str(stats.correct_count))
    overview.add_row("Score", f"{stats.percentage}%")
    overview.add_row("Grade", f"{grade.grade} ({grade.label})")
    overview.add_row("Solved", str(stats.solved_count))
    overview.add_row("Tries", str(stats.total_tries))
    overview.add_row("Time", format_elapsed(stats.elapsed_ms))
    if not session.flashcard:
        xp = calculate_xp(
            stats.percentage,
            stats.elapsed_ms,
            stats.total_questions,
            stats.total_tries,
        )
        overview.add_row("XP", str(xp.total_xp))
    console.print(overview)

    if stats.all_solved:
        console.print("[bold green]Every question has been solved.[/]")

    if stats.wrong_questions:
        wrong = Table(title="Answered wrong", box=box.SIMPLE, expand=True)
        wrong.add_column("#", justify="right")
        wrong.add_column("Question", overflow="fold")
        for idx, question in enumerate(stats.wrong_questions, start=1):
            wrong.add_row(str(idx), Text(question.prompt))
        console.print(wrong)
        hint = "Commands: r (repeat wrong), restart, quit"
    else:
        hint = "Commands: restart, quit"
    console.print(Text(hint, style="dim"))


def _answer_label(answer: Answer) -> str:
    if answer.is_text:
        return answer.content
    return f"[{answer.type}] {answer.alt_text or answer.content}"
