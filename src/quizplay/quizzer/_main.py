import argparse
import logging
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..config import (
    CONFIG_FILENAME,
    ConfigOverrides,
    LoadResult,
    QuizplayConfigError,
    load_config,
    write_config_template,
)
from ..core import configure_logger
from ..engine import (
    EmptyPoolError,
    ProgressRecord,
    Quiz,
    QuizSession,
    SessionSnapshot,
    SlotIdentityResolver,
    StartMode,
    build_wrong_pool,
    count_due_reviews,
    format_elapsed,
    split_progress_by_origin,
)
from ..storage import (
    ProgressStore,
    ProgressStoreError,
    QuizFormatError,
    load_quiz,
)
from .session import run_quiz_session

DEFAULT_USER = "default"


def _make_console() -> Console:
    return Console()


def _prompt() -> str:
    return input("> ")


def _load_settings(args: argparse.Namespace) -> LoadResult:
    overrides = ConfigOverrides(
        flashcard=getattr(args, "flashcard", None),
        seed=getattr(args, "seed", None),
        log_level=getattr(args, "log_level", None),
    )
    config_path = getattr(args, "config", None)
    return load_config(
        config_path=Path(config_path) if config_path else None,
        overrides=overrides,
    )


def _logger_for(
    loaded: LoadResult, args: argparse.Namespace
) -> logging.Logger:
    logger, _ = configure_logger(
        "quizplay",
        log_dir=loaded.layout.path_for("logs"),
        level=loaded.config.log_level,
        verbose=bool(getattr(args, "verbose", False)),
    )
    return logger


def _cmd_init(args: argparse.Namespace) -> int:
    try:
        loaded = load_config()
    except QuizplayConfigError as exc:
        print(f"Error: {exc}")
        return 2
    path = loaded.layout.path_for("config") / CONFIG_FILENAME
    if path.exists() and not args.force:
        print(f"{CONFIG_FILENAME} already exists at {path}")
        return 0
    write_config_template(path, overwrite=True)
    print(f"Created template {path}")
    return 0


def _cmd_start(args: argparse.Namespace) -> int:
    """Play one quiz file, resuming the user's saved progress if any."""

    try:
        loaded = _load_settings(args)
        quiz = load_quiz(Path(args.quiz_file))
    except (QuizplayConfigError, QuizFormatError) as exc:
        print(f"Error: {exc}")
        return 2
    logger = _logger_for(loaded, args)
    store = ProgressStore(loaded.layout.path_for("progress"))
    try:
        resumed = store.load(args.user, quiz.id)
    except ProgressStoreError as exc:
        print(f"Error: {exc}")
        return 2

    def _persist(snapshot: SessionSnapshot) -> None:
        store.save(args.user, quiz.id, snapshot)

    return _play(
        quiz,
        loaded,
        args,
        logger=logger,
        resumed=resumed,
        persist=_persist,
    )


def _cmd_wrong_pool(args: argparse.Namespace) -> int:
    """Replay every question whose last answer was wrong across quizzes."""

    try:
        loaded = _load_settings(args)
        quizzes = [load_quiz(Path(item)) for item in args.quiz_files]
    except (QuizplayConfigError, QuizFormatError) as exc:
        print(f"Error: {exc}")
        return 2
    logger = _logger_for(loaded, args)
    store = ProgressStore(loaded.layout.path_for("progress"))
    progress_by_quiz: dict[str, SessionSnapshot] = {}
    try:
        for quiz in quizzes:
            snapshot = store.load(args.user, quiz.id)
            if snapshot is not None:
                progress_by_quiz[quiz.id] = snapshot
    except ProgressStoreError as exc:
        print(f"Error: {exc}")
        return 2

    resolver = SlotIdentityResolver()
    pool_quiz = build_wrong_pool(quizzes, progress_by_quiz, resolver=resolver)
    if not pool_quiz.questions:
        print("No wrongly answered questions to repeat.")
        return 1
    seeded: dict[str, ProgressRecord] = {}
    for question in pool_quiz.questions:
        key = resolver.key_for(question, pool_quiz.id)
        origin = progress_by_quiz[question.origin_quiz_id or ""]
        seeded[key] = origin.progress_map[key]

    def _persist(snapshot: SessionSnapshot) -> None:
        grouped = split_progress_by_origin(
            pool_quiz, snapshot.progress_map, resolver=resolver
        )
        for quiz_id, records in grouped.items():
            store.merge_records(args.user, quiz_id, records)

    return _play(
        pool_quiz,
        loaded,
        args,
        logger=logger,
        resumed=SessionSnapshot(progress_map=seeded),
        persist=_persist,
        mode=StartMode.FRESH,
        resolver=resolver,
    )


def _play(
    quiz: Quiz,
    loaded: LoadResult,
    args: argparse.Namespace,
    *,
    logger: logging.Logger,
    resumed: Optional[SessionSnapshot],
    persist: Callable[[SessionSnapshot], None],
    mode: Optional[StartMode] = None,
    resolver: Optional[SlotIdentityResolver] = None,
) -> int:
    config = loaded.config
    try:
        session = QuizSession(
            quiz,
            resumed=resumed,
            mode=mode or args.mode,
            # None defers to the quiz's own flash card flag.
            flashcard=config.flashcard,
            policy=config.scheduling_policy(),
            resolver=resolver,
            rng=random.Random(config.seed),
            on_change=persist,
            logger=logger,
        )
    except EmptyPoolError as exc:
        print(f"Error: {exc}")
        return 1

    console = _make_console()
    console.print(Text(quiz.title or quiz.id, style="bold magenta"))
    result = run_quiz_session(
        session,
        console,
        _prompt,
        show_explanations=args.explain,
    )
    persist(result.snapshot)
    logger.info(
        "Session closed",
        extra={
            "event": "session_closed",
            "quiz_id": quiz.id,
            "exit_action": result.exit_action,
            "elapsed_ms": result.snapshot.elapsed_ms,
        },
    )
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    """Print per-question mastery for one quiz."""

    try:
        loaded = _load_settings(args)
        quiz = load_quiz(Path(args.quiz_file))
        snapshot = ProgressStore(loaded.layout.path_for("progress")).load(
            args.user, quiz.id
        )
    except (QuizplayConfigError, QuizFormatError, ProgressStoreError) as exc:
        print(f"Error: {exc}")
        return 2
    if snapshot is None:
        print(
            f"No progress recorded for '{quiz.id}'. Run 'quizplay start "
            f"{args.quiz_file}' first."
        )
        return 1

    resolver = SlotIdentityResolver()
    now = datetime.now(timezone.utc)
    table = Table(title=quiz.title or quiz.id, box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right")
    table.add_column("Question", overflow="fold")
    table.add_column("Tries", justify="right")
    table.add_column("Streak", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Last", justify="center")
    table.add_column("Next review")
    for question in quiz.questions:
        record = snapshot.progress_map.get(resolver.key_for(question, quiz.id))
        if record is None:
            table.add_row(
                str(question.slot + 1),
                Text(question.prompt),
                "0",
                "-",
                "-",
                "-",
                "-",
            )
            continue
        review = record.next_review_date
        table.add_row(
            str(question.slot + 1),
            Text(question.prompt),
            str(record.attempts),
            str(record.correct_streak),
            str(record.difficulty_level),
            "ok" if record.last_answer_correct else "x",
            review.strftime("%Y-%m-%d %H:%M") if review else "-",
        )

    console = _make_console()
    console.print(table)
    solved = len(snapshot.solved_question_keys)
    console.print(
        f"Solved {solved}/{len(quiz.questions)} | Tries "
        f"{snapshot.total_tries} | Time {format_elapsed(snapshot.elapsed_ms)}"
        f" | Due for review: {count_due_reviews(snapshot.progress_map, now)}"
    )
    return 0


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to quizplay.toml")
    parser.add_argument("--log-level", help="Log level for the log file")
    parser.add_argument(
        "--user",
        default=DEFAULT_USER,
        help="Name the saved progress is stored under",
    )


def _add_play_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--flashcard",
        dest="flashcard",
        action="store_true",
        help="Self-grade questions as flash cards",
    )
    parser.add_argument(
        "--no-flashcard", dest="flashcard", action="store_false"
    )
    parser.add_argument("--seed", type=int, help="Fixed shuffle seed")
    parser.add_argument("--explain", dest="explain", action="store_true")
    parser.add_argument("--no-explain", dest="explain", action="store_false")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror debug logs to stderr",
    )
    parser.set_defaults(flashcard=None, explain=True)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="quizplay",
        description="Play multiple-choice quizzes with spaced repetition",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp_init = sub.add_parser(
        "init", help="Create the workspace and a quizplay.toml template"
    )
    sp_init.add_argument("--force", action="store_true")

    sp_start = sub.add_parser("start", help="Start a quiz session")
    sp_start.add_argument("quiz_file")
    sp_start.add_argument(
        "--mode",
        choices=[mode.value for mode in StartMode],
        default=StartMode.FRESH.value,
    )
    _add_common(sp_start)
    _add_play_options(sp_start)

    sp_rep = sub.add_parser("report", help="Show per-question progress")
    sp_rep.add_argument("quiz_file")
    _add_common(sp_rep)

    sp_wrong = sub.add_parser(
        "wrong-pool", help="Repeat wrongly answered questions across quizzes"
    )
    sp_wrong.add_argument("quiz_files", nargs="+")
    _add_common(sp_wrong)
    _add_play_options(sp_wrong)
    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.command == "init":
        code = _cmd_init(args)
    elif args.command == "start":
        code = _cmd_start(args)
    elif args.command == "report":
        code = _cmd_report(args)
    elif args.command == "wrong-pool":
        code = _cmd_wrong_pool(args)
    else:  # pragma: no cover - fallback guard
        parser.print_help()
        code = 2
    raise SystemExit(code)
