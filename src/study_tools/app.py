"""Interactive CLI application."""
import logging
import uuid
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt, IntPrompt

from study_tools.ai_client import OpenAIQuizClient
from study_tools.commands import COMMANDS
from study_tools.config import (
    POMODORO_KEYS, get_settings, load_pomodoro_settings, save_pomodoro_settings,
)
from study_tools.db import init_db
from study_tools.errors import IllegalTransition, UnknownStrategy
from study_tools.importer import import_file, list_imported_content, get_imported_content
from study_tools.models import PomodoroPhase, PomodoroSettings, StudyStrategyType, StudyTopic, PRIORITIES
from study_tools.pomodoro import (
    RUNNING, PomodoroEngine, PomodoroObserver, format_time, phase_label,
)
from study_tools.question_generator import QuestionGenerator
from study_tools.quiz import (
    Quiz, build_quiz, record_quiz_result, get_quiz_history, get_average_score,
)
from study_tools.repositories import SqlitePomodoroRepository, SqliteStudyPlanRepository
from study_tools.study_plan import StudyPlanCaretaker, StudyPlanGenerator, StudyPlanOriginator

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_USER = "guest-user"
EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The user typed 'q' or 'menu' in the middle of a session."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None, **kwargs) -> int:
    """Like IntPrompt.ask, but 'q' and 'menu' leave the session."""
    while True:
        answer = session_prompt(prompt, **kwargs).strip()
        if choices and answer not in choices:
            console.print(f"[red]Please choose one of: {', '.join(choices)}[/red]")
            continue
        try:
            return int(answer)
        except ValueError:
            console.print("[red]Please enter a number[/red]")


def setup_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome():
    console.print(Panel(
        "[bold]Study Tools[/bold]\n[dim]Pomodoro timer, quizzes and study plans[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("pomodoro", "Focus timer"),
        ("quiz", "Quiz from your material"),
        ("history", "Past quiz scores"),
        ("plan", "Study plan"),
        ("import", "Add study material"),
        ("settings", "Pomodoro durations"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


# ----- Pomodoro -----

class ConsoleObserver(PomodoroObserver):
    """Collects phase and session completions for printing between prompts.

    Callbacks may arrive on the ticker thread while a prompt is waiting, so
    nothing is printed from them directly. Per-second updates are ignored.
    """

    def __init__(self):
        self.pending: list[str] = []

    def on_phase_complete(self, ended_phase):
        self.pending.append(f"[green]{phase_label(ended_phase)} finished.[/green]")

    def on_session_complete(self, completed_sessions):
        self.pending.append(f"[bold green]Sessions completed: {completed_sessions}[/bold green]")

    def drain(self) -> list[str]:
        messages, self.pending = self.pending, []
        return messages


def show_timer(engine: PomodoroEngine) -> None:
    console.print(Panel(
        f"[bold]{format_time(engine.remaining_time)}[/bold]  {phase_label(engine.phase)}\n"
        f"[dim]{engine.state.name.title()} | sessions completed: {engine.completed_sessions}[/dim]",
        title="Pomodoro", border_style="red" if engine.phase == PomodoroPhase.WORK else "green",
    ))


def sync_ticking(engine: PomodoroEngine) -> None:
    if engine.state is RUNNING:
        if not engine.is_ticking:
            engine.start_ticking()
    else:
        engine.stop_ticking()


def cmd_pomodoro(db_path: str, engine: PomodoroEngine | None = None):
    engine = engine or PomodoroEngine(load_pomodoro_settings(db_path))
    repo = SqlitePomodoroRepository(db_path)
    snapshot = repo.load()
    if snapshot:
        with engine.lock:
            engine.restore(snapshot)
            sync_ticking(engine)
        console.print("[dim]Restored your previous timer.[/dim]")

    observer = ConsoleObserver()
    unsubscribe = engine.subscribe(observer)
    last_reset = None
    try:
        while True:
            with engine.lock:
                announcements = observer.drain()
            for message in announcements:
                console.print(message)
            show_timer(engine)
            choice = Prompt.ask(
                "Timer",
                choices=["start", "pause", "resume", "skip", "reset", "undo", "status", "back"],
                default="status",
            )
            if choice == "back":
                break
            if choice == "status":
                continue
            with engine.lock:
                if choice == "undo":
                    if last_reset is None:
                        console.print("[yellow]Nothing to undo.[/yellow]")
                        continue
                    last_reset.undo()
                    last_reset = None
                else:
                    command = COMMANDS[choice](engine)
                    try:
                        command.execute()
                    except IllegalTransition as e:
                        console.print(f"[yellow]{e.message}[/yellow]")
                        continue
                    if choice == "reset":
                        last_reset = command
                sync_ticking(engine)
                if choice == "reset":
                    repo.clear()
                else:
                    repo.save(engine.snapshot())
    finally:
        with engine.lock:
            engine.stop_ticking()
            # Ticks since the last command are not in the stored snapshot yet
            if engine.state is RUNNING:
                repo.save(engine.snapshot())
        unsubscribe()


# ----- Quiz -----

def choose_material(db_path: str) -> str | None:
    items = list_imported_content(db_path)
    if items:
        table = Table(title="Imported Material")
        table.add_column("ID", justify="right")
        table.add_column("File")
        table.add_column("Chars", justify="right")
        for item in items:
            table.add_row(str(item["id"]), item["filename"], str(item["length"]))
        console.print(table)
        choice = session_prompt("Material ID, or 'paste' to enter text", default=str(items[-1]["id"]))
        if choice.strip().lower() != "paste":
            try:
                return get_imported_content(db_path, int(choice))
            except ValueError:
                console.print(f"[red]Not a material ID: {choice}[/red]")
                return None
    return session_prompt("Paste the text to quiz yourself on")


def show_question(number: int, total: int, question) -> None:
    console.print(f"\n[bold]Q{number}/{total}.[/bold] {question.text}\n")
    for i, option in enumerate(question.options, 1):
        console.print(f"  [cyan]{i})[/cyan] {option}")


def run_quiz_session(db_path: str, quiz: Quiz) -> int:
    """Ask every question, complete the quiz and record the score."""
    questions = quiz.quiz.questions
    if not questions:
        console.print("[yellow]No questions available![/yellow]")
        return 0
    quiz.start()
    while quiz.can_answer() and len(quiz.answers) < len(questions):
        question = quiz.get_current_question()
        show_question(quiz.current_question_index + 1, len(questions), question)
        answer = session_int_prompt(
            "\nYour answer", choices=[str(i) for i in range(1, len(question.options) + 1)],
        )
        quiz.answer_question(question.id, answer - 1)
    quiz.complete()
    score = record_quiz_result(db_path, quiz)
    console.print(f"\n[bold]Score: {score}%[/bold]\n")
    return score


def show_review(quiz: Quiz) -> None:
    quiz.review()
    for i, question in enumerate(quiz.quiz.questions, 1):
        user_answer = quiz.get_user_answer(question.id)
        correct = question.options[question.correct_answer]
        if user_answer == question.correct_answer:
            console.print(f"[green]Q{i}. Correct:[/green] {correct}")
        else:
            given = question.options[user_answer] if user_answer is not None else "(no answer)"
            console.print(f"[red]Q{i}. You said:[/red] {given}  [green]Answer:[/green] {correct}")
        if question.explanation:
            console.print(f"[dim]{question.explanation}[/dim]")


def cmd_quiz(db_path: str, generator: QuestionGenerator | None = None):
    console.print("\n[bold]Quiz[/bold]")
    content = choose_material(db_path)
    if not content:
        console.print("[yellow]Nothing to quiz on. Use 'import' to add material.[/yellow]")
        return
    if generator is None:
        client = OpenAIQuizClient.from_settings(get_settings())
        generator = QuestionGenerator(ai_client=client if client.can_generate() else None)
    while True:
        count = IntPrompt.ask("Number of questions", default=10)
        if count >= 1:
            break
        console.print("[red]Ask for at least one question[/red]")
    try:
        questions = generator.generate_mixed_quiz(content, count)
    except UnknownStrategy as e:
        console.print(f"[yellow]Could not build a quiz from that material: {e}[/yellow]")
        return
    quiz = Quiz(build_quiz(questions, title=f"Quiz {datetime.now():%Y-%m-%d %H:%M}"))
    run_quiz_session(db_path, quiz)
    if Prompt.ask("Review answers?", choices=["y", "n"], default="y") == "y":
        show_review(quiz)


def cmd_history(db_path: str):
    history = get_quiz_history(db_path)
    if not history:
        console.print("[yellow]No quizzes taken yet.[/yellow]")
        return
    table = Table(title="Recent Quizzes")
    table.add_column("Date")
    table.add_column("Title")
    table.add_column("Score", justify="right")
    table.add_column("Questions", justify="right")
    for row in history:
        table.add_row(row["completed_at"][:16], row["title"], f"{row['score']}%", str(row["total_questions"]))
    console.print(table)
    console.print(f"\n  Average score: [bold]{get_average_score(db_path)}%[/bold]")


# ----- Study plan -----

def prompt_topic(index: int) -> StudyTopic | None:
    title = Prompt.ask(f"Topic {index} title (blank to finish)", default="").strip()
    if not title:
        return None
    while True:
        raw = Prompt.ask("Estimated hours", default="2")
        try:
            hours = float(raw)
        except ValueError:
            hours = 0
        if hours > 0:
            break
        console.print("[red]Enter a positive number of hours[/red]")
    priority = Prompt.ask("Priority", choices=list(PRIORITIES), default="MEDIUM")
    return StudyTopic(id=f"topic-{uuid.uuid4().hex[:8]}", title=title, estimated_hours=hours, priority=priority)


def create_plan(user_id: str = DEFAULT_USER, generator: StudyPlanGenerator | None = None):
    generator = generator or StudyPlanGenerator()
    topics = []
    while True:
        topic = prompt_topic(len(topics) + 1)
        if topic is None:
            break
        topics.append(topic)
    if not topics:
        console.print("[yellow]A plan needs at least one topic.[/yellow]")
        return None
    strategy = StudyStrategyType(Prompt.ask(
        "Strategy", choices=[s.value for s in StudyStrategyType], default=StudyStrategyType.REGULAR.value,
    ))
    target = Prompt.ask("Target date (YYYY-MM-DD, blank for none)", default="").strip()
    target_date = None
    if target:
        try:
            target_date = datetime.strptime(target, "%Y-%m-%d")
        except ValueError:
            console.print(f"[yellow]Ignoring invalid date: {target}[/yellow]")
    days = generator.calculate_days(topics, strategy, target_date)
    console.print(f"[dim]{days} day(s) {'until your target' if target_date else 'needed at this pace'}[/dim]")
    return generator.generate_plan(topics, strategy, user_id=user_id, target_date=target_date)


def show_plan(plan, progress: dict) -> None:
    titles = {t.id: t.title for t in plan.topics}
    table = Table(title=f"Study Plan ({plan.strategy.value.title()})")
    table.add_column("#", justify="right")
    table.add_column("Date")
    table.add_column("Topic")
    table.add_column("Hours", justify="right")
    table.add_column("Status")
    for i, session in enumerate(plan.sessions, 1):
        table.add_row(
            str(i),
            session.scheduled_date.strftime("%a %b %d"),
            titles.get(session.topic_id, session.topic_id),
            f"{session.duration:g}",
            "[green]Done[/green]" if session.completed else "",
        )
    console.print(table)
    console.print(
        f"  Progress: [bold]{progress['percentage_complete']}%[/bold]  |  "
        f"Sessions: {progress['completed_sessions']}/{progress['total_sessions']}  |  "
        f"Topics: {progress['completed_topics']}/{progress['total_topics']}  |  "
        f"Hours: {progress['hours_studied']:g}/{progress['total_hours']:g}"
    )


def cmd_plan(db_path: str, user_id: str = DEFAULT_USER):
    repo = SqliteStudyPlanRepository(db_path)
    generator = StudyPlanGenerator()
    plan = repo.load(user_id)
    if plan is None:
        if Prompt.ask("No study plan yet. Create one?", choices=["y", "n"], default="y") == "n":
            return
        plan = create_plan(user_id, generator)
        if plan is None:
            return
        repo.save(plan)

    originator = StudyPlanOriginator(plan)
    caretaker = StudyPlanCaretaker()
    while True:
        show_plan(originator.plan, originator.get_progress())
        action = Prompt.ask(
            "Plan", choices=["complete", "undo", "add", "remove", "new", "back"], default="back",
        )
        if action == "back":
            break
        elif action == "complete":
            number = session_int_prompt("Session #")
            if not 1 <= number <= len(originator.plan.sessions):
                console.print("[red]No such session.[/red]")
                continue
            caretaker.save(originator.plan)
            if not originator.complete_session(originator.plan.sessions[number - 1].id):
                caretaker.pop()
                console.print("[yellow]That session is already done.[/yellow]")
                continue
        elif action == "undo":
            state = caretaker.pop()
            if state is None:
                console.print("[yellow]Nothing to undo.[/yellow]")
                continue
            originator.restore_from_memento(state)
        elif action == "add":
            topic = prompt_topic(len(originator.plan.topics) + 1)
            if topic is None:
                continue
            caretaker.save(originator.plan)
            originator.add_topic(topic)
            strategy = generator.get_strategy(originator.plan.strategy)
            originator.plan.sessions.extend(strategy.distribute_topics([topic]))
        elif action == "remove":
            topics = originator.plan.topics
            for i, t in enumerate(topics, 1):
                console.print(f"  [cyan]{i})[/cyan] {t.title}")
            number = session_int_prompt("Topic # to remove")
            if not 1 <= number <= len(topics):
                console.print("[red]No such topic.[/red]")
                continue
            caretaker.save(originator.plan)
            originator.remove_topic(topics[number - 1].id)
        elif action == "new":
            new_plan = create_plan(user_id, generator)
            if new_plan is None:
                continue
            originator = StudyPlanOriginator(new_plan)
            caretaker.clear()
        repo.save(originator.plan)


# ----- Import / settings -----

def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_file(db_path, file_path)
    console.print(f"[green]Imported {result['filename']} ({result['length']} chars)[/green]")


def cmd_settings(db_path: str):
    current = load_pomodoro_settings(db_path)
    console.print("\n[bold]Pomodoro Settings[/bold] [dim](durations in minutes)[/dim]")
    values = {}
    for field_name in POMODORO_KEYS:
        label = field_name.replace("_", " ").capitalize()
        values[field_name] = IntPrompt.ask(label, default=getattr(current, field_name))
    try:
        new_settings = PomodoroSettings(**values)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return
    save_pomodoro_settings(db_path, new_settings)
    console.print("[green]Settings saved.[/green]")


def main():
    settings = get_settings()
    setup_logging(settings.log_level)
    db_path = settings.db_path
    init_db(db_path)
    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="pomodoro").strip().lower()
        try:
            if choice == "pomodoro":
                cmd_pomodoro(db_path)
            elif choice == "quiz":
                cmd_quiz(db_path)
            elif choice == "history":
                cmd_history(db_path)
            elif choice == "plan":
                cmd_plan(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Happy studying![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Back to the menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.debug("Command %s failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
