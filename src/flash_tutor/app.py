"""Interactive CLI application."""
import asyncio
import logging
import sys
from pathlib import Path

import structlog
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt
from rich.table import Table

from flash_tutor.config import DEFAULT_USER_ID, DueFallback, StudySettings, resolve_db_path
from flash_tutor.dashboard import (
    get_activity_color, get_daily_study_minutes, get_deck_summary, get_study_stats,
)
from flash_tutor.db import init_db, DEFAULT_DB_PATH
from flash_tutor.decks import list_decks
from flash_tutor.errors import PersistenceFailure
from flash_tutor.importer import import_file
from flash_tutor.models import QUALITY_LABELS, Quality
from flash_tutor.seed import seed_all, is_seeded
from flash_tutor.store import SqliteStore
from flash_tutor.study import SessionStatus, StudySession

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """User asked to leave the current study session."""


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def session_prompt(prompt: str, **kwargs) -> str:
    if kwargs.get("choices"):
        kwargs["choices"] = list(kwargs["choices"]) + list(EXIT_WORDS)
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    answer = Prompt.ask(prompt, choices=choices + list(EXIT_WORDS))
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return int(answer)


def show_welcome():
    console.print(Panel(
        "[bold]Flash Tutor[/bold]\n[dim]Spaced-repetition flashcards[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("study", "Study a deck"),
        ("decks", "List decks"),
        ("dashboard", "Progress + study time"),
        ("import", "Import cards from a file"),
        ("settings", "Idle timeout and due policy"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


async def ask(prompt: str, **kwargs) -> str:
    # Prompts block, so they run on a worker thread to keep the idle timer polling
    return await asyncio.to_thread(session_prompt, prompt, **kwargs)


async def ask_rating() -> int:
    choices = [str(int(q)) for q in Quality]
    label = ", ".join(f"{int(q)}={QUALITY_LABELS[q]}" for q in Quality)
    return await asyncio.to_thread(session_int_prompt, f"Rate yourself ({label})", choices)


async def choose_start(session: StudySession) -> None:
    saved = await session.load()
    if saved is None:
        return
    console.print(Panel(
        f"Round {saved.current_round}, card {saved.current_card_index + 1} of {len(saved.card_order)}",
        title="Unfinished session found", border_style="yellow",
    ))
    choice = await ask("Resume or start fresh?", choices=["resume", "fresh"], default="resume")
    if choice == "resume":
        await session.resume()
    else:
        await session.discard_saved()


async def rate_with_retry(session: StudySession, rating: int, hint_used: bool) -> None:
    while True:
        try:
            await session.rate(rating, hint_used=hint_used)
            return
        except PersistenceFailure as e:
            console.print(f"[red]Your rating might not have been saved ({e}).[/red]")
            retry = await ask("Try again?", choices=["y", "n"], default="y")
            if retry != "y":
                raise SessionExitRequested() from e


async def study_card(session: StudySession) -> None:
    card = session.current_card
    position = session.current_card_index + 1
    console.print(Panel(
        card.front,
        title=f"Round {session.current_round} - Card {position}/{len(session.card_order)}",
        border_style="cyan",
    ))
    hint_used = False
    if card.hint:
        answer = await ask("[dim]Enter to reveal, 'h' for a hint[/dim]", default="")
        if answer.strip().lower() == "h":
            hint_used = True
            session.record_activity()
            console.print(f"[yellow]Hint:[/yellow] {card.hint}")
            await ask("[dim]Press Enter to reveal answer[/dim]", default="")
    else:
        await ask("[dim]Press Enter to reveal answer[/dim]", default="")
    session.record_activity()
    console.print(Panel(card.back, border_style="green"))
    rating = await ask_rating()
    await rate_with_retry(session, rating, hint_used)
    console.print()


async def run_study_session(session: StudySession) -> None:
    try:
        await choose_start(session)
        while True:
            if session.status == SessionStatus.ACTIVE:
                await study_card(session)
            elif session.status == SessionStatus.ROUND_COMPLETE:
                stats = session.round_stats
                console.print(
                    f"[bold]Round {session.current_round} done:[/bold] "
                    f"[green]{stats.correct} correct[/green], [red]{stats.incorrect} incorrect[/red]"
                )
                await ask(f"[dim]Press Enter to retry {len(session.cards_to_retry)} card(s)[/dim]", default="")
                await session.next_round()
            else:
                if not session.card_order:
                    console.print("[yellow]This deck has no cards to study.[/yellow]")
                    return
                console.print("[green]Great job! You've completed this study session.[/green]")
                again = await ask("Review again?", choices=["y", "n"], default="n")
                if again != "y":
                    return
                await session.review_again()
    except SessionExitRequested:
        console.print("[dim]Session saved. You can resume it later.[/dim]")
    finally:
        await session.close()


def choose_deck(db_path: str) -> str | None:
    decks = list_decks(db_path)
    if not decks:
        console.print("[yellow]No decks yet. Use 'import' to add some cards.[/yellow]")
        return None
    for i, d in enumerate(decks, 1):
        console.print(f"  [cyan]{i}[/cyan]) {d['title']} [dim]({d['card_count']} cards)[/dim]")
    choice = IntPrompt.ask("Select deck", choices=[str(i) for i in range(1, len(decks) + 1)])
    return decks[choice - 1]["id"]


def cmd_study(db_path: str):
    deck_id = choose_deck(db_path)
    if deck_id is None:
        return
    session = StudySession(SqliteStore(db_path), DEFAULT_USER_ID, deck_id, StudySettings.load(db_path))
    console.print("[dim]Type 'q' at any prompt to leave the session.[/dim]")
    asyncio.run(run_study_session(session))


def cmd_decks(db_path: str):
    table = Table(title="Decks")
    table.add_column("Deck", style="cyan")
    table.add_column("Subject")
    table.add_column("Cards", justify="right")
    table.add_column("Due", justify="right")
    for d in list_decks(db_path):
        summary = get_deck_summary(db_path, DEFAULT_USER_ID, d["id"])
        table.add_row(d["title"], d["subject"] or "", str(d["card_count"]), str(summary["due"]))
    console.print(table)


def cmd_dashboard(db_path: str):
    table = Table(title="Deck Progress")
    table.add_column("Deck", style="cyan")
    table.add_column("New", justify="right")
    table.add_column("Learning", justify="right")
    table.add_column("Review", justify="right")
    table.add_column("Due", justify="right")
    for d in list_decks(db_path):
        s = get_deck_summary(db_path, DEFAULT_USER_ID, d["id"])
        table.add_row(d["title"], str(s["new"]), str(s["learning"]), str(s["review"]), f"[bold]{s['due']}[/bold]")
    console.print(table)

    daily = get_daily_study_minutes(db_path, DEFAULT_USER_ID, days=14)
    if daily:
        console.print("\n[bold]Last 14 days:[/bold]")
        for day, minutes in daily.items():
            color = get_activity_color(minutes)
            console.print(f"  {day}  [{color}]{'█' * max(1, int(minutes // 5))}[/{color}] {minutes} min")

    stats = get_study_stats(db_path, DEFAULT_USER_ID)
    console.print(f"\n  Sessions: [bold]{stats['sessions']}[/bold]  |  "
                  f"Active time: [bold]{stats['total_minutes']} min[/bold]  |  "
                  f"Cards studied: [bold]{stats['cards_studied']}[/bold]")


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    deck_id = Prompt.ask("Deck id [dim](blank = file name)[/dim]", default="") or None
    result = import_file(db_path, file_path, deck_id=deck_id)
    console.print(f"[green]Imported {result['cards']} cards from {result['filename']} → {result['deck_id']}[/green]")


def cmd_settings(db_path: str):
    settings = StudySettings.load(db_path)
    console.print(f"  Idle timeout: [bold]{settings.idle_timeout_ms // 1000}s[/bold]")
    console.print(f"  When nothing is due: [bold]{settings.due_fallback.value}[/bold]")
    settings.idle_timeout_ms = IntPrompt.ask("Idle timeout (seconds)", default=settings.idle_timeout_ms // 1000) * 1000
    settings.due_fallback = DueFallback(Prompt.ask(
        "When nothing is due, show", choices=[f.value for f in DueFallback], default=settings.due_fallback.value,
    ))
    settings.save(db_path)
    console.print("[green]Settings saved.[/green]")


def main():
    configure_logging(verbose=any(arg in ("-v", "--verbose") for arg in sys.argv[1:]))
    db_path = resolve_db_path(DEFAULT_DB_PATH)
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="study").strip().lower()
        try:
            if choice == "study":
                cmd_study(db_path)
            elif choice == "decks":
                cmd_decks(db_path)
            elif choice == "dashboard":
                cmd_dashboard(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you next review![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
