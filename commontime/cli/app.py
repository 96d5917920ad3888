"""
Main CLI application using Typer.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Coroutine, List, Optional, TypeVar

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.http_client import ApiClient
from ..adapters.memory_store import InMemoryEventStore
from ..adapters.rate_limiter import PasscodeRateLimiter
from ..config import AppConfig, get_default_config_path
from ..domain.aggregation import intensity
from ..domain.exceptions import CommonTimeError, RateLimitedError
from ..domain.models import SLOT_LABELS, Leaderboard, SlotType, TimeSlot
from ..domain.week_grid import is_today, week_start
from ..services.event_board import EventBoardService, create_event
from ..services.event_store import EventStoreProtocol
from ..services.session import SessionContext, SessionStorage

app = typer.Typer(
    name="commontime",
    help="Find the common time: collect everyone's availability for an event",
    add_completion=False
)

console = Console()

T = TypeVar("T")


@dataclass
class CliState:
    config: AppConfig
    mock: bool
    storage: SessionStorage
    session: SessionContext


def _run(coro: Coroutine[object, object, T]) -> T:
    return asyncio.run(coro)


def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _build_store(state: CliState) -> EventStoreProtocol:
    config = state.config
    if state.mock:
        try:
            return InMemoryEventStore(
                data_file=config.get_data_file(),
                ttl_days=config.event_ttl_days,
                rate_limiter=PasscodeRateLimiter(
                    attempts=config.passcode_limit.attempts,
                    window_seconds=config.passcode_limit.window_seconds,
                ),
            )
        except CommonTimeError as e:
            _handle_error(e)
    return ApiClient(base_url=config.api_base_url, timeout=config.request_timeout_seconds)


def _build_board(state: CliState, event_id: str) -> EventBoardService:
    return EventBoardService(
        _build_store(state),
        state.session,
        event_id,
        max_weeks=state.config.max_weeks,
    )


def _parse_cell(value: str) -> TimeSlot:
    try:
        return TimeSlot.parse_key(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


def _handle_error(error: Exception) -> None:
    if isinstance(error, RateLimitedError) and error.retry_after:
        _fail(f"{error} (retry after {error.retry_after}s)")
    _fail(str(error))


def _save_session(state: CliState) -> None:
    state.storage.save(state.session)


def _render_week(board: EventBoardService, week_index: int, tz: str) -> Table:
    """
    Render one week as a 3 x 7 grid.

    ● marks the participant's own selection; the number is how many people
    picked the slot in total.
    """
    monday = week_start(board.event.start_date, week_index)
    leaderboard = board.leaderboard()
    counts = {entry.time_slot: entry.count for entry in leaderboard}
    own = board.selection.current

    table = Table(
        title=f"Week {week_index + 1}: {monday.format('MMM D')} - {monday.add(days=6).format('MMM D')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("", style="bold")
    for offset in range(7):
        day = monday.add(days=offset)
        style = "bold yellow" if is_today(day.to_date_string(), tz) else None
        table.add_column(day.format("ddd D"), justify="center", header_style=style)

    for row in board.week_grid(week_index):
        cells = []
        for cell in row:
            count = counts.get(cell, 0)
            mark = "●" if cell in own else "·"
            if count:
                level = intensity(count, leaderboard.max_count)
                style = "bold green" if level >= 0.45 else "green"
                cells.append(f"[{style}]{mark} {count}[/{style}]")
            else:
                cells.append(f"[dim]{mark}[/dim]")
        table.add_row(SLOT_LABELS[row[0].slot], *cells)

    return table


def _render_leaderboard(leaderboard: Leaderboard, title: str, limit: Optional[int] = None) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Date", style="bold yellow")
    table.add_column("Slot")
    table.add_column("Count", justify="right")
    table.add_column("Participants", style="dim")

    entries = leaderboard.entries[:limit] if limit else leaderboard.entries
    for rank, entry in enumerate(entries, 1):
        day = pendulum.from_format(entry.date, "YYYY-MM-DD")
        table.add_row(
            str(rank),
            day.format("ddd, YYYY-MM-DD"),
            SLOT_LABELS[entry.slot],
            f"{entry.count}/{leaderboard.max_count}",
            ", ".join(entry.participants)
        )
    return table


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use the local JSON store instead of the backend.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Collect availability for an event and find the common time.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        config = AppConfig.load_from_yaml(config_file or get_default_config_path())
        storage = SessionStorage(config.get_session_file())
        session = storage.load()
    except (ValueError, CommonTimeError) as e:
        _fail(str(e))

    ctx.obj = CliState(config=config, mock=mock, storage=storage, session=session)


@app.command()
def create(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Event title (1-50 characters)")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD). Defaults to today.")] = None,
    passcode: Annotated[Optional[str], typer.Option("--passcode", help="4-digit passcode. Generated when omitted.")] = None,
    nickname: Annotated[Optional[str], typer.Option("--nickname", help="Join the new event under this nickname.")] = None,
):
    """
    Create a new event and print its passcode.
    """
    state = _state(ctx)
    start_date = start or pendulum.today(state.config.timezone).to_date_string()

    try:
        created = _run(create_event(
            _build_store(state),
            state.session,
            title=title,
            start_date=start_date,
            passcode=passcode,
            nickname=nickname,
        ))
    except CommonTimeError as e:
        _handle_error(e)

    _save_session(state)
    joined_as = f"[bold]Joined as:[/bold] {state.session.nickname}\n" if nickname else ""
    console.print(Panel.fit(
        f"[bold green]✓ Event created[/bold green]\n\n"
        f"[bold]Event ID:[/bold] {created.id}\n"
        f"[bold]Passcode:[/bold] {created.passcode}\n"
        f"{joined_as}"
        f"[dim]Creator token stored in {state.storage.path}[/dim]",
        title=title
    ))


@app.command()
def join(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
    nickname: Annotated[str, typer.Argument(help="Your nickname (1-20 characters)")],
    passcode: Annotated[Optional[str], typer.Option("--passcode", "-p", help="Event passcode")] = None,
):
    """
    Verify the passcode and join an event under a nickname.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)

    if passcode is None and not state.session.is_verified(event_id):
        passcode = typer.prompt("→ Passcode", hide_input=True)

    try:
        joined = _run(board.join(nickname, passcode))
    except CommonTimeError as e:
        _handle_error(e)

    if not joined:
        _fail("Wrong passcode.")

    _save_session(state)
    console.print(f"[green]✓ Joined [bold]{board.event.title}[/bold] as {nickname}[/green]")
    if board.own_response() is not None:
        console.print(f"  Restored {len(board.selection.current)} saved slot(s).")


@app.command()
def show(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
    add_week: Annotated[int, typer.Option("--add-week", help="Show this many extra empty weeks.")] = 0,
    top: Annotated[int, typer.Option("--top", help="Number of leaderboard rows to show.")] = 10,
):
    """
    Show the availability grid and the most popular slots.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)

    try:
        event = _run(board.load())
    except CommonTimeError as e:
        _handle_error(e)

    for _ in range(add_week):
        board.add_week()

    console.print()
    status = "[red]locked[/red]" if event.is_locked else "[green]open[/green]"
    console.print(f"[bold cyan]{event.title}[/bold cyan] ({status}, expires {event.expires_at.to_date_string()})")
    if event.final_slot:
        console.print(f"[bold]Final slot:[/bold] {event.final_slot.date} {SLOT_LABELS[event.final_slot.slot]}")

    for week_index in board.weeks_to_display():
        console.print()
        console.print(_render_week(board, week_index, state.config.timezone))

    leaderboard = board.leaderboard()
    console.print()
    if not leaderboard.entries:
        console.print("[yellow]⚠ Nobody has picked a slot yet.[/yellow]")
    else:
        console.print(_render_leaderboard(leaderboard, "Most popular slots", limit=top))
    console.print()


@app.command()
def paint(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
    cells: Annotated[List[str], typer.Argument(help="Cells as DATE:SLOT, in gesture order. The first cell decides select or deselect.")],
    save: Annotated[bool, typer.Option("--save/--no-save", help="Save the result to the event.")] = True,
):
    """
    Drag across several cells at once, like painting on the grid.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)
    path = [_parse_cell(value) for value in cells]

    try:
        _run(board.load())
        gesture = board.gesture()
        gesture.start(path[0])
        mode = gesture.state.mode.value
        for cell in path[1:]:
            gesture.move_over(cell)
        touched = gesture.end() or []
        console.print(f"[bold]{mode.capitalize()}ed[/bold] {len(touched)} cell(s).")
        if save:
            _run(board.save())
            console.print("[green]✓ Saved[/green]")
    except CommonTimeError as e:
        _handle_error(e)


@app.command()
def toggle(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    slot: Annotated[SlotType, typer.Argument(help="morning, afternoon or evening")],
):
    """
    Toggle a single cell and save.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)
    cell = _parse_cell(f"{date}:{slot.value}")

    try:
        _run(board.load())
        selection = board.toggle(cell.date, cell.slot)
        _run(board.save())
    except CommonTimeError as e:
        _handle_error(e)

    marker = "selected" if cell in selection else "cleared"
    console.print(f"[green]✓ {cell.date} {SLOT_LABELS[cell.slot]} {marker}[/green]")


@app.command()
def clear(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
):
    """
    Remove all of your slots from an event.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)

    try:
        _run(board.load())
        board.clear()
        _run(board.save())
    except CommonTimeError as e:
        _handle_error(e)

    console.print("[green]✓ Selection cleared[/green]")


@app.command()
def lock(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
    final: Annotated[Optional[str], typer.Option("--final", help="Chosen slot as DATE:SLOT")] = None,
):
    """
    Lock an event you created, optionally fixing the final slot.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)
    final_slot = _parse_cell(final) if final else None

    try:
        event = _run(board.lock(final_slot))
    except CommonTimeError as e:
        _handle_error(e)

    console.print(f"[green]✓ Locked [bold]{event.title}[/bold][/green]")


@app.command()
def heatmap(
    ctx: typer.Context,
    event_id: Annotated[str, typer.Argument(help="Event ID")],
):
    """
    Show the saved heatmap as computed by the event store.
    """
    state = _state(ctx)
    board = _build_board(state, event_id)

    try:
        leaderboard = _run(board.heatmap())
    except CommonTimeError as e:
        _handle_error(e)

    if not leaderboard.entries:
        console.print("[yellow]⚠ No saved responses yet.[/yellow]")
        return
    console.print(_render_leaderboard(leaderboard, "Heatmap"))


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]commontime[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
