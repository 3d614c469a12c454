import logging
from collections import deque
from typing import Optional

from rich.console import Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from des_diffcrypt.analysis.recovery import AttackPhase, RecoveryResult
from des_diffcrypt.interchange import format_key
from des_diffcrypt.state_queue import SingleSlotQueue
from des_diffcrypt.state_snapshot import AttackSnapshot, FragmentRow


LOG_LINES = 8
LOG_BUFFER = deque(maxlen=5000)
LEVEL_STYLE = {
    logging.DEBUG: "dim",
    logging.INFO: "",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

PHASE_STYLE = {
    AttackPhase.KEY_FOUND: "bold green",
    AttackPhase.SEARCH_EXHAUSTED: "bold red",
}

ALL_SBOXES = range(1, 9)


class UILogHandler(logging.Handler):
    """Keeps formatted records in LOG_BUFFER so the live view can show them."""

    def emit(self, record):
        msg = self.format(record)
        LOG_BUFFER.append((record.levelno, msg))


def get_ui_log_handler() -> UILogHandler:
    return UILogHandler()


def render_log_panel(title: str, max_lines: int) -> Panel:
    """Render exactly max_lines log entries (cropped to width, no wrap)."""
    items = list(LOG_BUFFER)[-max_lines:]
    if len(items) < max_lines:
        items = [(logging.NOTSET, "")] * (max_lines - len(items)) + items

    grid = Table.grid(padding=(0, 0))
    grid.add_column(no_wrap=True, overflow="crop")
    for lvl, msg in items:
        style = LEVEL_STYLE.get(lvl, "")
        grid.add_row(f"[{style}]{msg}[/{style}]" if style else msg)
    return Panel(grid, title=title, padding=(0, 1))


def fragment_cells(rows: FragmentRow) -> list:
    """One cell per S-box: the decimal fragment, or '-' when not voted."""
    known = dict(rows)
    return [str(known[sbox]) if sbox in known else "-" for sbox in ALL_SBOXES]


def fragments_table(snapshot: AttackSnapshot) -> Table:
    t = Table(show_header=True, show_edge=False, padding=(0, 1))
    t.add_column("", style="dim", no_wrap=True)
    for sbox in ALL_SBOXES:
        t.add_column(f"S{sbox}", justify="right", width=3)
    t.add_row("char1", *fragment_cells(snapshot.char1_fragments))
    t.add_row("char2", *fragment_cells(snapshot.char2_fragments))
    t.add_row("merged", *fragment_cells(snapshot.fragments), style="cyan")
    return t


def render(state: Optional[AttackSnapshot]):
    """Render the attack state snapshot."""
    if state is None:
        return Panel("Waiting for first update…", title="Differential Cryptanalysis", border_style="dim")

    style = PHASE_STYLE.get(state.phase, "yellow")
    header = Table.grid(padding=(0, 2))
    header.add_column(style="cyan", no_wrap=True)
    header.add_column(no_wrap=True)
    header.add_row("Phase", f"[{style}]{state.phase.value}[/{style}]")
    header.add_row("Right pairs", f"char1 {state.char1_pairs}  |  char2 {state.char2_pairs}")
    if state.complete:
        header.add_row("Key", format_key(state.key))

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=30),
        TextColumn("{task.completed}/{task.total}"),
        expand=True,
    )
    progress.add_task("Key search", total=state.search_space, completed=state.candidates_checked)

    body = Group(header, fragments_table(state), progress, render_log_panel("Log", LOG_LINES))
    return Panel(body, title=f"Differential Cryptanalysis  |  v{state.state_version}", padding=(1, 1))


def result_table(result: RecoveryResult) -> Table:
    """Final details: pair counts, each characteristic's fragments and the key."""
    t = Table(title="Recovery Details", show_header=False)
    t.add_column("Item", style="cyan", no_wrap=True)
    t.add_column("Value")
    t.add_row("Status", result.status.value)
    t.add_row("Char1 right pairs", str(result.char1_pair_count))
    t.add_row("Char2 right pairs", str(result.char2_pair_count))
    for name, votes in (("Char1", result.char1_votes), ("Char2", result.char2_votes)):
        t.add_row(
            f"{name} key bits",
            "  ".join(f"S{sbox}={fragment}" for sbox, fragment in sorted(votes.fragments.items())),
        )
    t.add_row("Key", format_key(result.key))
    if result.key is not None:
        t.add_row("Key (hex)", f"0x{result.key:016X}")
    return t


def ui_loop(state_queue: SingleSlotQueue[AttackSnapshot]) -> None:
    """Loop the UI."""
    with Live(render(None), refresh_per_second=30, screen=False) as live:
        while True:
            state = state_queue.get()
            if state is None:
                break
            live.update(render(state))
