"""
Terminal report of recently received events.

Read-only: lists every stored event from the last N hours (default 24),
most recent first, as highlighted JSON.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError
from rich.console import Console
from rich.json import JSON

from .config import Config
from .server.database import EventStore, StoreUnavailable
from .server.events import utc_iso


def since_iso(hours: int, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return utc_iso(now - timedelta(hours=hours))


def for_display(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(doc)
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out


def render_events(console: Console, events: List[Dict[str, Any]], *, hours: int) -> None:
    if not events:
        console.print(f"[yellow]No logs found in the last {hours} hours.[/yellow]")
        return
    console.print(f"[bold]Found [yellow]{len(events)}[/yellow] logs in the last {hours} hours:[/bold]\n")
    for doc in events:
        console.print(JSON(json.dumps(for_display(doc), default=str)))
        console.print("")


def run_report(store: Any, console: Console, *, hours: int = 24, now: Optional[datetime] = None) -> None:
    console.print(f"[bold blue]Fetching logs from the last {hours} hours...[/bold blue]\n")
    render_events(console, store.events_since(since_iso(hours, now)), hours=hours)


def main(cfg: Config, *, hours: int = 24, console: Optional[Console] = None) -> int:
    console = console or Console()
    try:
        with EventStore(cfg.database) as store:
            run_report(store, console, hours=hours)
    except (StoreUnavailable, PyMongoError) as e:
        console.print(f"Error: {e}", style="red", markup=False)
        return 1
    return 0
