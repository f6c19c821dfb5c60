# utils.py
"""
Utility helpers: logging setup, summary serialization, and console output.

- Every log line carries the session id, UTC timestamp, level and the
  client/provider/account context.
- Uses Rich for the execution summary table in the terminal.
"""

import json
import logging
import time
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from config import UNDEFINED
from models import ExecutionSummary, ScanOutcome, Session

LOG_FORMAT = "[RUNNER:%(session_id)s] %(asctime)s [%(levelname)s] %(context)s%(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%SZ"


class SessionContextFilter(logging.Filter):
    """
    Injects the active session's id and context prefix into every record.
    """

    def __init__(self):
        super().__init__()
        self.session_id = "-"
        self.context = ""

    def bind(self, session: Session) -> None:
        self.session_id = session.session_id
        self.context = format_context(session.client, session.provider, session.account)

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id
        record.context = self.context
        return True


_session_filter = SessionContextFilter()


def format_context(client: str, provider: str, account: str) -> str:
    parts = []
    if client:
        parts.append(f"Client:{client}")
    if provider:
        parts.append(f"Cloud:{provider}")
    if account and account != UNDEFINED:
        parts.append(f"Account:{account}")
    return "".join(p + " " for p in parts)


def configure_logging(level: str = "INFO") -> None:
    """
    Install the root handler with the runner's line format (timestamps in UTC).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        force=True,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(_session_filter)
        if handler.formatter is not None:
            handler.formatter.converter = time.gmtime


def bind_session(session: Session) -> None:
    _session_filter.bind(session)


def summary_to_dict(summary: ExecutionSummary) -> Dict[str, Any]:
    data = asdict(summary)
    data["remote_path"] = summary.remote_path.uri if summary.remote_path else None
    if summary.scan is not None:
        data["scan"]["retries"] = summary.scan.retries
    return data


def summary_to_json(summary: ExecutionSummary) -> str:
    return json.dumps(summary_to_dict(summary), indent=2, default=str)


def write_summary(summary: ExecutionSummary, path: str) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(summary_to_json(summary))


def summary_rows(summary: ExecutionSummary) -> List[List[str]]:
    scan = summary.scan
    upload = summary.upload
    return [
        ["Session ID", summary.session_id],
        ["Started", summary.started_at or "-"],
        ["Client", summary.client],
        ["Cloud", summary.provider],
        ["Account", summary.account],
        ["Region", summary.region],
        ["Output", summary.output_dir],
        ["S3 Path", summary.remote_path.uri if summary.remote_path else "-"],
        ["Scan", scan.outcome.value if scan else "-"],
        ["Retries", str(scan.retries) if scan else "-"],
        ["Upload", _upload_status(upload)],
        ["Duration", f"{summary.duration_seconds}s"],
        ["Version", summary.version],
    ]


def _upload_status(upload) -> str:
    if upload is None:
        return "-"
    if upload.success:
        return f"ok ({upload.uploaded} objects)"
    return f"failed: {upload.error}"


def _status_text(value: str):
    if value == ScanOutcome.SUCCESS.value or value.startswith("ok"):
        return Text(value, style="bold green")
    if value == ScanOutcome.PARTIAL_FAILURE.value or value.startswith("failed"):
        return Text(value, style="bold yellow")
    if value == ScanOutcome.HARD_FAILURE.value:
        return Text(value, style="bold red")
    return Text(value)


def print_summary(summary: ExecutionSummary, console: Optional[Console] = None) -> None:
    """
    Print the execution summary as a two-column Rich table.
    """
    console = console or Console()
    table = Table(title="EXECUTION SUMMARY", show_header=False, header_style="bold cyan")
    table.add_column("Field", style="cyan")
    table.add_column("Value", overflow="fold")
    for name, value in summary_rows(summary):
        table.add_row(name, _status_text(value))
    console.print(table)
