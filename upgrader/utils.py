"""
Utility functions for upgrader.

Includes logging setup and console output helpers.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from upgrader.schemas import UpgradePlan, UpgradeReport
from upgrader.versions import compare_versions


# Global console for pretty output
console = Console()


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "pretty",
    log_file: Optional[Path] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging for upgrade runs.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        log_file: Optional path to a log file
        console_output: Also log to console

    Returns:
        Configured logger
    """
    logger = logging.getLogger("upgrader")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        if log_format == "structured":
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_time=False)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(StructuredFormatter())
        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "model"):
            log_data["model"] = record.model
        if hasattr(record, "phase"):
            log_data["phase"] = record.phase

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def plan_table(plan: UpgradePlan) -> Table:
    """Render a plan as a rich table."""
    table = Table(title="Pending upgrades")
    table.add_column("#", justify="right")
    table.add_column("Model")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Description")
    for n, step in enumerate(plan, start=1):
        table.add_row(str(n), step.model, step.from_version, step.to_version, step.description)
    return table


def versions_table(stored: dict[str, str], latest: dict[str, str], local: set[str]) -> Table:
    """Render stored versions next to the latest known versions."""
    table = Table(title="Model versions")
    table.add_column("Model")
    table.add_column("Scope")
    table.add_column("Stored")
    table.add_column("Latest")
    for model in sorted(set(stored) | set(latest)):
        current = stored.get(model, "-")
        target = latest.get(model, "-")
        up_to_date = model in stored and model in latest and compare_versions(current, target) == 0
        style = "green" if up_to_date else "yellow"
        table.add_row(
            model,
            "local" if model in local else "cluster",
            current,
            target,
            style=style,
        )
    return table


def print_report(report: UpgradeReport) -> None:
    """Print a human-readable summary of an upgrade report."""
    if report.mode.value == "noop":
        console.print("[green]All models are up to date[/green]")
        return

    console.print(f"[bold]{report.mode.value.capitalize()}[/bold] finished in {report.duration_ms}ms")
    for model, version in sorted(report.changed.items()):
        before = report.versions_before.get(model, "-")
        console.print(f"  {model}: {before} -> {version}")
    for step in report.skipped:
        console.print(f"  [dim]skipped {step.detail} (cluster-shared)[/dim]")
    for outcome in report.checkpoints:
        if outcome.error:
            console.print(f"  [yellow]cleanup of {outcome.model} failed: {outcome.error}[/yellow]")
