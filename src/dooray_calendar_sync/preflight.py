"""
Preflight checks run before sync to catch common misconfigurations early.
"""

import json
import logging
import os
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

logger = logging.getLogger(__name__)


def run_preflight_checks(store_path: Path, console: Console) -> bool:
    """Return True if sync may proceed; print issues and return False otherwise."""
    issues: list[tuple[str, str, str]] = []  # (label, detail, hint)

    # 1. Store directory exists (or can be created) and is writable
    store_dir = store_path.parent
    try:
        store_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create store directory {store_dir}: {e}")
        issues.append(("Sync store", f"{store_dir}: {e}", f"Check permissions on {store_dir}"))
    else:
        if not os.access(store_dir, os.W_OK):
            logger.error(f"Store directory not writable: {store_dir}")
            issues.append(
                (
                    "Sync store",
                    f"{store_dir} is not writable",
                    "The store is rewritten via a temporary file next to it; "
                    "the directory itself must be writable",
                )
            )

    # 2. Existing store file is readable JSON
    if store_path.exists():
        try:
            data = json.loads(store_path.read_text(encoding="utf-8"))
            if not isinstance(data, list):
                raise ValueError("expected a JSON array")
        except (OSError, ValueError) as e:
            logger.error(f"Sync store not readable ({store_path}): {e}")
            issues.append(
                (
                    "Sync store",
                    f"{store_path}: {e}",
                    "Fix or remove the file; an unreadable store is treated as empty "
                    "and every event would be mirrored again",
                )
            )

    if issues:
        _print_issues(issues, console)
        return False

    return True


def _print_issues(issues: list[tuple[str, str, str]], console: Console) -> None:
    body = Text()
    for i, (label, detail, hint) in enumerate(issues):
        if i:
            body.append("\n")
        body.append(f"  ✗  {label}: ", style="bold red")
        body.append(detail, style="bold red")
        body.append(f"\n       → {hint}", style="yellow")

    console.print(Panel(body, title="[bold red]Preflight checks failed[/bold red]"))
