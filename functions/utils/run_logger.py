"""Run banners for blueprint extraction and estimate generation.

Prints highly visible markers around each run so a single extraction or
estimate generation stands out in the emulator log stream, and emits the
structured equivalent for log aggregation.
"""

import structlog
from typing import Any, Dict, Optional
from datetime import datetime, timezone

logger = structlog.get_logger()

BANNER_WIDTH = 80
RUN_BANNER_CHAR = "═"
FAILURE_BANNER_CHAR = "!"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _print_block(char: str, title: str, rows: Dict[str, Any]) -> None:
    label_width = max((len(label) for label in rows), default=0)

    print("\n")
    print(char * BANNER_WIDTH)
    print(_create_banner(char, title))
    print(char * BANNER_WIDTH)
    for label, value in rows.items():
        print(f"║ {label.ljust(label_width)} : {value}")
    print(char * BANNER_WIDTH)
    print("\n")


def log_run_start(run_type: str, project_id: str, **context: Any) -> None:
    """Log the start of an extraction or generation run."""
    rows = {
        "Project ID": project_id,
        "Timestamp": datetime.now(timezone.utc).isoformat(),
    }
    rows.update({key.replace("_", " ").title(): value for key, value in context.items()})

    _print_block(RUN_BANNER_CHAR, f"▶ {run_type.upper()} STARTED", rows)

    logger.info("run_started", run_type=run_type, project_id=project_id, **context)


def log_run_complete(
    run_type: str,
    project_id: str,
    duration_ms: int,
    summary: Optional[Dict[str, Any]] = None
) -> None:
    """Log run completion with a short summary."""
    summary = summary or {}
    rows = {
        "Project ID": project_id,
        "Duration": f"{duration_ms:,} ms ({duration_ms / 1000:.2f}s)",
    }
    rows.update({key.replace("_", " ").title(): value for key, value in summary.items()})

    _print_block(RUN_BANNER_CHAR, f"✓ {run_type.upper()} COMPLETED", rows)

    logger.info(
        "run_completed",
        run_type=run_type,
        project_id=project_id,
        duration_ms=duration_ms,
        **summary
    )


def log_run_failed(run_type: str, project_id: str, error: str) -> None:
    """Log run failure."""
    _print_block(
        FAILURE_BANNER_CHAR,
        f"✗ {run_type.upper()} FAILED",
        {
            "Project ID": project_id,
            "Timestamp": datetime.now(timezone.utc).isoformat(),
            "Error": error,
        },
    )

    logger.error("run_failed", run_type=run_type, project_id=project_id, error=error)
