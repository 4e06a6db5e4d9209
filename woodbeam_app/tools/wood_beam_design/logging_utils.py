from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from loguru import logger

RUN_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[tool_id]} | {extra[input_hash]} | {message}"


def get_calc_logger(tool_id: str, input_hash: Optional[str] = None) -> Any:
    """Logger bound to one calculation so run sinks can pick out its records."""
    return logger.bind(tool_id=tool_id, input_hash=input_hash or "")


def add_run_sink(path: Path, tool_id: str, input_hash: str) -> int:
    """Add a DEBUG file sink that only receives records of this tool/input hash."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return int(
        logger.add(
            str(path),
            level="DEBUG",
            enqueue=False,
            backtrace=True,
            diagnose=False,
            format=RUN_LOG_FORMAT,
            filter=lambda r: r["extra"].get("tool_id") == tool_id and r["extra"].get("input_hash") == input_hash,
        )
    )


def remove_run_sink(sink_id: Optional[int]) -> None:
    if sink_id is None:
        return
    logger.remove(sink_id)
