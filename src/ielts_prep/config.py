"""Runtime settings read from the environment."""
import logging
import os

from rich.logging import RichHandler


class Config:
    USER_ID = os.environ.get("IELTS_PREP_USER", "local")
    LOG_LEVEL = os.environ.get("IELTS_PREP_LOG_LEVEL", "WARNING")
    DEFAULT_EXAM_MINUTES = 165  # 2h45m full mock
    PLAN_TARGET_BANDS = (6, 6.5, 7, 7.5, 8, 8.5)


def configure_logging(level: str | None = None) -> None:
    """Route log records through rich on the root logger."""
    logging.basicConfig(
        level=(level or Config.LOG_LEVEL).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
