import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_log_indent = ContextVar("log_indent", default=0)
logger = logging.getLogger("scansim")


@contextmanager
def logging_indented(delta: int = 1) -> Iterator[None]:
    token = _log_indent.set(_log_indent.get() + delta)
    try:
        yield
    finally:
        _log_indent.reset(token)


class IndentPrefixFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        prefix = "  " * _log_indent.get()
        record.msg = prefix + str(record.msg)
        return True


logger.addFilter(IndentPrefixFilter())


def configure_logging(level: int | str = logging.INFO) -> None:
    """Print `scansim` records to the console, at `level` and above.

    Importing the package leaves logging untouched; the command line calls this.
    """
    try:
        from rich.logging import RichHandler
    except ImportError:
        handler: logging.Handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
        )
    else:
        handler = RichHandler(show_path=False)

    logging.basicConfig(
        level="WARNING",
        format="%(message)s",
        datefmt="[%X:%f]",
        handlers=[handler],
    )
    logger.setLevel(level)
