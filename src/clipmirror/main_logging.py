"""Logging configuration for the clipmirror CLI."""
import logging

# Third-party loggers that are chatty at INFO/DEBUG.
NOISY_LOGGERS = ("httpx", "httpcore", "websockets")


def configure_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity setting.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO level.

    HTTP and WebSocket library logging stays at WARNING unless verbose.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
