import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level="INFO") -> logging.Logger:
    """
    Attach a single console handler to the root logger and set its level.
    Safe to call more than once (e.g. one app per test).
    """
    root = logging.getLogger()
    if not any(getattr(h, "_accounts_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._accounts_handler = True
        root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    return root
