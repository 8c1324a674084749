import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger("cockpit")
    root.setLevel(level.upper())
    if not any(getattr(h, "_cockpit", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._cockpit = True  # type: ignore[attr-defined]
        root.addHandler(handler)


__all__ = ["configure_logging", "LOG_FORMAT"]
