import logging
import sys

from workpilot.config import LOG_LEVEL


class ContextFormatter(logging.Formatter):
    """Formatter that fills in user_id and order_id when a record has none."""
    def format(self, record):
        if not hasattr(record, "user_id"):
            record.user_id = "-"
        if not hasattr(record, "order_id"):
            record.order_id = "-"
        return super().format(record)


def configure_logging(level: str = LOG_LEVEL) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [user_id=%(user_id)s order_id=%(order_id)s] - %(message)s"
    ))
    logging.basicConfig(
        level=level,
        handlers=[handler],
    )
