from os import environ
from datetime import datetime
from zoneinfo import ZoneInfo
from contextvars import ContextVar
from logging import Filter, LogRecord, StreamHandler, Logger, NOTSET
from colorlog import ColoredFormatter


class SingletonMeta(type):
    _instance = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instance:
            instance = super().__call__(*args, **kwargs)
            cls._instance[cls] = instance
        return cls._instance[cls]


class CorrelationIdFilter(Filter):
    """Stamps every record with the correlation id of the current context."""

    def __init__(self, correlation_id_var: ContextVar):
        super().__init__()
        self._correlation_id_var = correlation_id_var

    def filter(self, record: LogRecord) -> bool:
        record.correlation_id = self._correlation_id_var.get() or "-"
        return True


class DeviceModeLogger(Logger, metaclass=SingletonMeta):
    correlation_id_var = ContextVar("correlation_id", default=None)
    _initialized = False

    def __init__(self):
        if DeviceModeLogger._initialized:
            return

        super().__init__(name="DeviceModeLogger", level=environ.get("LOG_LEVEL", NOTSET))

        self._timezone = ZoneInfo(environ.get("LOG_TIMEZONE", "UTC"))
        local_formatter = ColoredFormatter(
            "%(log_color)s%(asctime)s | %(levelname)s | %(correlation_id)s | %(message)s",
            datefmt="%d-%m-%Y, %H:%M:%S",
            log_colors={
                "DEBUG": "blue",
                "INFO": "",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        local_formatter.converter = self.local_time

        console_handler = StreamHandler()
        console_handler.setFormatter(local_formatter)
        console_handler.addFilter(CorrelationIdFilter(self.correlation_id_var))
        self.addHandler(console_handler)

        DeviceModeLogger._initialized = True

    def set_correlation_id(self, correlation_id: str):
        return self.correlation_id_var.set(correlation_id)

    def reset_correlation_id(self, token) -> None:
        self.correlation_id_var.reset(token)

    def get_correlation_id(self) -> str:
        return self.correlation_id_var.get()

    def local_time(self, *args):
        return datetime.now(tz=self._timezone).timetuple()


logger = DeviceModeLogger()
