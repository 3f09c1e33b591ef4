import logging.config


def setup_logging(level: str = "INFO") -> None:
    """Настройка логирования приложения"""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level.upper(),
        },
        "loggers": {
            # SQL-эхо управляется через settings.database_echo
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    })
