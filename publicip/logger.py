import os
from logging import Logger, config, getLevelName, getLogger

LOGGER_NAME = "publicip"
DEFAULT_LOG_LEVEL = "INFO"


def resolve_log_level(env: dict[str, str] | None = None) -> str:
    """Level name from PUBLICIP_LOG_LEVEL, then LOG_LEVEL, else INFO.

    Unknown names fall back to the default instead of breaking start-up.
    """
    env = os.environ if env is None else env
    raw = env.get("PUBLICIP_LOG_LEVEL") or env.get("LOG_LEVEL") or DEFAULT_LOG_LEVEL
    level = raw.strip().upper()
    if not isinstance(getLevelName(level), int):
        return DEFAULT_LOG_LEVEL
    return level


def build_log_config(level: str, use_colors: bool = True) -> dict:
    """dictConfig for the service loggers, uvicorn's included, so uvicorn.run can reuse it."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s %(asctime)s - %(client_addr)s - "%(request_line)s" %(status_code)s',
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": use_colors,
            },
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(asctime)s - %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "use_colors": use_colors,
            },
        },
        "handlers": {
            "access": {"class": "logging.StreamHandler", "formatter": "access", "stream": "ext://sys.stdout"},
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            # Module loggers (publicip.network, publicip.clients...) propagate up to this one.
            LOGGER_NAME: {"handlers": ["default"], "level": level, "propagate": False},
            # httpx logs every request at INFO; only its problems are of interest here.
            "httpx": {"handlers": ["default"], "level": "WARNING", "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": True},
            "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level, "propagate": False},
        },
    }


def get_logger(name: str) -> Logger:
    """Logger for a module, always placed under the `publicip` logger."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return getLogger(name)
    return getLogger(f"{LOGGER_NAME}.{name}")


LOG_LEVEL = resolve_log_level()
log_config = build_log_config(LOG_LEVEL, use_colors=not os.getenv("NO_COLOR"))

config.dictConfig(log_config)
