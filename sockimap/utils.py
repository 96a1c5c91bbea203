"""
Utility functions that do not properly belong to any one module. For now
this is how logging (and trace logging) gets set up for the command line
tool.
"""

# system imports
#
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from _typeshed import StrPath

DEFAULT_LOG_CONFIG_FILES = [
    Path.home() / ".config" / "sockimap" / "sockimap_log.json",
    Path.home() / ".config" / "sockimap" / "sockimap_log.cfg",
    Path("/etc/sockimap_log.json"),
    Path("/etc/sockimap_log.cfg"),
    Path("/usr/local/etc/sockimap_log.json"),
    Path("/usr/local/etc/sockimap_log.cfg"),
]

LOGGED_IN_USER: Optional[str] = None


####################################################################
#
def load_log_config(log_config: Path) -> None:
    if log_config.suffix == ".json":
        cfg = json.loads(log_config.read_text())
        logging.config.dictConfig(cfg)
    else:
        logging.config.fileConfig(str(log_config))


####################################################################
#
def setup_logging(
    log_config: Optional["StrPath"],
    debug: bool,
    username: Optional[str] = None,
    trace_file: Optional["StrPath"] = None,
):
    """
    Set up the logger. We log to stderr unless a logging config file says
    otherwise.

    If `log_config` names a file that exists it is loaded (a `.json` file is
    treated as a logging config dict, anything else as a logging config file)
    and nothing else is done. Otherwise we check a few well known locations
    for a config file, and failing that use a default config.

    With the default config, if `trace_file` is given, trace records (see
    `sockimap.trace`) are written there as JSON, one per line.

    NOTE: We use a custom log record factory to add the `username` field to
          the log records.
    """
    global LOGGED_IN_USER
    LOGGED_IN_USER = username if username else "no_user"
    old_factory = logging.getLogRecordFactory()

    def log_record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.username = LOGGED_IN_USER
        return record

    logging.setLogRecordFactory(log_record_factory)
    root_logger = logging.getLogger()

    if debug:
        root_logger.setLevel(logging.DEBUG)

    if log_config is not None:
        log_config = Path(log_config)
        if log_config.exists():
            load_log_config(log_config)
            return
        print(
            f"WARNING: Logging config '{log_config}' does not exist",
            file=sys.stderr,
        )

    for log_config in DEFAULT_LOG_CONFIG_FILES:
        if log_config.exists():
            load_log_config(log_config)
            return

    # If no logging config file is specified then this is what will be used.
    # It is formatted as a logging config dict.
    #
    DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "basic": {
                "format": "[{asctime}] {username:<30} {levelname}:{module}.{funcName}: {message}",
                "style": "{",
            },
            "trace": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "basic",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "sockimap": {
                "handlers": ["console"],
                "level": "DEBUG" if debug else "WARNING",
                "propagate": False,
            },
        },
    }

    if trace_file:
        DEFAULT_LOGGING_CONFIG["handlers"]["trace_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "trace",
            "filename": str(trace_file),
            "maxBytes": 20971520,
            "backupCount": 5,
        }
        DEFAULT_LOGGING_CONFIG["loggers"]["sockimap.trace"] = {
            "handlers": ["trace_file"],
            "level": "INFO",
            "propagate": False,
        }

    logging.config.dictConfig(DEFAULT_LOGGING_CONFIG)
    logger = logging.getLogger("sockimap.utils")
    logger.debug("Logging initialized")
    if trace_file:
        logger.debug("Writing trace records to '%s'", trace_file)
