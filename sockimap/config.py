#!/usr/bin/env python
#
# File: $Id$
#
"""
The connection settings for an IMAP session: where the server is, whether
to use TLS, and who we log in as.
"""

# system imports
#
import logging
import os
from typing import Any, Dict, Optional

# 3rd party imports
#
from dotenv import dotenv_values, find_dotenv

# Project imports
#
from .exceptions import ArgumentError

logger = logging.getLogger("sockimap.config")

IMAPS_PORT = 993
IMAP_PORT = 143

TRUE_VALUES = ("1", "true", "yes", "on")


####################################################################
#
def as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in TRUE_VALUES


##################################################################
##################################################################
#
class Config:
    """
    Host, port, TLS flag, OAuth flag, username and either a password or an
    OAuth bearer token (both are held in `key`.)

    `timeout` is the number of seconds any single socket operation may
    block. `None` means block forever.
    """

    ##################################################################
    #
    def __init__(
        self,
        host: str,
        port: Optional[int] = None,
        ssl: bool = True,
        oauth: bool = False,
        username: str = "",
        key: str = "",
        timeout: Optional[float] = None,
    ):
        self.host = host
        self.ssl = ssl
        self.port = port if port else (IMAPS_PORT if ssl else IMAP_PORT)
        self.oauth = oauth
        self.username = username
        self.key = key
        self.timeout = timeout

    ##################################################################
    #
    def __repr__(self):
        return (
            f"<Config {self.username}@{self.host}:{self.port} "
            f"ssl={self.ssl} oauth={self.oauth}>"
        )

    ##################################################################
    #
    def is_ssl(self) -> bool:
        return self.ssl

    ##################################################################
    #
    def is_oauth(self) -> bool:
        return self.oauth

    ##################################################################
    #
    @classmethod
    def from_env(
        cls, dotenv_path: Optional[str] = None, **overrides: Any
    ) -> "Config":
        """
        Build a Config from a `.env` file and the environment. Values in
        the environment override the ones in the file.

        Recognized keys: IMAP_HOST, IMAP_PORT, IMAP_SSL, IMAP_OAUTH,
        IMAP_USERNAME, IMAP_KEY, IMAP_TIMEOUT

        Any keyword arguments that are not None (ie: values from the command
        line) override what was found in the file and the environment.
        """
        if dotenv_path is None:
            dotenv_path = find_dotenv(usecwd=True)
        values: Dict[str, Optional[str]] = dict(dotenv_values(dotenv_path))
        values.update(
            {k: v for k, v in os.environ.items() if k.startswith("IMAP_")}
        )

        try:
            port = int(values["IMAP_PORT"]) if values.get("IMAP_PORT") else None
            timeout = (
                float(values["IMAP_TIMEOUT"])
                if values.get("IMAP_TIMEOUT")
                else None
            )
        except ValueError as exc:
            raise ArgumentError(f"Invalid numeric setting: {exc}") from exc

        kwargs: Dict[str, Any] = {
            "host": values.get("IMAP_HOST"),
            "port": port,
            "ssl": as_bool(values.get("IMAP_SSL"), default=True),
            "oauth": as_bool(values.get("IMAP_OAUTH")),
            "username": values.get("IMAP_USERNAME") or "",
            "key": values.get("IMAP_KEY") or "",
            "timeout": timeout,
        }
        kwargs.update({k: v for k, v in overrides.items() if v is not None})

        if not kwargs["host"]:
            raise ArgumentError("IMAP_HOST is not set")

        config = cls(**kwargs)
        logger.debug("Loaded config: %r", config)
        return config
