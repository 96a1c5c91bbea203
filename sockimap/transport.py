#!/usr/bin/env python
#
# File: $Id$
#
"""
The byte stream underneath an IMAP session: a TCP socket, optionally
wrapped in TLS.
"""

# system imports
#
import logging
import socket
import ssl as ssl_lib
from typing import Optional

# Project imports
#
from .exceptions import CommandTimeout, ConnectionFailed, ReadFailure

logger = logging.getLogger("sockimap.transport")


##################################################################
##################################################################
#
class Transport:
    """
    A thin wrapper around a connected socket. `write()`, `read()` and
    `close()` report failure the way the client expects: a false return
    value for a failed write or close, an empty bytes for a peer that has
    gone away, and `CommandTimeout` when the socket timeout expires.
    """

    ##################################################################
    #
    def __init__(self, sock: socket.socket, name: str = ""):
        self.sock: Optional[socket.socket] = sock
        self.name = name

    ##################################################################
    #
    def __str__(self):
        return f"{type(self).__name__}:{self.name}"

    ##################################################################
    #
    @classmethod
    def open(
        cls,
        host: str,
        port: int,
        ssl: bool = False,
        timeout: Optional[float] = None,
        ssl_context: Optional[ssl_lib.SSLContext] = None,
    ) -> "Transport":
        """
        Connect to `host`:`port`. If `ssl` is True the connection is wrapped
        in TLS using `ssl_context` (or a default client context.)
        """
        name = f"{host}:{port}"
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except socket.timeout as exc:
            raise CommandTimeout(f"Timed out connecting to {name}") from exc
        except OSError as exc:
            raise ConnectionFailed(
                f"There was a problem creating the socket to {name}: {exc}"
            ) from exc

        if ssl:
            if ssl_context is None:
                ssl_context = ssl_lib.create_default_context()
            try:
                sock = ssl_context.wrap_socket(sock, server_hostname=host)
            except (ssl_lib.SSLError, OSError) as exc:
                sock.close()
                raise ConnectionFailed(
                    f"TLS negotiation with {name} failed: {exc}"
                ) from exc

        logger.debug("Connected to %s (ssl: %s)", name, ssl)
        return cls(sock, name)

    ##################################################################
    #
    @property
    def closed(self) -> bool:
        return self.sock is None

    ##################################################################
    #
    def write(self, data: bytes) -> bool:
        if self.sock is None:
            return False
        try:
            self.sock.sendall(data)
        except socket.timeout as exc:
            raise CommandTimeout(f"Timed out writing to {self.name}") from exc
        except OSError as exc:
            logger.warning("Write to %s failed: %s", self.name, exc)
            return False
        return True

    ##################################################################
    #
    def read(self, max_bytes: int) -> bytes:
        if self.sock is None:
            return b""
        try:
            return self.sock.recv(max_bytes)
        except socket.timeout as exc:
            raise CommandTimeout(
                f"Timed out reading from {self.name}"
            ) from exc
        except OSError as exc:
            raise ReadFailure(f"Read from {self.name} failed: {exc}") from exc

    ##################################################################
    #
    def close(self) -> bool:
        if self.sock is None:
            return False
        try:
            self.sock.close()
        except OSError as exc:
            logger.error("Exception when closing %s: %s", self, exc)
            return False
        finally:
            self.sock = None
        return True
