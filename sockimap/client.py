#!/usr/bin/env python
#
# File: $Id$
#
"""
The IMAP client session. This is where commands are tagged and written to
the server and where the server's responses are read, accumulated and
classified.

The protocol is strictly request/response: a command is sent, then its
response is read to completion before the next command is sent. There is
no pipelining so the tag we look for when reading is always the tag of the
command we most recently sent.
"""

# system imports
#
import base64
import codecs
import logging
import ssl
import sys
from enum import StrEnum
from typing import IO, Callable, FrozenSet, Optional

# Project imports
#
from .config import Config
from .exceptions import (
    ArgumentError,
    Bad,
    ConnectionFailed,
    IMAPClientException,
    LoginFailed,
    No,
    NotConnected,
    ProtocolError,
    ReadFailure,
    UnsupportedAuthMethod,
    WriteError,
)
from .trace import NullTranscript, Transcript, trace
from .transport import Transport

logger = logging.getLogger("sockimap.client")

# Every command sent to the server gets a unique tag. The tag is this prefix
# followed by a counter that is incremented for every tagged command.
#
TAG_PREFIX = "AMWIJG"

# How much we ask the transport for on each read.
#
READ_SIZE = 2048

LINE_TERMINATOR = "\r\n"

# Commands whose arguments are credentials. We never log or trace those.
#
SENSITIVE_COMMANDS = ("LOGIN", "AUTHENTICATE")


########################################################################
########################################################################
#
# The states an IMAP session moves through. LOGGED_OUT is final.
#
class ClientState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    LOGGED_OUT = "logged_out"


####################################################################
#
def xoauth2_string(username: str, token: str) -> str:
    """
    The base64 encoded SASL XOAUTH2 initial client response:

        user=<username>^Aauth=Bearer <token>^A^A
    """
    auth_string = f"user={username}\1auth=Bearer {token}\1\1"
    return base64.b64encode(auth_string.encode("utf-8")).decode("ascii")


####################################################################
#
def parse_capabilities(response: str) -> FrozenSet[str]:
    """
    Pull the capability atoms out of the `* CAPABILITY ...` line(s) of a
    response. They are upper cased so lookups are case insensitive.
    """
    capabilities = set()
    for line in response.split(LINE_TERMINATOR):
        if line.upper().startswith("* CAPABILITY "):
            capabilities.update(x.upper() for x in line.split()[2:])
    return frozenset(capabilities)


####################################################################
#
def redact(command: str) -> str:
    """
    Return a version of the command line that is safe to log.
    """
    parts = command.rstrip().split(" ")

    # The command may or may not start with its tag.
    #
    for i, part in enumerate(parts[:2]):
        if part.upper() in SENSITIVE_COMMANDS:
            return " ".join(parts[: i + 1] + ["****"])
    return command.rstrip()


##################################################################
##################################################################
#
class IMAPClient:
    """
    One session with an IMAP server.

    The session owns the transport, the tag counter, the error captured by
    the most recent `read()` and the debug transcript. Nothing about the
    session is shared between instances so each one may be driven against
    its own (real or fake) transport.

    `transport_factory` is called as `transport_factory(host, port,
    ssl=..., timeout=..., ssl_context=...)` and must return an object with
    `write(bytes) -> bool`, `read(int) -> bytes`, `close() -> bool` and a
    `closed` property. It defaults to `Transport.open`.

    Can be used as a context manager:

        with IMAPClient(config) as client:
            client.login()
            print(client.select("INBOX"))
    """

    ##################################################################
    #
    def __init__(
        self,
        config: Config,
        transport_factory: Optional[Callable[..., Transport]] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        self.config = config
        self.transport_factory = (
            transport_factory if transport_factory else Transport.open
        )
        self.ssl_context = ssl_context
        self.transport: Optional[Transport] = None
        self.tag_line = 0
        self.error: Optional[IMAPClientException] = None
        self.state = ClientState.DISCONNECTED
        self.capabilities: FrozenSet[str] = frozenset()
        self.transcript: Transcript = NullTranscript()
        self.debug_file: Optional[IO[str]] = None
        self.name = f"{config.host}:{config.port}"

    ##################################################################
    #
    def __str__(self):
        return f"{type(self).__name__}:{self.name}"

    ##################################################################
    #
    def __enter__(self):
        if not self.connected:
            self.connect()
        return self

    ##################################################################
    #
    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.connected:
            return
        try:
            if self.state == ClientState.AUTHENTICATED:
                self.logout()
            else:
                self.disconnect()
        except IMAPClientException as exc:
            # Do not mask whatever exception is already on its way out.
            #
            if exc_type is None:
                raise
            logger.warning("%s: error while closing: %s", self, exc)

    ##################################################################
    #
    @property
    def connected(self) -> bool:
        return self.transport is not None and not self.transport.closed

    ##################################################################
    #
    @property
    def tag(self) -> str:
        """
        The tag of the most recently sent tagged command.
        """
        return f"{TAG_PREFIX}{self.tag_line}"

    ####################################################################
    #
    def trace(self, msg_type: str, msg: dict) -> None:
        """
        Fill in which session this trace record belongs to and send it on to
        the trace logger.

        Keyword Arguments:
        msg_type -- 'CONNECT', 'SEND', 'RECEIVED', 'CLOSE'
        msg -- a dict that contains the rest of the message to trace log
        """
        msg["connection"] = self.name
        msg["msg_type"] = msg_type
        trace(msg)

    ##################################################################
    #
    def connect(self) -> None:
        """
        Open the connection to the server and read its greeting.

        Raises ConnectionFailed if the socket can not be created or if the
        greeting can not be read.
        """
        if self.connected:
            logger.info("%s: reconnecting, closing existing connection", self)
            self._close_transport()
            self.state = ClientState.DISCONNECTED

        logger.info("%s: connecting (ssl: %s)", self, self.config.ssl)
        self.transport = self.transport_factory(
            self.config.host,
            self.config.port,
            ssl=self.config.ssl,
            timeout=self.config.timeout,
            ssl_context=self.ssl_context,
        )
        if self.transport is None:
            raise ConnectionFailed("There was a problem creating the socket.")
        self.trace("CONNECT", {})

        try:
            greeting = self.read()
        except ReadFailure as exc:
            self._close_transport()
            raise ConnectionFailed(
                f"Unable to read the greeting from {self.name}: {exc}"
            ) from exc
        except IMAPClientException:
            self._close_transport()
            raise
        if greeting is None:
            self._close_transport()
            raise ConnectionFailed(
                f"Unable to read from the socket: {self.error}"
            ) from self.error
        self.state = ClientState.CONNECTED

    ##################################################################
    #
    def disconnect(self) -> None:
        if not self.connected:
            raise NotConnected(
                "No need to disconnect, no connection was found."
            )
        if not self._close_transport():
            raise ConnectionFailed("Unable to disconnect.")
        self.state = ClientState.DISCONNECTED

    ##################################################################
    #
    def login(self) -> None:
        """
        Log in with the username and key from the config. If the config
        asks for OAuth and the server advertises `AUTH=XOAUTH2` we use
        `AUTHENTICATE XOAUTH2`. Without OAuth we use `LOGIN`.

        If we are not connected yet we connect first.
        """
        if not self.connected:
            self.connect()

        self.send_command("CAPABILITY")
        response = self.read()
        if response is None:
            logger.warning(
                "%s: no capability list from server: %s", self, self.error
            )
            response = ""
        self.capabilities = parse_capabilities(response)

        if "AUTH=XOAUTH2" in response.upper() and self.config.is_oauth():
            credentials = xoauth2_string(self.config.username, self.config.key)
            self.send_command(f"AUTHENTICATE XOAUTH2 {credentials}")
            response = self.read()

            # The server is asking for more. With XOAUTH2 this is how it
            # reports a failure, and it wants an empty line before it sends
            # the tagged result.
            #
            if response is not None and response.startswith("+"):
                self.send_command("", untagged=True)
                response = self.read()

            if response is None:
                error = self.error
                raise LoginFailed(f"Unable to login: {error}") from error
        elif not self.config.is_oauth():
            self.send_command(
                f"LOGIN {self.config.username} {self.config.key}"
            )
            response = self.read()

            if response is None:
                error = self.error
                raise LoginFailed(f"Login failed: {error}") from error
        else:
            raise UnsupportedAuthMethod(
                "Unable to find a supported authentication method on "
                f"{self.name}"
            )

        self.state = ClientState.AUTHENTICATED
        logger.info("%s: logged in as %s", self, self.config.username)

    ##################################################################
    #
    def logout(self) -> None:
        """
        Send LOGOUT and close the connection. A failure of the LOGOUT
        command raises ProtocolError, a failure to close the socket after it
        raises ConnectionFailed.
        """
        if not self.connected:
            raise NotConnected("No connection was found.")

        self.send_command("LOGOUT")
        response = self.read()
        if response is None:
            raise ProtocolError(f"Logout failed: {self.error}") from self.error

        if not self._close_transport():
            raise ConnectionFailed("Failed to close socket connection.")
        self.state = ClientState.LOGGED_OUT
        logger.info("%s: logged out", self)

    ##################################################################
    #
    def capability(self) -> str:
        self.send_command("CAPABILITY")
        response = self.read()
        if response is None:
            raise ProtocolError(
                f"Unable to get the capability list: {self.error}"
            ) from self.error
        self.capabilities = parse_capabilities(response)
        return self.strip_tag(response)

    ##################################################################
    #
    def noop(self) -> str:
        return self._simple_command("NOOP", "NOOP failed")

    ##################################################################
    #
    def list(self, reference_name: str = "", mailbox_name: str = "*") -> str:
        """
        Get the mailboxes (and their hierarchy delimiter) that match
        `mailbox_name` relative to `reference_name`. RFC3501 section 6.3.8

        Returns the untagged LIST lines, which is an empty string if there
        were no matches.
        """
        self._check_mailbox_args(reference_name, mailbox_name)
        return self._simple_command(
            f'LIST "{reference_name}" "{mailbox_name}"',
            "Unable to list the mailboxes",
        )

    ##################################################################
    #
    def lsub(self, reference_name: str = "", mailbox_name: str = "*") -> str:
        """
        Like `list()` but only for subscribed mailboxes. RFC3501 section
        6.3.9
        """
        self._check_mailbox_args(reference_name, mailbox_name)
        return self._simple_command(
            f'LSUB "{reference_name}" "{mailbox_name}"',
            "Unable to list the subscribed mailboxes",
        )

    ##################################################################
    #
    def select(self, mailbox: str) -> str:
        """
        Select a mailbox. RFC3501 section 6.3.1

        Returns the untagged lines of the server's response (EXISTS, FLAGS,
        etc.)
        """
        if not isinstance(mailbox, str) or len(mailbox) == 0:
            raise ArgumentError("The mailbox must be a non empty string.")
        return self._simple_command(
            f'SELECT "{mailbox}"', f'Unable to select the mailbox "{mailbox}"'
        )

    ##################################################################
    #
    def uid_fetch(self, sequence_set: str, data: str) -> Optional[str]:
        """
        Fetch messages by UID. RFC3501 section 6.4.8

        Arguments:
        - `sequence_set`: `<uid>` or `<uid>:<uid>`
        - `data`: the fetch attributes to return, eg: `(FLAGS RFC822.SIZE)`

        Returns None if nothing came back from the server. This is not
        treated as an error since it is how a fetch for UIDs that do not
        exist can end up.
        """
        if not isinstance(sequence_set, str) or len(sequence_set) == 0:
            raise ArgumentError("The sequence set must be a non empty string.")
        if not isinstance(data, str):
            raise ArgumentError("The fetch data items must be a string.")

        self.send_command(f"UID FETCH {sequence_set} {data}")
        response = self.read()
        if not response:
            return None

        # When fetching a range of messages some servers (gmail) end each
        # message with a `+` as if they were waiting for input. Send an empty
        # line so they carry on and pick up the rest of the response.
        #
        # XXX This likely leaves the session out of step if the server was
        #     not actually waiting for us.
        #
        if response.endswith("+"):
            self.send_command("", untagged=True)
            response += self.read() or ""

        return self.strip_tag(response)

    ##################################################################
    #
    def debug_mode(self, output: Optional[IO[str]] = None) -> None:
        """
        Start recording every command sent and every response read. If a
        read fails while in debug mode the transcript is written to `output`
        (stdout by default) and the error is raised.
        """
        if not self.transcript.enabled:
            self.transcript = Transcript()
        self.debug_file = output

    ##################################################################
    #
    @property
    def debug_output(self) -> str:
        return self.transcript.output()

    ##################################################################
    #
    def print_debug_output(self, output: Optional[IO[str]] = None) -> None:
        """
        Write out the transcript. Raises DebugModeOff if debug mode is not
        on.
        """
        text = self.transcript.output()
        output = output or self.debug_file or sys.stdout
        output.write(text)
        output.flush()

    ##################################################################
    #
    def send_command(self, command: str, untagged: bool = False) -> None:
        """
        Send a command to the server.

        Arguments:
        - `command`: One of the commands described in RFC3501. Do NOT
          include a tag, tagging is handled here.
        - `untagged`: Sometimes the server is waiting for input that does
          not take a tag, like an empty line after a `+` continuation.
        """
        if not self.connected:
            raise NotConnected("Unable to send a command, not connected.")

        if untagged:
            full_command = f"{command}{LINE_TERMINATOR}"
        else:
            self.tag_line += 1
            full_command = f"{self.tag} {command}{LINE_TERMINATOR}"

        self.transcript.append(full_command)
        logger.debug("%s: sending: %s", self, redact(full_command))
        self.trace("SEND", {"data": redact(full_command)})

        assert self.transport  # for mypy. `connected` checked this.
        if not self.transport.write(full_command.encode("utf-8")):
            raise WriteError(f"Unable to write to socket {self.name}.")

    ##################################################################
    #
    def read(self) -> Optional[str]:
        """
        Read the response to the command most recently sent.

        Returns the response text, or None if the response was an error (a
        NO or BAD) or nothing could be read. In that case `self.error` holds
        the error. When debug mode is on the error is raised instead.

        A response that begins or ends with a `+` is a continuation request.
        It is returned as is and whoever sent the command needs to respond
        to it and read again.
        """
        if not self.connected:
            raise NotConnected("Unable to read, not connected.")
        assert self.transport

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.error = None
        response: Optional[str] = None
        tag = self.tag

        data = self.transport.read(READ_SIZE)
        line = decoder.decode(data)

        if line.startswith("* OK"):
            response = line
        elif f"{tag} BAD" in line or "* BAD" in line:
            self.error = Bad(line.strip())
        elif f"{tag} NO" in line or "* NO" in line:
            self.error = No(line.strip())
        elif not data:
            self.error = ReadFailure()
        else:
            response = line

            # Keep reading until we see our tag at the start of the
            # response or at the start of any line after the first.
            #
            # NOTE: This is a substring match. Payload text that happens to
            #       contain "\r\n<tag>" ends the read early. Only the newly
            #       read text, plus enough of what came before it to catch a
            #       tag split across reads, is searched.
            #
            if (
                not line.startswith(tag)
                and not line.endswith("+")
                and not line.startswith("+")
            ):
                needle = f"{LINE_TERMINATOR}{tag}"
                overlap = len(needle) - 1
                parts = [line]
                window = line
                head = line
                while needle not in window and not head.startswith(tag):
                    data = self.transport.read(READ_SIZE)
                    if not data:
                        self.error = ReadFailure(
                            "Connection closed before the response to "
                            f"{tag} was complete."
                        )
                        response = None
                        break
                    text = decoder.decode(data)
                    parts.append(text)
                    window = window[-overlap:] + text
                    if len(head) < len(tag):
                        head += text
                else:
                    response = "".join(parts)

        if self.error is not None and response is None:
            logger.debug("%s: read error: %s", self, self.error)
            self.trace("RECEIVED", {"error": str(self.error)})
            if self.transcript.enabled:
                self.print_debug_output()
                raise self.error
        elif response is not None:
            self.transcript.append(response)
            self.trace("RECEIVED", {"data": response})

        return response

    ##################################################################
    #
    def strip_tag(self, response: str) -> str:
        """
        Cut the tagged completion line off the end of a response.

        If the tag can not be found the response is returned unchanged.
        """
        if not isinstance(response, str) or len(response) == 0:
            raise ArgumentError("The response must be a non empty string.")

        tag = self.tag
        needle = tag if response.startswith(tag) else f"{LINE_TERMINATOR}{tag}"
        idx = response.rfind(needle)
        if idx == -1:
            return response
        if needle != tag:
            # Keep the line terminator of the last untagged line.
            #
            idx += len(LINE_TERMINATOR)
        return response[:idx]

    ##################################################################
    #
    def _simple_command(self, command: str, failure_msg: str) -> str:
        self.send_command(command)
        response = self.read()
        if response is None:
            raise ProtocolError(f"{failure_msg}: {self.error}") from self.error
        return self.strip_tag(response)

    ##################################################################
    #
    def _check_mailbox_args(self, reference_name: str, mailbox_name: str):
        if not isinstance(reference_name, str):
            raise ArgumentError("The reference name must be a string.")
        if not isinstance(mailbox_name, str):
            raise ArgumentError("The mailbox name must be a string.")

    ##################################################################
    #
    def _close_transport(self) -> bool:
        """
        Close and forget the transport. Returns False if closing failed.
        """
        if self.transport is None:
            return False
        self.trace("CLOSE", {})
        try:
            return self.transport.close()
        finally:
            self.transport = None
