#!/usr/bin/env python
#
# File: $Id$
#
"""
Support for recording what goes over the wire.

There are two, related, things here:

- The session transcript. When debug mode is turned on for an IMAPClient
  every command written and every response read is appended to a
  `Transcript`. When debug mode is off the client holds a `NullTranscript`
  that records nothing.

- Trace records. These are dicts written to the `sockimap.trace` logger
  (which `sockimap.utils.setup_logging()` points at a JSON formatted
  rotating log file.) Tracing is off until `enable_tracing()` or
  `toggle_trace()` is called.
"""

# system imports
#
import logging
from typing import Any, Dict, List

# Project imports
#
from .exceptions import DebugModeOff

logger = logging.getLogger("sockimap.trace")
TRACE_ENABLED = False


####################################################################
#
def enable_tracing(enabled: bool = True) -> None:
    global TRACE_ENABLED
    TRACE_ENABLED = enabled


####################################################################
#
def toggle_trace() -> None:
    """
    Flip tracing on or off.
    """
    global TRACE_ENABLED
    TRACE_ENABLED = not TRACE_ENABLED
    logger.info("Tracing is now %s", "on" if TRACE_ENABLED else "off")


####################################################################
#
def trace(msg: Dict[str, Any]) -> None:
    """
    Keyword Arguments:
    msg -- a dict that makes up the trace record
    """
    if TRACE_ENABLED:
        logger.info(msg)


########################################################################
########################################################################
#
class Transcript:
    """
    An append only record of the commands we sent and the responses we
    read during one session.
    """

    enabled = True

    ####################################################################
    #
    def __init__(self):
        self.entries: List[str] = []

    ####################################################################
    #
    def append(self, data: str) -> None:
        self.entries.append(data)

    ####################################################################
    #
    def output(self) -> str:
        return "".join(self.entries)


########################################################################
########################################################################
#
class NullTranscript(Transcript):
    """
    What an IMAPClient uses when debug mode is off. Appending is a no-op and
    asking for the output is an error.
    """

    enabled = False

    ####################################################################
    #
    def append(self, data: str) -> None:
        pass

    ####################################################################
    #
    def output(self) -> str:
        raise DebugModeOff()
