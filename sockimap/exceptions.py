#!/usr/bin/env python
#
# File: $Id$
#
"""
All of the exceptions the IMAP client raises. They are kept in their own
module so that the client, the transport and the command line tool can all
refer to them without circular imports.
"""


#######################################################################
#
# The root of everything we raise. Callers that do not care about the
# specifics can catch just this.
#
class IMAPClientException(Exception):
    def __init__(self, value="imap client exception"):
        self.value = value

    def __str__(self):
        return self.value


##################################################################
##################################################################
#
class ConnectionFailed(IMAPClientException):
    """
    The socket could not be created, the greeting could not be read, or
    closing the socket failed.
    """

    def __init__(self, value="connection failed"):
        self.value = value


##################################################################
##################################################################
#
class NotConnected(ConnectionFailed):
    """
    An operation that requires a live connection was attempted when there
    is no connection.
    """

    def __init__(self, value="not connected"):
        self.value = value


##################################################################
##################################################################
#
class ProtocolError(IMAPClientException):
    """
    The server said NO or BAD to a command, or said nothing at all when we
    needed a definite answer.
    """

    def __init__(self, value="protocol error"):
        self.value = value


##################################################################
##################################################################
#
class No(ProtocolError):
    def __init__(self, value="no"):
        self.value = value


##################################################################
##################################################################
#
class Bad(ProtocolError):
    def __init__(self, value="bad"):
        self.value = value


##################################################################
##################################################################
#
class LoginFailed(ProtocolError):
    def __init__(self, value="login failed"):
        self.value = value


##################################################################
##################################################################
#
class ArgumentError(IMAPClientException, ValueError):
    """
    A command helper was handed an argument it can not format in to a
    command (wrong type, or empty where a value is required.)
    """

    def __init__(self, value="invalid argument"):
        self.value = value


##################################################################
##################################################################
#
class WriteError(IMAPClientException):
    def __init__(self, value="unable to write to socket"):
        self.value = value


##################################################################
##################################################################
#
class ReadFailure(IMAPClientException):
    def __init__(self, value="Unable to read from the socket connection."):
        self.value = value


##################################################################
##################################################################
#
class CommandTimeout(IMAPClientException, TimeoutError):
    """
    A read or a write on the socket did not complete before the configured
    timeout.
    """

    def __init__(self, value="timed out"):
        self.value = value


##################################################################
##################################################################
#
class UnsupportedAuthMethod(IMAPClientException):
    def __init__(
        self, value="Unable to find a supported authentication method"
    ):
        self.value = value


##################################################################
##################################################################
#
class DebugModeOff(IMAPClientException):
    def __init__(self, value="Debug mode is off."):
        self.value = value
