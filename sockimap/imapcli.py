#!/usr/bin/env python
#
# File: $Id$
#
"""
Talk to an IMAP server from the command line. Logs in, runs one command and
prints the server's (untagged) response.

NOTE: Connection settings can also be set in a `.env` file or the
      environment (IMAP_HOST, IMAP_PORT, IMAP_SSL, IMAP_OAUTH,
      IMAP_USERNAME, IMAP_KEY, IMAP_TIMEOUT.) A command line option overrides
      the env. var if set. If IMAP_KEY is not set you are prompted for it.

Usage:
  sockimap [options] list [<reference>] [<mailbox>]
  sockimap [options] lsub [<reference>] [<mailbox>]
  sockimap [options] select <mailbox>
  sockimap [options] fetch <mailbox> <sequence_set> [<data>]
  sockimap (-h | --help)
  sockimap --version

Options:
  --version
  -h, --help           Show this text and exit
  --host=<host>        The IMAP server to connect to. The env. var is
                       `IMAP_HOST`
  --port=<p>           Port to connect to. Defaults to 993, or 143 with
                       `--no-ssl`. The env. var is `IMAP_PORT`
  --no-ssl             Connect without TLS. The env. var is `IMAP_SSL`
  --oauth              Authenticate with XOAUTH2, the key is the bearer token.
                       The env. var is `IMAP_OAUTH`
  --username=<user>    Who to log in as. The env. var is `IMAP_USERNAME`
  --timeout=<secs>     Give up on any socket read or write that takes longer
                       than this. The env. var is `IMAP_TIMEOUT`
  --env=<file>         The `.env` file to read. Defaults to the first `.env`
                       found from the current directory upwards.
  --debug              Set the logging level to `DEBUG` and record a
                       transcript of the session, which is printed to stderr
                       if the server returns an error.
  --trace=<file>       Write a JSON trace record for every message sent and
                       received to this file. Sending the process a SIGUSR1
                       turns tracing off and on.
  --log-config=<lc>    The log config file. Either a JSON file that follows
                       the python logging configuration dictionary schema or a
                       file in the python logging configuration file format.
"""
# system imports
#
import getpass
import logging
import os
import signal
import sys
from typing import Dict, List, Optional

# 3rd party imports
#
import sentry_sdk
from docopt import docopt

# Application imports
#
from sockimap import __version__ as VERSION

from .client import IMAPClient
from .config import Config
from .exceptions import IMAPClientException
from .trace import enable_tracing, toggle_trace
from .utils import setup_logging

logger = logging.getLogger("sockimap.imapcli")

DEFAULT_FETCH_DATA = "(FLAGS RFC822.SIZE)"


####################################################################
#
def build_config(args: Dict) -> Config:
    """
    Combine the command line options with the `.env` file / environment.
    """
    port = int(args["--port"]) if args["--port"] else None
    timeout = float(args["--timeout"]) if args["--timeout"] else None
    config = Config.from_env(
        args["--env"],
        host=args["--host"],
        port=port,
        ssl=False if args["--no-ssl"] else None,
        oauth=True if args["--oauth"] else None,
        username=args["--username"],
        timeout=timeout,
    )
    if not config.key:
        what = "Bearer token" if config.oauth else "Password"
        config.key = getpass.getpass(f"{what} for {config.username}: ")
    return config


####################################################################
#
def run_command(client: IMAPClient, args: Dict) -> str:
    if args["list"]:
        return client.list(args["<reference>"] or "", args["<mailbox>"] or "*")
    if args["lsub"]:
        return client.lsub(args["<reference>"] or "", args["<mailbox>"] or "*")
    if args["select"]:
        return client.select(args["<mailbox>"])

    client.select(args["<mailbox>"])
    result = client.uid_fetch(
        args["<sequence_set>"], args["<data>"] or DEFAULT_FETCH_DATA
    )
    return result if result else ""


#############################################################################
#
def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse the options, set up logging, connect, log in, run the command and
    log out.
    """
    args = docopt(__doc__, argv=argv, version=VERSION)
    debug = args["--debug"]
    trace_file = args["--trace"]

    setup_logging(args["--log-config"], debug, trace_file=trace_file)
    if trace_file:
        enable_tracing()
        signal.signal(signal.SIGUSR1, lambda signum, frame: toggle_trace())

    if "SENTRY_DSN" in os.environ:
        logger.debug("Initializing sentry_sdk")
        sentry_sdk.init(
            dsn=os.environ["SENTRY_DSN"],
            traces_sample_rate=float(
                os.environ.get("SENTRY_TRACES_SAMPLE_RATE", 0.0)
            ),
            environment="devel" if debug else "production",
        )

    try:
        config = build_config(args)
    except (IMAPClientException, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    client = IMAPClient(config)
    if debug:
        client.debug_mode(output=sys.stderr)

    try:
        with client:
            client.login()
            sys.stdout.write(run_command(client, args))
    except IMAPClientException as exc:
        logger.debug("Command failed: %s", exc, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


############################################################################
############################################################################
#
# Here is where it all starts
#
if __name__ == "__main__":
    sys.exit(main())
