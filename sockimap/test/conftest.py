"""
pytest fixtures for testing `sockimap`
"""
# System imports
#
import socket
import ssl
import threading
from typing import Iterable, List, Union

# 3rd party imports
#
import pytest
import trustme

# project imports
#
from ..client import IMAPClient
from .factories import ConfigFactory


####################################################################
#
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: tests that talk to a server over a socket"
    )


##################################################################
##################################################################
#
class FakeTransport:
    """
    Stands in for `sockimap.transport.Transport`. Each `read()` hands back
    the next scripted chunk (and an empty bytes once they run out.) Every
    `write()` is recorded.
    """

    ##################################################################
    #
    def __init__(self, chunks: Iterable[Union[str, bytes]] = ()):
        self.chunks: List[bytes] = []
        self.written: List[bytes] = []
        self.reads = 0
        self.closed = False
        self.write_result = True
        self.close_result = True
        self.feed(*chunks)

    ##################################################################
    #
    def feed(self, *chunks: Union[str, bytes]) -> None:
        for chunk in chunks:
            self.chunks.append(
                chunk.encode("utf-8") if isinstance(chunk, str) else chunk
            )

    ##################################################################
    #
    @property
    def sent(self) -> List[str]:
        return [str(x, "utf-8") for x in self.written]

    ##################################################################
    #
    def write(self, data: bytes) -> bool:
        self.written.append(data)
        return self.write_result

    ##################################################################
    #
    def read(self, max_bytes: int) -> bytes:
        self.reads += 1
        if not self.chunks:
            return b""
        return self.chunks.pop(0)

    ##################################################################
    #
    def close(self) -> bool:
        self.closed = True
        return self.close_result


####################################################################
#
@pytest.fixture
def config_factory():
    return ConfigFactory


####################################################################
#
@pytest.fixture
def imap_client(config_factory):
    """
    Returns a function that makes an IMAPClient whose transport is a
    FakeTransport scripted with the given server chunks. The function
    returns the tuple (client, transport). Keyword arguments are passed on
    to the ConfigFactory.
    """

    def make_client(*chunks: Union[str, bytes], **kwargs):
        transport = FakeTransport(chunks)
        config = config_factory(**kwargs)
        client = IMAPClient(
            config, transport_factory=lambda *args, **kw: transport
        )
        return client, transport

    return make_client


####################################################################
#
@pytest.fixture
def connected_client(imap_client):
    """
    Like `imap_client` except the greeting has already been read. The
    chunks given are what the server will send after the greeting.
    """

    def make_client(*chunks: Union[str, bytes], **kwargs):
        client, transport = imap_client("* OK ready\r\n", *chunks, **kwargs)
        client.connect()
        return client, transport

    return make_client


####################################################################
#
@pytest.fixture(scope="session")
def ssl_certs():
    """
    Creates certificates using `trustme`. What is returned is a tuple of a
    `trustme.CA()` instance, and the `trustme` issued server cert.
    """
    ca = trustme.CA()
    server_cert = ca.issue_cert("127.0.0.1", "localhost", "::1")
    return (ca, server_cert)


####################################################################
#
def scripted_response(tag: str, command: str) -> bytes:
    """
    What our little test server says in response to a command.
    """
    command = command.upper()
    if command.startswith("CAPABILITY"):
        resp = f"* CAPABILITY IMAP4rev1 AUTH=PLAIN\r\n{tag} OK CAPABILITY completed\r\n"
    elif command.startswith("LOGIN"):
        resp = f"{tag} OK LOGIN completed\r\n"
    elif command.startswith("SELECT"):
        resp = f"* 3 EXISTS\r\n* 0 RECENT\r\n{tag} OK [READ-WRITE] SELECT completed\r\n"
    elif command.startswith("LOGOUT"):
        resp = f"* BYE Logging out\r\n{tag} OK LOGOUT completed\r\n"
    else:
        resp = f"{tag} BAD Unknown command\r\n"
    return resp.encode("ascii")


####################################################################
#
@pytest.fixture
def imap_tls_server(ssl_certs):
    """
    Starts a tiny scripted IMAP server that speaks TLS in a separate
    thread. It handles a single connection and stops after LOGOUT.

    Yields a dict with the `host`, `port`, a client `ssl_context` that
    trusts the server's certificate, and `received`, the list of command
    lines the server got.
    """
    ca, server_cert = ssl_certs
    server_ssl_context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    server_cert.configure_cert(server_ssl_context)

    host = "127.0.0.1"
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind((host, 0))
    listener.listen(1)
    listener.settimeout(5)
    port = listener.getsockname()[1]
    received: List[str] = []

    ############################
    #
    # start a mini server.. how cute
    #
    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with server_ssl_context.wrap_socket(conn, server_side=True) as tls:
            tls.sendall(b"* OK [CAPABILITY IMAP4rev1] test server ready\r\n")
            reader = tls.makefile("rb")
            for line in reader:
                line_str = str(line, "ascii").rstrip("\r\n")
                received.append(line_str)
                tag, _, command = line_str.partition(" ")
                tls.sendall(scripted_response(tag, command))
                if command.upper().startswith("LOGOUT"):
                    break
            reader.close()

    server_thread = threading.Thread(target=serve, daemon=True)
    server_thread.start()

    client_ssl_context = ssl.create_default_context()
    ca.configure_trust(client_ssl_context)

    yield {
        "host": host,
        "port": port,
        "ssl_context": client_ssl_context,
        "received": received,
    }

    listener.close()
    server_thread.join(timeout=5.0)
