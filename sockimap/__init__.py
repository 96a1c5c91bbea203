"""
sockimap: a minimal IMAP4rev1 client that speaks the protocol directly over
a (optionally TLS wrapped) socket.
"""

__version__ = "1.0.0"
