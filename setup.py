#!/usr/bin/env python
#

from setuptools import setup

from sockimap import __version__

setup(
    name="sockimap",
    version=__version__,
    description="A minimal IMAP client that speaks the protocol over a socket",
    long_description=(
        "sockimap is a small, synchronous IMAP4rev1 client. It tags and "
        "sends commands over a plain or TLS socket, reads and classifies "
        "the responses, and handles LOGIN and XOAUTH2 authentication."
    ),
    author="Scanner",
    author_email="scanner@apricot.com",
    packages=["sockimap"],
    python_requires=">=3.11",
    install_requires=[
        "docopt",
        "python-dotenv",
        "python-json-logger",
        "sentry-sdk",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "Faker",
            "factory_boy",
            "trustme",
        ],
    },
    entry_points={
        "console_scripts": ["sockimap = sockimap.imapcli:main"],
    },
)
