"""
Tests for loading the connection settings.
"""
# system imports
#
import os

# 3rd party imports
#
import pytest

# Project imports
#
from ..config import IMAP_PORT, IMAPS_PORT, Config, as_bool
from ..exceptions import ArgumentError


####################################################################
#
@pytest.fixture
def clean_env(monkeypatch):
    """
    Remove any IMAP_* settings the person running the tests may have.
    """
    for key in list(os.environ):
        if key.startswith("IMAP_"):
            monkeypatch.delenv(key)
    return monkeypatch


####################################################################
#
@pytest.fixture
def dotenv_file(tmp_path):
    def write(contents: str) -> str:
        path = tmp_path / ".env"
        path.write_text(contents)
        return str(path)

    return write


####################################################################
#
@pytest.mark.parametrize(
    "value,default,expected",
    [
        ("1", False, True),
        ("Yes", False, True),
        (" on ", False, True),
        ("0", True, False),
        ("nope", True, False),
        ("", True, True),
        (None, False, False),
    ],
)
def test_as_bool(value, default, expected) -> None:
    assert as_bool(value, default) is expected


####################################################################
#
def test_default_ports() -> None:
    assert Config("imap.example.com").port == IMAPS_PORT
    assert Config("imap.example.com", ssl=False).port == IMAP_PORT
    assert Config("imap.example.com", port=1143, ssl=False).port == 1143


####################################################################
#
def test_repr_hides_key(config_factory) -> None:
    config = config_factory(key="hunter2hunter2")
    assert "hunter2hunter2" not in repr(config)
    assert config.host in repr(config)


####################################################################
#
def test_from_dotenv(clean_env, dotenv_file) -> None:
    path = dotenv_file(
        "IMAP_HOST=imap.example.com\n"
        "IMAP_SSL=false\n"
        "IMAP_USERNAME=fred\n"
        "IMAP_KEY=secret\n"
        "IMAP_TIMEOUT=2.5\n"
    )
    config = Config.from_env(path)
    assert config.host == "imap.example.com"
    assert config.is_ssl() is False
    assert config.port == IMAP_PORT
    assert config.is_oauth() is False
    assert config.username == "fred"
    assert config.key == "secret"
    assert config.timeout == 2.5


####################################################################
#
def test_environment_overrides_dotenv(clean_env, dotenv_file) -> None:
    path = dotenv_file("IMAP_HOST=imap.example.com\nIMAP_PORT=1993\n")
    clean_env.setenv("IMAP_HOST", "other.example.com")
    clean_env.setenv("IMAP_OAUTH", "yes")

    config = Config.from_env(path)
    assert config.host == "other.example.com"
    assert config.port == 1993
    assert config.is_ssl()
    assert config.is_oauth()


####################################################################
#
def test_keyword_overrides(clean_env, dotenv_file) -> None:
    path = dotenv_file("IMAP_HOST=imap.example.com\nIMAP_USERNAME=fred\n")

    # None means "not given" and does not override anything.
    #
    config = Config.from_env(path, username="barney", ssl=None, port=None)
    assert config.username == "barney"
    assert config.is_ssl()
    assert config.port == IMAPS_PORT


####################################################################
#
def test_missing_host(clean_env, dotenv_file) -> None:
    path = dotenv_file("IMAP_USERNAME=fred\n")
    with pytest.raises(ArgumentError):
        Config.from_env(path)


####################################################################
#
@pytest.mark.parametrize("key,value", [("IMAP_PORT", "imap"), ("IMAP_TIMEOUT", "soon")])
def test_bad_numbers(clean_env, dotenv_file, key, value) -> None:
    path = dotenv_file(f"IMAP_HOST=imap.example.com\n{key}={value}\n")
    with pytest.raises(ArgumentError):
        Config.from_env(path)
