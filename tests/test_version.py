"""Test basic package functionality."""

import term_relay


def test_version() -> None:
    """Test that version is defined."""
    assert term_relay.__version__ == "0.1.0"


def test_package_imports() -> None:
    """Test that package can be imported."""
    assert term_relay is not None


def test_all_exports() -> None:
    """Test that all public API exports are accessible."""
    assert term_relay.ConnectionGateway is not None
    assert term_relay.RelaySession is not None
    assert term_relay.SSHSessionAdapter is not None
    assert term_relay.LoopbackSessionAdapter is not None
    assert term_relay.RelayError is not None
    assert term_relay.SessionState is not None
