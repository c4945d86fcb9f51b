"""Tests for the Strata exception hierarchy."""
from __future__ import annotations

from strata.core.exceptions import (
    AuthenticationError,
    ContentParseError,
    LayerSourceError,
    NetworkError,
    UnknownLayerError,
)


def test_authentication_error_carries_remediation() -> None:
    err = AuthenticationError("rejected", remediation="check $KB_TOKEN", layer_name="company")

    assert isinstance(err, LayerSourceError)
    assert str(err) == "rejected (check $KB_TOKEN)"
    payload = err.to_json_error()
    assert payload["code"] == "AuthenticationError"
    assert payload["context"] == {"remediation": "check $KB_TOKEN", "layer_name": "company"}


def test_network_error_is_a_layer_source_error() -> None:
    assert issubclass(NetworkError, LayerSourceError)


def test_content_parse_error_prefixes_path() -> None:
    assert str(ContentParseError("bad yaml", path="domains/x.md")) == "domains/x.md: bad yaml"


def test_unknown_layer_error_message() -> None:
    err = UnknownLayerError("ghost")
    assert isinstance(err, KeyError)
    assert str(err) == "Unknown layer: ghost"
