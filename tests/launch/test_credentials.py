"""Tests for container token decoding and node-scoped identity binding."""

from __future__ import annotations

import base64
import json

import pytest

from launchspine.core.errors import CredentialError, ErrorCategory
from launchspine.launch.credentials import (
    CONTAINER_TOKEN_KIND,
    bind_credentials,
    decode_token,
    encode_token,
)
from launchspine.launch.models import NodeAddress


class TestBindCredentials:
    def test_identity_named_after_container(self):
        identity = bind_credentials("c-007", NodeAddress("node1", 45454), encode_token(b"ident", b"pw"))

        assert identity.user == "c-007"
        assert len(identity.tokens) == 1
        token = identity.tokens[0]
        assert token.service == "node1:45454"
        assert token.identifier == b"ident"
        assert token.password.get_secret() == b"pw"
        assert token.kind == CONTAINER_TOKEN_KIND
        assert identity.token_for("node1:45454") is token
        assert identity.token_for("other:1") is None

    def test_password_redacted(self):
        identity = bind_credentials("c-1", NodeAddress("n", 1), encode_token(b"i", b"topsecret"))

        assert "topsecret" not in repr(identity)
        assert str(identity.tokens[0].password) == "[REDACTED]"

    @pytest.mark.parametrize(
        "blob",
        [
            b"",
            b"not json",
            b"[1, 2]",
            b"\xff\xfe",
            json.dumps({"identifier": "aWQ="}).encode(),
            json.dumps({"identifier": "!!!", "password": "cHc="}).encode(),
            json.dumps({"identifier": "", "password": "cHc="}).encode(),
            json.dumps({"identifier": 12, "password": "cHc="}).encode(),
        ],
    )
    def test_malformed_blob(self, blob):
        with pytest.raises(CredentialError) as info:
            bind_credentials("c-2", NodeAddress("n", 1), blob)

        err = info.value
        assert err.category is ErrorCategory.AUTH
        assert err.retryable is False
        assert err.context.container_id == "c-2"
        assert err.context.node == "n:1"
        assert err.cause is not None

    @pytest.mark.parametrize("node", [NodeAddress("", 80), NodeAddress("n", 0), NodeAddress("n", 70000)])
    def test_invalid_node_address(self, node):
        with pytest.raises(CredentialError):
            bind_credentials("c-3", node, encode_token(b"i", b"p"))


def test_decode_token_keeps_kind():
    blob = json.dumps(
        {
            "identifier": base64.b64encode(b"x").decode(),
            "password": base64.b64encode(b"y").decode(),
            "kind": "NMToken",
            "unknown": "ignored",
        }
    ).encode()

    token = decode_token(blob, "h:1")

    assert token.kind == "NMToken"
    assert token.service == "h:1"
