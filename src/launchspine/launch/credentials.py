"""Credential binding for container launches.

The resource manager hands out a container token with every allocation.
Before the node's container-management service will accept a start
request, the token must be decoded, scoped to the target node and
attached to a remote identity named after the container. The launcher
never presents its own long-lived credentials for this call.

Token blob wire shape::

    {"identifier": "<base64>", "password": "<base64>", "kind": "ContainerToken"}
"""

from __future__ import annotations

import base64
import binascii
import json

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from launchspine.core.errors import CredentialError, ErrorContext
from launchspine.core.secrets import SecretValue
from launchspine.launch.models import DelegatedIdentity, DelegationToken, NodeAddress

CONTAINER_TOKEN_KIND = "ContainerToken"


class _TokenBlob(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    identifier: bytes
    password: bytes
    kind: str = CONTAINER_TOKEN_KIND

    @field_validator("identifier", "password", mode="before")
    @classmethod
    def _decode_base64(cls, value: object) -> bytes:
        if not isinstance(value, str) or not value:
            raise ValueError("expected a non-empty base64 string")
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid base64: {exc}") from exc


def node_service(node: NodeAddress) -> str:
    """Token service string for *node* (``host:port``)."""
    if not node.host or not 0 < node.port < 65536:
        raise ValueError(f"invalid node address {node.host!r}:{node.port}")
    return str(node)


def decode_token(blob: bytes, service: str) -> DelegationToken:
    """Decode a raw container token blob and scope it to *service*."""
    try:
        parsed = _TokenBlob.model_validate(json.loads(blob))
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError, ValidationError) as exc:
        raise CredentialError("container token is malformed", cause=exc) from exc
    return DelegationToken(
        identifier=parsed.identifier,
        password=SecretValue(parsed.password),
        kind=parsed.kind,
        service=service,
    )


def bind_credentials(
    container_id: str, node: NodeAddress, token_blob: bytes
) -> DelegatedIdentity:
    """Build the delegated identity a container start is authenticated as.

    The identity's user is the container id and it carries exactly one
    token, scoped to the node hosting the container.

    Raises:
        CredentialError: The node address is unusable or the token blob
            cannot be decoded. Not retryable for this attempt.
    """
    context = ErrorContext(container_id=container_id, node=f"{node.host}:{node.port}")
    try:
        service = node_service(node)
    except ValueError as exc:
        raise CredentialError(str(exc), context=context, cause=exc) from exc
    try:
        token = decode_token(token_blob, service)
    except CredentialError as exc:
        exc.context = context
        raise
    return DelegatedIdentity(user=container_id, tokens=(token,))


def encode_token(identifier: bytes, password: bytes, kind: str = CONTAINER_TOKEN_KIND) -> bytes:
    """Inverse of :func:`decode_token`, for resource-manager stubs and tests."""
    return json.dumps(
        {
            "identifier": base64.b64encode(identifier).decode("ascii"),
            "password": base64.b64encode(password).decode("ascii"),
            "kind": kind,
        }
    ).encode("utf-8")
