"""Credential resolution from integration configuration blobs.

Integration settings are stored as named blobs of the form
``{"fields": {"Personal Access Token": "..."}}``. Field names are chosen by
whoever configured the integration, so lookups go through a prioritized alias
list and fall back to the first non-empty string value.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from specflow_vcs.storage import KeyValueStore
from specflow_vcs.util.logging import get_logger

GIT_TOKEN_ALIASES: tuple[str, ...] = (
    "personal_access_token",
    "Personal Access Token",
    "token",
    "Token",
    "access_token",
    "Access Token",
    "api_key",
    "API Key",
    "apiKey",
    "pat",
    "PAT",
)

AI_KEY_ALIASES: tuple[str, ...] = (
    "api_key",
    "API Key",
    "apiKey",
    "Api Key",
    "ANTHROPIC_API_KEY",
    "anthropic_api_key",
    "key",
    "Key",
)

_LOGGER = get_logger("specflow_vcs.credentials")


def resolve_credential(fields: Mapping[str, Any], aliases: Sequence[str]) -> str | None:
    """Pick a credential value out of a field mapping.

    Args:
        fields: Arbitrary field-name to value mapping.
        aliases: Accepted field names, highest priority first.

    Returns:
        The first alias holding a non-empty string, else the first non-empty
        string value in ``fields``, else None.
    """

    for alias in aliases:
        value = fields.get(alias)
        if isinstance(value, str) and value:
            return value
    for value in fields.values():
        if isinstance(value, str) and value:
            return value
    return None


class CredentialStore(ABC):
    """Capability that resolves a credential from a list of field aliases."""

    @abstractmethod
    def resolve(self, aliases: Sequence[str]) -> str | None:
        """Return the resolved credential or None when nothing is configured."""


class StaticCredentialStore(CredentialStore):
    """Credential store backed by a fixed field mapping."""

    def __init__(self, fields: Mapping[str, Any] | None = None) -> None:
        self._fields = dict(fields or {})

    def resolve(self, aliases: Sequence[str]) -> str | None:
        return resolve_credential(self._fields, aliases)


class IntegrationCredentialStore(CredentialStore):
    """Resolve credentials from an integration blob held in a key/value store."""

    def __init__(
        self,
        store: KeyValueStore,
        integration_key: str,
        *,
        direct_keys: Sequence[str] = (),
    ) -> None:
        """Initialize the credential store.

        Args:
            store: Key/value store holding integration blobs.
            integration_key: Storage key of the integration blob.
            direct_keys: Standalone storage keys checked before the blob.
        """

        self._store = store
        self._integration_key = integration_key
        self._direct_keys = tuple(direct_keys)

    def resolve(self, aliases: Sequence[str]) -> str | None:
        for key in self._direct_keys:
            value = self._store.get(key)
            if isinstance(value, str) and value.strip():
                return value
        fields = self._load_fields()
        if fields is None:
            return None
        return resolve_credential(fields, aliases)

    def _load_fields(self) -> Mapping[str, Any] | None:
        blob = self._store.get(self._integration_key)
        if blob is None:
            return None
        if isinstance(blob, str):
            try:
                blob = json.loads(blob)
            except json.JSONDecodeError:
                _LOGGER.debug("Integration blob '%s' is not valid JSON.", self._integration_key)
                return None
        if not isinstance(blob, dict):
            return None
        fields = blob.get("fields")
        if not isinstance(fields, dict) or not fields:
            return None
        return fields
