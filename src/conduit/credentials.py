"""Persistence for the Google OAuth credential.

The token file is the JSON blob produced by the token endpoint (plus
``expiry_date``). Fields the store does not know about are carried through
untouched so the file stays readable by other OAuth tooling.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger("conduit.credentials")

_KNOWN_KEYS = ("access_token", "refresh_token", "expiry_date")


@dataclass(frozen=True)
class Credential:
    """Access/refresh token pair for a single Drive account."""

    access_token: str
    refresh_token: str | None = None
    expiry_date: int | None = None  # epoch milliseconds, as issued; never checked locally
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def active(self) -> bool:
        return bool(self.access_token)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token missing")
        refresh_token = data.get("refresh_token")
        expiry_date = data.get("expiry_date")
        return cls(
            access_token=access_token,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
            expiry_date=int(expiry_date) if isinstance(expiry_date, (int, float)) else None,
            extra={key: value for key, value in data.items() if key not in _KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.extra)
        payload["access_token"] = self.access_token
        if self.refresh_token is not None:
            payload["refresh_token"] = self.refresh_token
        if self.expiry_date is not None:
            payload["expiry_date"] = self.expiry_date
        return payload

    def __repr__(self) -> str:
        return (
            f"Credential(access_token=***, refresh_token={'***' if self.refresh_token else None}, "
            f"expiry_date={self.expiry_date})"
        )


class CredentialStore:
    """Owns the process-wide credential and its on-disk copy.

    ``current`` is the in-memory credential; it changes only through
    ``load``, ``save``, ``on_refresh`` and ``clear``.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._current: Credential | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def current(self) -> Credential | None:
        return self._current

    def load(self) -> Credential | None:
        """Read the token file. A missing or unreadable file means no credential."""
        try:
            data = json.loads(self._path.read_text())
        except FileNotFoundError:
            self._current = None
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read token file %s: %s", self._path, exc)
            self._current = None
            return None
        try:
            credential = Credential.from_dict(data) if isinstance(data, dict) else None
        except ValueError as exc:
            logger.warning("Ignoring token file %s: %s", self._path, exc)
            credential = None
        self._current = credential
        return credential

    def save(self, credential: Credential) -> None:
        """Atomically replace the token file and adopt ``credential``.

        The new contents go to a temporary file in the same directory which is
        then renamed over the old one, so a failed write leaves the previous
        credential intact.

        Raises:
            OSError: If the file cannot be written.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(credential.to_dict(), handle)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        self._current = credential

    def clear(self) -> bool:
        """Delete the token file and forget the credential.

        Returns:
            True if a file was removed, False if there was nothing to remove.

        Raises:
            OSError: If the file exists but cannot be removed.
        """
        self._current = None
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True

    def on_refresh(
        self,
        credential: Credential,
        access_token: str,
        refresh_token: str | None = None,
        expiry_date: int | None = None,
    ) -> Credential:
        """Merge refreshed tokens into ``credential`` and persist the result.

        The refresh token is replaced only when a new one is supplied; the
        authorization server does not always reissue it.
        """
        updated = replace(
            credential,
            access_token=access_token,
            refresh_token=refresh_token or credential.refresh_token,
            expiry_date=expiry_date if expiry_date is not None else credential.expiry_date,
        )
        try:
            self.save(updated)
        except OSError as exc:
            # The refreshed tokens stay usable in memory for this process.
            logger.error("Failed to persist refreshed credential: %s", exc)
            self._current = updated
        return updated


__all__ = ["Credential", "CredentialStore"]
