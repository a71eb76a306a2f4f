"""Credential resolution and masking.

Identities and secrets are resolved from, in order:

1. the execution context of a load-campaign virtual user;
2. the first data row of the shared CSV fixture (interactive runs);
3. explicit session options, then the process defaults in ``HarnessConfig``.

They are never logged in cleartext; use ``Credential.masked()`` or the
``mask_*`` helpers in log lines and error messages.
"""
from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from ui_harness.errors import ConfigurationError

logger = logging.getLogger(__name__)

SOURCE_CONTEXT = "execution-context"
SOURCE_FIXTURE = "fixture"
SOURCE_OPTIONS = "options"
SOURCE_DEFAULTS = "defaults"


def mask_secret(value: Optional[str]) -> str:
    """Keep the first two and last character of a value; first character only if short."""
    if not isinstance(value, str) or not value:
        return str(value)
    if len(value) <= 4:
        return value[0] + "***"
    return value[:2] + "***" + value[-1]


def mask_identity(identity: Optional[str]) -> str:
    """Mask the local part of an email address and keep the domain."""
    if not isinstance(identity, str) or "@" not in identity:
        return mask_secret(identity)
    local, domain = identity.split("@", 1)
    if len(local) <= 2:
        masked_local = (local[:1] or "") + "*"
    else:
        masked_local = local[:2] + "***"
    return f"{masked_local}@{domain}"


@dataclass(frozen=True)
class Credential:
    identity: str
    secret: str = field(repr=False)
    source: str = SOURCE_DEFAULTS

    def masked(self) -> str:
        return f"{mask_identity(self.identity)}/{mask_secret(self.secret)}"

    def __repr__(self) -> str:
        return f"Credential(identity={mask_identity(self.identity)!r}, source={self.source!r})"


def read_fixture_credential(path: Path) -> Tuple[str, str]:
    """Return (identity, secret) from the first data row of a CSV fixture.

    Raises:
        OSError: file missing or unreadable.
        ValueError: no data row, or the row lacks either column.
    """
    with Path(path).open("r", encoding="utf-8", newline="") as handle:
        reader = csv.reader(handle)
        header = next(reader, None)
        if header is None:
            raise ValueError(f"{path} is empty")
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            if len(row) < 2 or not row[0].strip() or not row[1].strip():
                raise ValueError(f"{path}: first data row needs identity and secret columns")
            return row[0].strip(), row[1].strip()
    raise ValueError(f"{path} does not contain any user data")


def resolve_credentials(
    *,
    context_credential: Optional[Credential] = None,
    fixture_path: Optional[Path] = None,
    identity: Optional[str] = None,
    secret: Optional[str] = None,
    default_identity: Optional[str] = None,
    default_secret: Optional[str] = None,
) -> Credential:
    """Pick the credential for a session from the ranked sources.

    Raises:
        ConfigurationError: nothing usable after every source was tried.
    """
    if context_credential is not None and context_credential.identity and context_credential.secret:
        logger.info("Using execution-context credentials for %s", mask_identity(context_credential.identity))
        return context_credential

    if fixture_path is not None:
        try:
            fixture_identity, fixture_secret = read_fixture_credential(fixture_path)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read credential fixture, falling back to options/defaults: %s", exc)
        else:
            logger.info("Using first fixture credential for %s", mask_identity(fixture_identity))
            return Credential(fixture_identity, fixture_secret, SOURCE_FIXTURE)

    resolved_identity = identity or default_identity
    resolved_secret = secret or default_secret
    if not resolved_identity or not resolved_secret:
        raise ConfigurationError(
            "Missing login credentials. Identity: "
            f"{'provided' if resolved_identity else 'missing'}, "
            f"secret: {'provided' if resolved_secret else 'missing'}"
        )

    source = SOURCE_OPTIONS if (identity and secret) else SOURCE_DEFAULTS
    logger.info(
        "Using fallback credentials identity=%s secret=%s",
        mask_identity(resolved_identity),
        mask_secret(resolved_secret),
    )
    return Credential(resolved_identity, resolved_secret, source)
