"""RegistryConfig — duration policy and identity rules for the registry.

The duration unit and the upper bound on delegation length are policy,
not registry invariants, so hosting code supplies them here. Defaults
match a day-granular delegation capped at one year.
"""
from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

SECONDS_PER_DAY = 86_400
ZERO_ADDRESS = "0x" + "0" * 40


class RegistryConfig(BaseModel):
    """Configurable delegation policy.

    Parameters
    ----------
    unit_length:
        Length in seconds of one duration unit.
    max_duration:
        Largest number of units a single grant may span.
    null_identities:
        Identity strings treated as "no identity" in addition to ``None``
        and blank strings.
    """

    unit_length: int = Field(default=SECONDS_PER_DAY, gt=0)
    max_duration: int = Field(default=365, ge=1)
    null_identities: frozenset[str] = Field(
        default_factory=lambda: frozenset({ZERO_ADDRESS})
    )

    model_config = {"frozen": True}

    def max_expiry(self) -> int:
        """Return the longest possible lifetime of a grant in seconds."""
        return self.unit_length * self.max_duration

    def is_null_identity(self, identity: object) -> bool:
        """Return True if *identity* does not name a real principal."""
        if identity is None:
            return True
        if not isinstance(identity, str):
            return False
        stripped = identity.strip()
        return not stripped or stripped.lower() in {i.lower() for i in self.null_identities}

    def same_identity(self, first: str, second: str) -> bool:
        """Return True if both strings name the same principal.

        Surrounding whitespace and letter case are ignored, as they are for
        null identities, so hex addresses in mixed case compare equal.
        """
        return first.strip().lower() == second.strip().lower()

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls, prefix: str = "DELEGATION_") -> "RegistryConfig":
        """Build a config from ``<prefix>UNIT_LENGTH`` and ``<prefix>MAX_DURATION``.

        Unset variables fall back to the defaults.
        """
        values: dict[str, object] = {}
        for name in ("unit_length", "max_duration"):
            raw = os.environ.get(f"{prefix}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls.model_validate(values)

    @classmethod
    def from_file(cls, path: Path) -> "RegistryConfig":
        """Load a config from a JSON object stored at *path*."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.model_validate(data)


__all__ = ["RegistryConfig", "SECONDS_PER_DAY", "ZERO_ADDRESS"]
