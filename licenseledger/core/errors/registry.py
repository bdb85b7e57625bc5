"""
Error registry — the catalogue behind every LedgerError code.

registry.yaml maps each ``LDG-<DOMAIN>-<NNN>`` code to what callers see:
HTTP status, title, safe message, remediation hints and whether retrying
can help. Severity only picks the log level; unknown values log as ERROR.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from licenseledger.core.errors import CODE_PATTERN

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path(__file__).with_name("registry.yaml")

LEDGER_DOMAINS = {"API", "CFG", "DB", "REG", "SUB", "PAY", "ORC", "ADM", "SYS"}
REQUIRED_FIELDS = ("code", "title", "http_status", "safe_message")


class RegistryValidationError(Exception):
    """registry.yaml is structurally invalid."""


@dataclass(frozen=True)
class ErrorEntry:
    code: str
    title: str
    http_status: int
    safe_message: str
    severity: str = "ERROR"
    retryable: bool = False
    remediation: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @property
    def domain(self) -> str:
        return self.code.split("-")[1]

    @classmethod
    def from_yaml(cls, raw: Dict[str, Any], position: int) -> "ErrorEntry":
        missing = [name for name in REQUIRED_FIELDS if name not in raw]
        if missing:
            raise RegistryValidationError(f"entry #{position}: missing {', '.join(missing)}")

        code = raw["code"]
        if not CODE_PATTERN.match(code):
            raise RegistryValidationError(f"entry #{position}: malformed code {code!r}")

        entry = cls(
            code=code,
            title=raw["title"],
            http_status=int(raw["http_status"]),
            safe_message=raw["safe_message"],
            severity=str(raw.get("severity", "ERROR")).upper(),
            retryable=bool(raw.get("retryable", False)),
            remediation=list(raw.get("remediation") or []),
            tags=list(raw.get("tags") or []),
        )

        # An explicit domain is optional but must agree with the code prefix
        if raw.get("domain", entry.domain) != entry.domain:
            raise RegistryValidationError(f"{code}: domain {raw['domain']!r} contradicts the code")
        if entry.domain not in LEDGER_DOMAINS:
            raise RegistryValidationError(f"{code}: domain {entry.domain!r} is not a ledger domain")
        if not 400 <= entry.http_status <= 599:
            raise RegistryValidationError(f"{code}: http_status {entry.http_status} is not an error status")
        return entry


class ErrorRegistry:
    def __init__(self) -> None:
        self._entries: Dict[str, ErrorEntry] = {}
        self.schema_version: int = 0

    def load(self, path: Union[str, Path, None] = None) -> None:
        """Parse and validate the catalogue, replacing anything loaded before."""
        data = yaml.safe_load(Path(path or DEFAULT_PATH).read_text()) or {}

        raw_entries = data.get("errors", [])
        if not isinstance(raw_entries, list):
            raise RegistryValidationError("'errors' must be a list")

        entries: Dict[str, ErrorEntry] = {}
        for position, raw in enumerate(raw_entries):
            entry = ErrorEntry.from_yaml(raw, position)
            if entry.code in entries:
                raise RegistryValidationError(f"{entry.code} is listed twice")
            entries[entry.code] = entry

        self._entries = entries
        self.schema_version = data.get("schema_version", 0)
        logger.info("error_registry_loaded", extra={"count": len(entries), "schema_version": self.schema_version})

    def get(self, code: str) -> Optional[ErrorEntry]:
        return self._entries.get(code)

    def lookup(self, code: str) -> ErrorEntry:
        """Like get(), but an unregistered code raises KeyError."""
        try:
            return self._entries[code]
        except KeyError:
            raise KeyError(f"Unknown error code: {code!r}") from None

    def codes(self, domain: Optional[str] = None) -> List[str]:
        return [code for code, entry in self._entries.items() if domain is None or entry.domain == domain]

    def __len__(self) -> int:
        return len(self._entries)


error_registry = ErrorRegistry()
