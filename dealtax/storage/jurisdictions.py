"""Jurisdiction resolver: postal code to jurisdiction, rate set and rules."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from dealtax.engine.errors import InputValidationError, JurisdictionNotFoundError
from dealtax.engine.rules import JurisdictionRules, select_effective_rules
from dealtax.engine.types import Jurisdiction, TaxRateSet
from dealtax.utils.cache import TTLCache

logger = logging.getLogger(__name__)

POSTAL_CODE_RE = re.compile(r"^(\d{5})(?:-\d{4})?$")


def normalize_postal_code(postal_code: str) -> str:
    """Five-digit ZIP; a ZIP+4 suffix is dropped."""
    match = POSTAL_CODE_RE.match(postal_code.strip()) if isinstance(postal_code, str) else None
    if not match:
        raise InputValidationError(f"Invalid postal code: {postal_code!r}", "postal_code")
    return match.group(1)


class JurisdictionSource(Protocol):
    """Where jurisdictions and their published rule versions come from."""

    async def find_jurisdiction(self, postal_code: str) -> Jurisdiction | None: ...

    async def list_rule_versions(self, jurisdiction: Jurisdiction) -> list[JurisdictionRules]: ...


@dataclass(frozen=True)
class ResolvedJurisdiction:
    jurisdiction: Jurisdiction
    rules: JurisdictionRules

    @property
    def rate_set(self) -> TaxRateSet:
        return self.rules.rate_set


class JurisdictionResolver:
    """Read-through lookup. The rules version is chosen per call, never cached."""

    def __init__(self, source: JurisdictionSource, cache: TTLCache | None = None):
        self.source = source
        self.cache = cache

    async def _load(self, postal_code: str) -> tuple[Jurisdiction, tuple[JurisdictionRules, ...]]:
        jurisdiction = await self.source.find_jurisdiction(postal_code)
        if jurisdiction is None:
            raise JurisdictionNotFoundError(postal_code)
        versions = await self.source.list_rule_versions(jurisdiction)
        logger.debug("Loaded %d rule versions for %s", len(versions), postal_code)
        return jurisdiction, tuple(versions)

    async def lookup(self, postal_code: str) -> tuple[Jurisdiction, tuple[JurisdictionRules, ...]]:
        code = normalize_postal_code(postal_code)
        if self.cache is None:
            return await self._load(code)
        return await self.cache.aget_or_compute(f"jurisdiction:{code}", lambda: self._load(code))

    async def resolve(self, postal_code: str, as_of: datetime) -> ResolvedJurisdiction:
        jurisdiction, versions = await self.lookup(postal_code)
        rules = select_effective_rules(versions, as_of)
        return ResolvedJurisdiction(jurisdiction=jurisdiction, rules=rules)
