from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RuleResult:
    """
    Outcome of one frame-asset check.
    """
    rule_id: str
    passed: bool
    message: str
    metrics: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationReport:
    """
    All check results for one frame asset.
    """
    passed: bool
    results: list[RuleResult]

    def failed(self) -> list[RuleResult]:
        return [r for r in self.results if not r.passed]
