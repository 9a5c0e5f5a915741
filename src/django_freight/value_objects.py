"""Value objects returned by the rate resolver and batch operations."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class ResolvedRate:
    """Immutable result of rate resolution.

    Contains the effective rate (after any discount) and metadata about how it
    was determined.
    """

    rate_per_unit: Decimal
    rate_basis: str
    source: str  # 'contract' | 'customer' | 'base'
    source_id: UUID
    list_rate: Decimal
    discount_percentage: Decimal
    as_of: date

    def explain(self) -> str:
        """Human-readable explanation of why this rate was selected."""
        source_desc = {
            "contract": "active rate contract",
            "customer": "customer negotiated rate",
            "base": "article base rate",
        }
        desc = source_desc.get(self.source, self.source)
        basis = "per unit of weight" if self.rate_basis == "per_weight" else "per unit"
        text = f"{self.rate_per_unit} {basis} ({desc}, as of {self.as_of.isoformat()}"
        if self.discount_percentage:
            text += f", {self.discount_percentage}% off {self.list_rate}"
        return text + ")"


@dataclass(frozen=True)
class ItemResult:
    """Outcome of one line within a manifest bulk operation."""

    line_id: UUID
    tracking_number: str
    outcome: str  # ItemOutcome value
    status: str
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.outcome == "succeeded"

    @property
    def skipped(self) -> bool:
        return self.outcome == "skipped"


@dataclass(frozen=True)
class ManifestResult:
    """Per-line outcome list of a dispatch or completion run."""

    manifest: object
    items: tuple[ItemResult, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> list[ItemResult]:
        return [item for item in self.items if item.succeeded]

    @property
    def failed(self) -> list[ItemResult]:
        return [item for item in self.items if item.outcome == "failed"]

    @property
    def is_complete(self) -> bool:
        return not self.failed

    @property
    def skipped(self) -> list[ItemResult]:
        return [item for item in self.items if item.skipped]

    def summary(self) -> str:
        return (
            f"{len(self.succeeded)} of {len(self.items)} lines processed, "
            f"{len(self.failed)} failed, {len(self.skipped)} skipped"
        )
