from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from urs.shared.enums import RecordOutcomeKind


@dataclass(frozen=True)
class RecordOutcome:
    """Result of processing one source record (or one unit of work)."""

    kind: RecordOutcomeKind
    key: str
    detail: str | None = None

    @classmethod
    def success(cls, key: str, detail: str | None = None) -> "RecordOutcome":
        return cls(RecordOutcomeKind.SUCCESS, key, detail)

    @classmethod
    def missing_field(cls, key: str, detail: str) -> "RecordOutcome":
        return cls(RecordOutcomeKind.SKIPPED_MISSING_FIELD, key, detail)

    @classmethod
    def unresolved(cls, key: str, detail: str) -> "RecordOutcome":
        return cls(RecordOutcomeKind.SKIPPED_UNRESOLVED_LINK, key, detail)

    @classmethod
    def failed(cls, key: str, detail: str) -> "RecordOutcome":
        return cls(RecordOutcomeKind.FAILED, key, detail)

    @property
    def ok(self) -> bool:
        return self.kind is RecordOutcomeKind.SUCCESS


MAX_SAMPLES = 20


@dataclass
class StepSummary:
    step: str
    counts: Counter = field(default_factory=Counter)
    extra: dict[str, Any] = field(default_factory=dict)
    # First non-success outcomes, so an audit event names the keys that were skipped or failed.
    samples: list[RecordOutcome] = field(default_factory=list)

    def add(self, outcome: RecordOutcome) -> None:
        self.counts[outcome.kind] += 1
        if not outcome.ok and len(self.samples) < MAX_SAMPLES:
            self.samples.append(outcome)

    def extend(self, outcomes: Iterable[RecordOutcome]) -> None:
        for outcome in outcomes:
            self.add(outcome)

    def merge(self, other: "StepSummary") -> None:
        self.counts.update(other.counts)
        room = MAX_SAMPLES - len(self.samples)
        if room > 0:
            self.samples.extend(other.samples[:room])
        for key, value in other.extra.items():
            if isinstance(value, int) and isinstance(self.extra.get(key), int):
                self.extra[key] += value
            else:
                self.extra[key] = value

    def count(self, kind: RecordOutcomeKind) -> int:
        return self.counts.get(kind, 0)

    @property
    def succeeded(self) -> int:
        return self.count(RecordOutcomeKind.SUCCESS)

    @property
    def skipped(self) -> int:
        return self.count(RecordOutcomeKind.SKIPPED_MISSING_FIELD) + self.count(RecordOutcomeKind.SKIPPED_UNRESOLVED_LINK)

    @property
    def failed(self) -> int:
        return self.count(RecordOutcomeKind.FAILED)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {kind.value.lower(): self.count(kind) for kind in RecordOutcomeKind}
        out.update(self.extra)
        if self.samples:
            out["samples"] = [
                {"kind": o.kind.value, "key": o.key, "detail": o.detail} for o in self.samples
            ]
        return out
