from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ItemResult:
    key: str
    success: bool
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key, "success": self.success}
        if self.error:
            payload["error"] = self.error
        payload.update(self.data)
        return payload


@dataclass
class OperationResult:
    """Aggregate outcome of a multi-item operation. ``success`` only when nothing failed."""

    results: list[ItemResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    def add(self, item: ItemResult) -> ItemResult:
        self.results.append(item)
        return item

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def errors(self) -> list[str]:
        return [f"{item.key}: {item.error}" for item in self.results if not item.success]

    @property
    def success(self) -> bool:
        return self.succeeded == self.attempted

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "succeeded": self.succeeded,
            "attempted": self.attempted,
            "message": f"{self.succeeded} of {self.attempted} succeeded",
            "errors": self.errors,
            "warnings": list(self.warnings),
            "results": [item.to_payload() for item in self.results],
        }
        payload.update(self.data)
        return payload
