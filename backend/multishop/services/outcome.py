# Overview: Per-side-effect results aggregated for callers of multi-step workflows.

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StepResult:
    """Result of one secondary effect (a notification write, a compensation, a cache write)."""
    step: str
    ok: bool
    error: str | None = None
    detail: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "ok": self.ok,
            "error": self.error,
            "detail": dict(self.detail),
        }


@dataclass
class PartialOutcome:
    """
    Ordered list of step results.

    Workflows return this instead of hiding failed side effects; the
    caller decides whether a failure matters.
    """
    steps: list[StepResult] = field(default_factory=list)

    def record_success(self, step: str, **detail) -> StepResult:
        result = StepResult(step=step, ok=True, detail=detail)
        self.steps.append(result)
        return result

    def record_failure(self, step: str, error, **detail) -> StepResult:
        result = StepResult(step=step, ok=False, error=str(error), detail=detail)
        self.steps.append(result)
        return result

    def extend(self, other: "PartialOutcome | None") -> None:
        if other is not None:
            self.steps.extend(other.steps)

    @property
    def ok(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failures(self) -> list[StepResult]:
        return [step for step in self.steps if not step.ok]

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "steps": [step.to_dict() for step in self.steps],
        }
