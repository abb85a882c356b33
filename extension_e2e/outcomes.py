"""Check outcomes, the aggregate run result, and the exit status mapping."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any

from extension_e2e.log import HarnessLog


EXIT_OK = 0
EXIT_CHECK_FAILURES = 2
EXIT_HARNESS_ERROR = 3


@dataclass(frozen=True)
class CheckOutcome:
    name: str
    ok: bool
    payload: Any = None
    error: str | None = None
    skip_reason: str | None = None

    @property
    def is_failure(self) -> bool:
        return not self.ok and not self.skip_reason

    @property
    def status(self) -> str:
        if self.skip_reason:
            return "SKIP"
        return "PASS" if self.ok else "FAIL"

    def as_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class RunResult:
    outcomes: tuple[CheckOutcome, ...] = ()
    harness_error: str | None = None
    failures: tuple[CheckOutcome, ...] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "failures", tuple(o for o in self.outcomes if o.is_failure))

    @property
    def exit_status(self) -> int:
        if self.harness_error is not None:
            return EXIT_HARNESS_ERROR
        if self.failures:
            return EXIT_CHECK_FAILURES
        return EXIT_OK


def report(result: RunResult, log: HarnessLog) -> int:
    """Print the per-check table and a greppable verdict line; return the exit status."""
    print("\n" + "=" * 60)
    print("E2E SUMMARY")
    print("=" * 60)
    for outcome in result.outcomes:
        suffix = f" ({outcome.skip_reason})" if outcome.skip_reason else ""
        print(f"{outcome.status:4s}  {outcome.name}{suffix}")
    print("=" * 60)

    if result.harness_error is not None:
        log.log(f"E2E HARNESS ERROR: {result.harness_error}", "error")
    elif result.failures:
        failed = json.dumps([o.as_dict() for o in result.failures], default=repr)
        log.log(f"E2E FAILURES: {failed}", "error")
    else:
        log.log("E2E SUCCESS - all checks passed (or skipped when impossible)", "success")
    return result.exit_status
