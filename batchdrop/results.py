"""Append-only recorder of per-recipient outcomes."""

from __future__ import annotations

from typing import Iterable, Sequence

from .errors import EngineFault
from .models import Outcome, Recipient, TransferResult


class ResultAggregator:
    """
    Records TransferResults in the order they are produced.

    Counts are maintained incrementally; ``recount()`` re-derives them from
    the recorded list and always agrees with the running counters.
    """

    def __init__(self):
        self._results: list[TransferResult] = []
        self._success = 0
        self._failure = 0
        self._frozen = False

    def record(self, result: TransferResult) -> None:
        if self._frozen:
            raise EngineFault("Cannot record results after the session finished")
        self._results.append(result)
        if result.outcome is Outcome.SUCCESS:
            self._success += 1
        else:
            self._failure += 1

    def extend(self, results: Iterable[TransferResult]) -> None:
        for result in results:
            self.record(result)

    def fail_remaining(self, recipients: Sequence[Recipient], message: str) -> int:
        """
        Record a Failure for every recipient past the recorded prefix.

        Returns the number of failures recorded.
        """
        remaining = recipients[len(self._results):]
        for recipient in remaining:
            self.record(TransferResult.failure(recipient, message))
        return len(remaining)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def success_count(self) -> int:
        return self._success

    @property
    def failure_count(self) -> int:
        return self._failure

    @property
    def results(self) -> tuple[TransferResult, ...]:
        return tuple(self._results)

    def failures(self) -> list[TransferResult]:
        return [r for r in self._results if r.outcome is Outcome.FAILURE]

    def references(self) -> list[str]:
        """Distinct successful transaction references, in first-seen order."""
        seen: dict[str, None] = {}
        for r in self._results:
            if r.outcome is Outcome.SUCCESS and r.reference:
                seen.setdefault(r.reference, None)
        return list(seen)

    def recount(self) -> tuple[int, int]:
        success = sum(1 for r in self._results if r.outcome is Outcome.SUCCESS)
        return success, len(self._results) - success

    def __len__(self) -> int:
        return len(self._results)
