# image_recognition/core/pipeline/gate.py
"""
Idempotency Gate

`should_process` is the pure timestamp rule: an asset is (re)processed only
when it has never been recognized or was modified after the last recognition.
Both timestamps must come from the DAM; clock skew is not compensated.

`IdempotencyGate` adds the retry policy for fully degraded cycles (every
provider failed). With `max_degraded_retries = N`, the first N consecutive
fully degraded cycles of an asset are deferred: nothing is written and the
stored timestamp is left alone, so the next trigger retries. The cycle after
that advances the timestamp anyway. N = 0 always advances.
"""

from __future__ import annotations

from datetime import datetime

from image_recognition.schemas.models import AssetRef, _as_utc


def should_process(asset: AssetRef, last_recognized: datetime | None) -> bool:
    if last_recognized is None:
        return True
    return asset.last_modified > _as_utc(last_recognized)


class IdempotencyGate:
    def __init__(self, *, max_degraded_retries: int = 0) -> None:
        if max_degraded_retries < 0:
            raise ValueError("max_degraded_retries must be >= 0")
        self.max_degraded_retries = max_degraded_retries
        # asset_id -> consecutive fully degraded cycles so far (process-local)
        self._degraded: dict[str, int] = {}

    def should_process(self, asset: AssetRef, last_recognized: datetime | None) -> bool:
        return should_process(asset, last_recognized)

    def should_defer(self, asset: AssetRef) -> bool:
        """
        Record a fully degraded cycle for `asset`. True means: do not write, let
        the next trigger retry. False means the retry budget is spent; the
        counter resets and the caller advances the timestamp.
        """
        count = self._degraded.get(asset.asset_id, 0)
        if count < self.max_degraded_retries:
            self._degraded[asset.asset_id] = count + 1
            return True
        self._degraded.pop(asset.asset_id, None)
        return False

    def record_success(self, asset: AssetRef) -> None:
        self._degraded.pop(asset.asset_id, None)

    def degraded_count(self, asset_id: str) -> int:
        return self._degraded.get(asset_id, 0)
