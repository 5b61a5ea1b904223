"""
Bounded Worker Pool — One transfer task per planned image, at most P at once.

Every task follows the same protocol:

1. Wait for an admission token, racing the run's CancelToken.
2. If the run was cancelled first, skip without transferring.
3. Otherwise transfer, then always give the token back, whether the
   transfer succeeded or raised.
4. On success, hand the identifier to the collector (completion record).

A failed transfer is logged and reported on its receipt; it never affects
sibling tasks. `run()` returns only once every task is terminal.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from ..models.image import TransferReceipt
from ..observability.metrics import MetricsRegistry, metrics as default_metrics
from ..registry.base import ImageTransfer
from .cancel import CancelToken
from .tokens import AdmissionTokens

logger = logging.getLogger(__name__)


class BoundedWorkerPool:
    """Runs transfers under a fixed number of admission tokens."""

    def __init__(
        self,
        tokens: AdmissionTokens,
        cancel: CancelToken,
        transfer: ImageTransfer,
        on_success: Callable[[str], None],
        max_workers: Optional[int] = None,
        registry: Optional[MetricsRegistry] = None,
    ):
        self.tokens = tokens
        self.cancel = cancel
        self.transfer = transfer
        self.on_success = on_success
        # Worker threads beyond the token count would only block on admission
        self.max_workers = max_workers or tokens.capacity
        self.metrics = registry or default_metrics

    def run(self, plan: Sequence[str]) -> List[TransferReceipt]:
        """Execute one task per entry and block until all are terminal."""
        if not plan:
            return []

        logger.info(
            f"Starting {len(plan)} transfer task(s) with {self.tokens.capacity} admission token(s)"
        )
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="transfer"
        ) as executor:
            futures = [executor.submit(self._run_task, image) for image in plan]
            # Leaving the block waits for every task
        receipts = [f.result() for f in futures]

        ok = sum(1 for r in receipts if r.status == "ok")
        failed = sum(1 for r in receipts if r.status == "failed")
        skipped = sum(1 for r in receipts if r.status == "skipped")
        logger.info(f"Transfers done: {ok} ok, {failed} failed, {skipped} skipped")
        return receipts

    def _run_task(self, image: str) -> TransferReceipt:
        if not self.tokens.acquire(self.cancel):
            logger.debug(f"Skipping {image}: run cancelled before admission")
            self.metrics.increment("transfers_total", labels={"status": "skipped"})
            return TransferReceipt.skipped(image)

        self.metrics.gauge("admission_tokens_in_use").inc()
        started = time.monotonic()
        try:
            receipt = self._transfer(image, started)
        finally:
            self.metrics.gauge("admission_tokens_in_use").dec()
            self.tokens.release()

        if receipt.succeeded:
            self.on_success(image)
        self.metrics.increment("transfers_total", labels={"status": receipt.status})
        return receipt

    def _transfer(self, image: str, started: float) -> TransferReceipt:
        try:
            self.transfer.transfer(image)
        except Exception as e:
            elapsed = time.monotonic() - started
            logger.error(f"Transfer of {image} failed: {e}", extra={"image": image})
            return TransferReceipt.failed(image, str(e), elapsed)

        elapsed = time.monotonic() - started
        self.metrics.timing("transfer_duration_seconds", elapsed)
        logger.info(f"Mirrored {image} in {elapsed:.1f}s", extra={"image": image})
        return TransferReceipt.ok(image, elapsed)
