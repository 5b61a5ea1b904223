"""
Sync Orchestrator — One mirroring run, from listing to changelog commit.

## Run sequence

1. List source and target images (a listing failure aborts the run).
2. Diff them into the sync plan and log the three sizes.
3. Arm the deadline governor on a fresh cancel token.
4. Start the result collector, then run the worker pool over the plan.
5. Wait until every task is terminal.
6. Close the collector intake.
7. Wait for the collector to finalize (and commit, if it has anything).
8. Release the deadline timer and return the report.

Tokens, intake and cancel token are created per run, so runs never share
mutable state.

## Usage

    orchestrator = SyncOrchestrator(
        source=GcrLister(...),
        target=DockerHubLister(...),
        transfer=DockerTransfer(...),
        committer=GitChangelogCommitter(...),
        settings=settings,
    )
    report = orchestrator.run()
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from ..config.settings import SyncSettings
from ..models.image import SyncReport
from ..observability.metrics import MetricsRegistry, metrics as default_metrics
from ..registry.base import ChangelogCommitter, ImageTransfer, RegistryLister
from .cancel import CancelToken, DeadlineGovernor
from .collector import ResultCollector
from .diff import diff_images
from .errors import CommitError, ListingError
from .pool import BoundedWorkerPool
from .tokens import AdmissionTokens

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Composes differ, pool, governor and collector into one run."""

    def __init__(
        self,
        source: RegistryLister,
        target: RegistryLister,
        transfer: ImageTransfer,
        committer: ChangelogCommitter,
        settings: SyncSettings,
        accept_late: bool = True,
        registry: Optional[MetricsRegistry] = None,
    ):
        self.source = source
        self.target = target
        self.transfer = transfer
        self.committer = committer
        self.settings = settings
        self.accept_late = accept_late
        self.metrics = registry or default_metrics

    def run(self) -> SyncReport:
        """
        Execute one sync run.

        Raises ListingError if either registry cannot be listed, and
        CommitError (with `.report` set) if the changelog commit fails.
        Per-image failures and deadline expiry are reported, not raised.
        """
        run_id = f"S-{uuid.uuid4().hex[:8]}"
        report = SyncReport(run_id=run_id)
        started = time.monotonic()
        log_extra = {"run_id": run_id}

        self.metrics.increment("sync_runs_total")
        logger.info(f"Sync run {run_id} starting", extra=log_extra)

        source_images = self._list(self.source)
        target_images = self._list(self.target)
        plan = diff_images(source_images, target_images)

        report.source_total = len(source_images)
        report.target_total = len(target_images)
        report.planned = len(plan)
        self.metrics.set_gauge("source_images", report.source_total)
        self.metrics.set_gauge("target_images", report.target_total)
        self.metrics.set_gauge("images_planned", report.planned)

        logger.info(f"{self.source.name} images total: {report.source_total}", extra=log_extra)
        logger.info(f"{self.target.name} images total: {report.target_total}", extra=log_extra)
        logger.info(f"Number of images waiting to be processed: {report.planned}", extra=log_extra)

        cancel = CancelToken()
        governor = DeadlineGovernor(self.settings.sync_timeout, cancel)
        collector = ResultCollector(
            committer=self.committer,
            cancel=cancel,
            capacity=self.settings.intake_capacity,
            accept_late=self.accept_late,
            registry=self.metrics,
        )
        pool = BoundedWorkerPool(
            tokens=AdmissionTokens(self.settings.process_limit),
            cancel=cancel,
            transfer=self.transfer,
            on_success=collector.submit,
            registry=self.metrics,
        )

        with governor:
            collector.start()
            try:
                receipts = pool.run(plan)
            finally:
                collector.close()
                collector.join()

        report.record(receipts)
        report.batch = collector.batch
        report.committed = collector.committed
        report.deadline_exceeded = governor.fired
        report.finish()

        elapsed = time.monotonic() - started
        self.metrics.timing("sync_duration_seconds", elapsed)
        if report.deadline_exceeded:
            self.metrics.increment("sync_deadline_exceeded_total")
            logger.warning(
                f"Sync run {run_id} hit its {self.settings.sync_timeout}s deadline; "
                f"{report.skipped} image(s) left for the next run",
                extra=log_extra,
            )

        try:
            collector.raise_for_commit()
        except CommitError as e:
            e.report = report
            raise

        logger.info(
            f"Sync run {run_id} finished in {elapsed:.1f}s: "
            f"{report.transferred} mirrored, {report.failed} failed, {report.skipped} skipped",
            extra=log_extra,
        )
        return report

    def _list(self, lister: RegistryLister):
        try:
            return lister.list_images()
        except ListingError:
            self.metrics.increment("listing_errors_total", labels={"registry": lister.name})
            raise
        except Exception as e:
            self.metrics.increment("listing_errors_total", labels={"registry": lister.name})
            raise ListingError(lister.name, str(e)) from e
