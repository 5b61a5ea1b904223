"""
Image Models — Transfer receipts and sync run reports.

Every transfer task produces a receipt, whether it mirrored the image,
failed, or was skipped because the run was cancelled before admission.
A SyncReport summarizes one orchestrator run.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TransferReceipt(BaseModel):
    """Result of one transfer task."""

    image: str
    status: Literal["ok", "failed", "skipped"]
    error: Optional[str] = None
    duration_seconds: float = 0.0
    ts_iso: str = Field(default_factory=_now_iso)

    @classmethod
    def ok(cls, image: str, duration_seconds: float = 0.0) -> "TransferReceipt":
        return cls(image=image, status="ok", duration_seconds=duration_seconds)

    @classmethod
    def failed(
        cls, image: str, error: str, duration_seconds: float = 0.0
    ) -> "TransferReceipt":
        return cls(
            image=image,
            status="failed",
            error=error,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def skipped(cls, image: str) -> "TransferReceipt":
        """Task was never admitted because the run was cancelled."""
        return cls(image=image, status="skipped")

    @property
    def succeeded(self) -> bool:
        return self.status == "ok"


class SyncReport(BaseModel):
    """Summary of one sync run."""

    run_id: str
    source_total: int = 0
    target_total: int = 0
    planned: int = 0
    transferred: int = 0
    failed: int = 0
    skipped: int = 0
    batch: List[str] = Field(default_factory=list)
    committed: bool = False
    deadline_exceeded: bool = False
    started_at_iso: str = Field(default_factory=_now_iso)
    finished_at_iso: Optional[str] = None

    def record(self, receipts: List[TransferReceipt]) -> None:
        """Fold task receipts into the counters."""
        for receipt in receipts:
            if receipt.status == "ok":
                self.transferred += 1
            elif receipt.status == "failed":
                self.failed += 1
            else:
                self.skipped += 1

    def finish(self) -> None:
        self.finished_at_iso = _now_iso()
