"""
Inventory Differ — Images present in the source but not in the target.
"""

from __future__ import annotations

from typing import Iterable, List


def diff_images(source: Iterable[str], target: Iterable[str]) -> List[str]:
    """
    Compute the sync plan: every identifier in `source` absent from `target`.

    Both inputs are treated as sets, so duplicates collapse. The result keeps
    the first-seen order of `source`; callers must not rely on it.
    """
    present = set(target)
    plan: List[str] = []
    seen = set()
    for image in source:
        if image in present or image in seen:
            continue
        seen.add(image)
        plan.append(image)
    return plan
