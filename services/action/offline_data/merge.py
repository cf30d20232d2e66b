"""Merge policies combining local offline edits with remote data.

Every policy applies local patches the same way: a shallow field overwrite
that stamps each touched field with the edit time. Policies differ only in
how a resync reconciles those stamped local fields with the fresh remote
payload.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from services.action.offline_data.config import MergePolicyName

FieldStamps = dict[str, datetime]


class MergePolicy(Protocol):
    """Pluggable strategy for local patches and resync reconciliation."""

    name: MergePolicyName

    def apply_patch(
        self,
        *,
        current: Mapping[str, Any],
        stamps: Mapping[str, datetime],
        patch: Mapping[str, Any],
        at: datetime,
    ) -> tuple[dict[str, Any], FieldStamps]:
        """Merge one local patch and return the new section and stamps."""

    def reconcile(
        self,
        *,
        local: Mapping[str, Any],
        stamps: Mapping[str, datetime],
        remote: Mapping[str, Any],
        remote_updated_at: datetime | None,
    ) -> tuple[dict[str, Any], FieldStamps]:
        """Combine a cached section with its freshly fetched remote version."""


def _apply_patch(
    current: Mapping[str, Any],
    stamps: Mapping[str, datetime],
    patch: Mapping[str, Any],
    at: datetime,
) -> tuple[dict[str, Any], FieldStamps]:
    merged = {**current, **patch}
    merged_stamps = dict(stamps)
    for field in patch:
        merged_stamps[field] = at
    return merged, merged_stamps


class ShallowMergePolicy:
    """Object-spread semantics: local edits overwrite, resync replaces all."""

    name = MergePolicyName.SHALLOW

    def apply_patch(
        self,
        *,
        current: Mapping[str, Any],
        stamps: Mapping[str, datetime],
        patch: Mapping[str, Any],
        at: datetime,
    ) -> tuple[dict[str, Any], FieldStamps]:
        return _apply_patch(current, stamps, patch, at)

    def reconcile(
        self,
        *,
        local: Mapping[str, Any],
        stamps: Mapping[str, datetime],
        remote: Mapping[str, Any],
        remote_updated_at: datetime | None,
    ) -> tuple[dict[str, Any], FieldStamps]:
        return dict(remote), {}


class LastWriteWinsPolicy:
    """Field-level last-write-wins using local edit stamps.

    On resync a locally edited field survives only when its stamp is strictly
    newer than the remote payload's ``updated_at``. A remote payload without
    ``updated_at`` is treated as newest.
    """

    name = MergePolicyName.LAST_WRITE_WINS

    def apply_patch(
        self,
        *,
        current: Mapping[str, Any],
        stamps: Mapping[str, datetime],
        patch: Mapping[str, Any],
        at: datetime,
    ) -> tuple[dict[str, Any], FieldStamps]:
        return _apply_patch(current, stamps, patch, at)

    def reconcile(
        self,
        *,
        local: Mapping[str, Any],
        stamps: Mapping[str, datetime],
        remote: Mapping[str, Any],
        remote_updated_at: datetime | None,
    ) -> tuple[dict[str, Any], FieldStamps]:
        merged = dict(remote)
        kept: FieldStamps = {}
        if remote_updated_at is None:
            return merged, kept
        for field, stamp in stamps.items():
            if field in local and stamp > remote_updated_at:
                merged[field] = local[field]
                kept[field] = stamp
        return merged, kept


def build_merge_policy(name: MergePolicyName) -> MergePolicy:
    """Return the policy registered under ``name``."""
    if name is MergePolicyName.SHALLOW:
        return ShallowMergePolicy()
    return LastWriteWinsPolicy()
