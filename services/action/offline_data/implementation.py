"""Concrete offline data service implementation."""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from packages.stash_shared.clock import Clock, SystemClock, format_timestamp, parse_timestamp
from packages.stash_shared.errors import (
    AccessDenied,
    DecryptionFailure,
    IntegrityCheckFailure,
    RecordNotFound,
    RemoteFetchFailure,
    exception_to_error,
)
from packages.stash_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.adapters.flags import OFFLINE_STARTED_AT, FlagStore
from resources.adapters.notify import LoggingNotifier, Notifier
from resources.substrates.sqlite import USERS, Document, LocalStore
from services.action.offline_data.component import SERVICE_COMPONENT_ID
from services.action.offline_data.config import OfflineDataSettings
from services.action.offline_data.domain import (
    CachedUserRecord,
    ExportBundle,
    ExportInfo,
    OfflineMetrics,
    OfflineUpdate,
    RecordSection,
)
from services.action.offline_data.merge import MergePolicy, build_merge_policy
from services.action.offline_data.service import OfflineDataService
from services.action.offline_data.source import UserSource
from services.action.sync_queue import (
    OperationKind,
    OperationRequest,
    Priority,
    SyncQueueService,
)
from services.state.offline_security import ActivitySource, OfflineSecurityService

_LOGGER = get_logger(__name__)

SYNCED_EVENT = "offline_data_synced"
UPDATED_EVENT = "offline_data_updated"
EXPORTED_EVENT = "offline_data_exported"
CLEARED_EVENT = "offline_data_cleared"

_UNREADABLE = (DecryptionFailure, IntegrityCheckFailure)


class DefaultOfflineDataService(OfflineDataService):
    """Stateless facade over the local store, security layer and sync queue.

    ``user`` and ``profile`` are sealed with the security layer before they
    reach the store when ``encrypt_at_rest`` is set. Timestamps, version and
    field stamps stay in clear so freshness checks never need key material.
    """

    def __init__(
        self,
        *,
        settings: OfflineDataSettings,
        store: LocalStore,
        security: OfflineSecurityService,
        queue: SyncQueueService,
        source: UserSource,
        flags: FlagStore | None = None,
        notifier: Notifier | None = None,
        merge_policy: MergePolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._security = security
        self._queue = queue
        self._source = source
        self._flags = flags
        self._notifier = notifier or LoggingNotifier()
        self._merge = merge_policy or build_merge_policy(settings.merge_policy)
        self._clock = clock or SystemClock()

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    async def sync_user_data(self, *, user_id: str) -> CachedUserRecord:
        """Fetch remote data and replace the cached record in one write.

        Nothing is written when the fetch fails or returns no payload.
        """
        try:
            record = await self._sync(user_id)
        except Exception as exc:
            self._notifier.error(
                _failure_message("Offline synchronization of user data failed", exc)
            )
            raise
        self._notifier.success("User data synchronized for offline use")
        return record

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def get_offline_user_data(self, *, user_id: str) -> CachedUserRecord | None:
        """Return the decrypted cached record, or ``None`` when absent.

        Unreadable records raise ``DecryptionFailure`` or
        ``IntegrityCheckFailure`` and are left in place.
        """
        self._require_access()
        document = self._store.get(USERS.name, user_id)
        if document is None:
            return None
        return self._unseal(document)

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    def get_all_offline_users(self) -> list[CachedUserRecord]:
        """Return every readable cached record; unreadable ones are skipped."""
        self._require_access()
        records: list[CachedUserRecord] = []
        for document in self._store.get_all(USERS.name):
            try:
                records.append(self._unseal(document))
            except _UNREADABLE as exc:
                _log_unreadable(str(document.get("id")), exc)
        return records

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    async def update_profile_offline(self, *, patch: Mapping[str, Any]) -> OfflineUpdate:
        """Queue ``PUT <profile_endpoint>`` and merge ``patch`` into ``profile``."""
        return await self._update_offline(
            RecordSection.PROFILE, self._settings.profile_endpoint, patch
        )

    @public_api_instrumented(logger=_LOGGER, component_id=SERVICE_COMPONENT_ID)
    async def update_user_offline(self, *, patch: Mapping[str, Any]) -> OfflineUpdate:
        """Queue ``PUT <user_endpoint>`` and merge ``patch`` into ``user``."""
        return await self._update_offline(
            RecordSection.USER, self._settings.user_endpoint, patch
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def export_data(self, *, user_id: str) -> str:
        """Serialize the cached record and its audit trail as indented JSON."""
        try:
            self._require_access()
            document = self._store.get(USERS.name, user_id)
            if document is None:
                raise RecordNotFound(
                    message=f"no offline data cached for user {user_id!r}",
                    user_id=user_id,
                )
            record = self._unseal(document)
            referenced = set(record.security_logs)
            bundle = ExportBundle(
                user=record.user,
                profile=record.profile,
                security_logs=[
                    entry.model_dump(mode="json")
                    for entry in self._security.security_logs(user_id=user_id)
                    if entry.id in referenced
                ],
                export_info=ExportInfo(
                    exported_at=format_timestamp(self._clock.now()),
                    exported_by=user_id,
                    version=self._settings.export_version,
                ),
            )
        except Exception as exc:
            self._notifier.error(_failure_message("Offline data export failed", exc))
            raise

        self._security.log_activity(
            event_type=EXPORTED_EVENT,
            details={"user_id": user_id, "security_logs": len(bundle.security_logs)},
        )
        self._notifier.success("Offline data exported")
        return json.dumps(bundle.model_dump(mode="json"), indent=2)

    def export_filename(self, *, user_id: str) -> str:
        return f"user-data-{user_id}-offline-{self._clock.now().date().isoformat()}.json"

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def write_export(self, *, user_id: str, directory: Path) -> Path:
        """Write the export bundle into ``directory`` and return its path."""
        content = self.export_data(user_id=user_id)
        target_dir = Path(directory).expanduser()
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / self.export_filename(user_id=user_id)
        path.write_text(content, encoding="utf-8")
        return path

    def data_freshness_seconds(self, *, user_id: str) -> int:
        """Return whole seconds since the last sync, or ``-1`` with no record."""
        return _freshness(self._store.get(USERS.name, user_id), self._clock.now())

    def is_stale(self, *, user_id: str, max_age_seconds: int | None = None) -> bool:
        """Return whether the record is missing or older than ``max_age_seconds``."""
        max_age = (
            self._settings.default_max_age_seconds
            if max_age_seconds is None
            else max_age_seconds
        )
        freshness = self.data_freshness_seconds(user_id=user_id)
        return freshness < 0 or freshness > max_age

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    async def refresh_if_stale(
        self, *, user_id: str, max_age_seconds: int | None = None
    ) -> bool:
        """Resync when stale; a missing record counts as stale."""
        if not self.is_stale(user_id=user_id, max_age_seconds=max_age_seconds):
            return False
        await self.force_sync(user_id=user_id)
        return True

    async def force_sync(self, *, user_id: str) -> CachedUserRecord:
        with log_context({fields.USER_ID: user_id}):
            _LOGGER.info("Forcing offline data resync")
        return await self.sync_user_data(user_id=user_id)

    @public_api_instrumented(
        logger=_LOGGER, component_id=SERVICE_COMPONENT_ID, id_fields=("user_id",)
    )
    def clear_offline_data(self, *, user_id: str) -> bool:
        """Delete the cached record; the audit trail is kept."""
        removed = self._store.delete(USERS.name, user_id)
        if removed:
            self._security.log_activity(
                event_type=CLEARED_EVENT, details={"user_id": user_id}
            )
        return removed

    def metrics(self, *, user_id: str) -> OfflineMetrics:
        """Aggregate queue depth, replay success rate and freshness.

        ``offline_time_seconds`` comes from the advisory flag store and is
        ``0`` when no offline period is recorded.
        """
        now = self._clock.now()
        document = self._store.get(USERS.name, user_id)
        offline_since = (
            None if self._flags is None else parse_timestamp(self._flags.get(OFFLINE_STARTED_AT))
        )
        return OfflineMetrics(
            offline_time_seconds=(
                0 if offline_since is None else _whole_seconds(now - offline_since)
            ),
            operations_queued=len(self._queue.pending_operations()),
            sync_success_rate=self._queue.success_rate(),
            data_freshness_seconds=_freshness(document, now),
            last_sync_at=_document_time(document, "last_sync_at"),
            measured_at=now,
        )

    async def _sync(self, user_id: str) -> CachedUserRecord:
        snapshot = await self._source.fetch_user(user_id)
        if snapshot is None or not snapshot.data:
            raise RemoteFetchFailure(
                message=f"no user data received for {user_id!r}",
                retryable=False,
                user_id=user_id,
            )

        now = self._clock.now()
        document = self._store.get(USERS.name, user_id)
        previous = self._readable_for_resync(user_id, document)

        sections: dict[RecordSection, dict[str, Any]] = {}
        stamps: dict[RecordSection, dict[str, datetime]] = {}
        for section in RecordSection:
            sections[section], stamps[section] = self._merge.reconcile(
                local={} if previous is None else getattr(previous, section.value),
                stamps={} if previous is None else previous.field_stamps.get(section, {}),
                remote=snapshot.data,
                remote_updated_at=snapshot.updated_at,
            )

        created_at = _document_time(document, "created_at") or now
        previous_sync = _document_time(document, "last_sync_at")
        email = snapshot.data.get("email")
        record = CachedUserRecord(
            id=user_id,
            email=email if isinstance(email, str) else None,
            user=sections[RecordSection.USER],
            profile=sections[RecordSection.PROFILE],
            security_logs=tuple(
                entry.id
                for entry in self._security.security_logs(user_id=user_id)
                if entry.id is not None
            ),
            last_sync_at=now if previous_sync is None else max(previous_sync, now),
            created_at=created_at,
            updated_at=max(now, created_at),
            version=_document_version(document) + 1,
            field_stamps={section: value for section, value in stamps.items() if value},
            content_hash=self._content_hash(
                sections[RecordSection.USER], sections[RecordSection.PROFILE]
            ),
        )
        self._store.put(USERS.name, self._seal(record))
        self._security.log_activity(
            event_type=SYNCED_EVENT,
            details={"user_id": user_id, "version": record.version},
            source=ActivitySource.ONLINE,
        )
        return record

    async def _update_offline(
        self, section: RecordSection, endpoint: str, patch: Mapping[str, Any]
    ) -> OfflineUpdate:
        try:
            self._require_access()
            user_id = self._security.current_user_id()
            if not user_id:
                raise AccessDenied(message="session credential does not identify a user")
            changes = dict(patch)
            operation = await self._queue.enqueue(
                request=OperationRequest(
                    kind=OperationKind.UPDATE,
                    endpoint=endpoint,
                    payload=changes,
                    priority=Priority.NORMAL,
                )
            )
        except Exception as exc:
            self._notifier.error(
                _failure_message(f"Offline {section.value} update failed", exc)
            )
            raise

        try:
            record = self._merge_local(user_id, section, changes)
        except Exception as exc:  # noqa: BLE001
            _log_merge_failure(user_id, operation.id, exc)
            record = None
        self._security.log_activity(
            event_type=UPDATED_EVENT,
            details={
                "section": section.value,
                "operation_id": operation.id,
                "fields": sorted(changes),
            },
        )
        self._notifier.success(f"{section.value.capitalize()} saved offline")
        return OfflineUpdate(operation=operation, record=record)

    def _merge_local(
        self, user_id: str, section: RecordSection, changes: dict[str, Any]
    ) -> CachedUserRecord | None:
        """Apply one queued patch to the cached copy, if a readable one exists."""
        document = self._store.get(USERS.name, user_id)
        if document is None:
            return None
        try:
            record = self._unseal(document)
        except _UNREADABLE as exc:
            _log_unreadable(user_id, exc)
            return None

        now = self._clock.now()
        merged, section_stamps = self._merge.apply_patch(
            current=getattr(record, section.value),
            stamps=record.field_stamps.get(section, {}),
            patch=changes,
            at=now,
        )
        user = merged if section is RecordSection.USER else record.user
        profile = merged if section is RecordSection.PROFILE else record.profile
        email = user.get("email")
        updated = record.model_copy(
            update={
                section.value: merged,
                "email": email if isinstance(email, str) else record.email,
                "field_stamps": {**record.field_stamps, section: section_stamps},
                "updated_at": max(now, record.created_at),
                "version": record.version + 1,
                "content_hash": self._content_hash(user, profile),
            }
        )
        self._store.put(USERS.name, self._seal(updated))
        return updated

    def _readable_for_resync(
        self, user_id: str, document: Document | None
    ) -> CachedUserRecord | None:
        """Return the previous record, or ``None`` so remote data replaces it."""
        if document is None:
            return None
        try:
            return self._unseal(document)
        except _UNREADABLE as exc:
            _log_unreadable(user_id, exc)
            return None

    def _seal(self, record: CachedUserRecord) -> dict[str, Any]:
        document = record.model_dump(mode="json")
        for name in ("last_sync_at", "created_at", "updated_at"):
            document[name] = format_timestamp(getattr(record, name))
        document["sealed"] = self._settings.encrypt_at_rest
        if self._settings.encrypt_at_rest:
            document["user"] = self._security.encrypt(payload=record.user)
            document["profile"] = self._security.encrypt(payload=record.profile)
        return document

    def _unseal(self, document: Document) -> CachedUserRecord:
        blob = dict(document)
        if blob.get("sealed"):
            blob["user"] = self._security.decrypt(ciphertext=blob.get("user"))
            blob["profile"] = self._security.decrypt(ciphertext=blob.get("profile"))

        user_id = blob.get("id")
        if not self._security.verify_integrity(blob=blob):
            raise IntegrityCheckFailure(
                message=f"cached record for user {user_id!r} is malformed"
            )
        try:
            return CachedUserRecord.model_validate(blob)
        except ValidationError as exc:
            raise IntegrityCheckFailure(
                message=f"cached record for user {user_id!r} is malformed: {exc.error_count()} errors"
            ) from exc

    def _content_hash(self, user: Mapping[str, Any], profile: Mapping[str, Any]) -> str:
        return self._security.hash(data={"user": user, "profile": profile})

    def _require_access(self) -> None:
        if self._settings.require_offline_access:
            self._security.require_offline_access()


def _failure_message(summary: str, exc: Exception) -> str:
    detail = exception_to_error(exc)
    if detail.retryable:
        return f"{summary} ({detail.code}); try again once the connection is restored"
    return f"{summary} ({detail.code})"


def _log_unreadable(user_id: str, exc: Exception) -> None:
    with log_context(
        {
            fields.USER_ID: user_id,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        _LOGGER.warning("Cached user record is unreadable")


def _log_merge_failure(user_id: str, operation_id: str, exc: Exception) -> None:
    with log_context(
        {
            fields.USER_ID: user_id,
            fields.OPERATION_ID: operation_id,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        _LOGGER.warning("Queued update was not applied to the cached record")


def _document_time(document: Document | None, name: str) -> datetime | None:
    return None if document is None else parse_timestamp(document.get(name))


def _document_version(document: Document | None) -> int:
    version = None if document is None else document.get("version")
    return version if isinstance(version, int) and version > 0 else 0


def _freshness(document: Document | None, now: datetime) -> int:
    last_sync = _document_time(document, "last_sync_at")
    if last_sync is None:
        return -1
    return _whole_seconds(now - last_sync)


def _whole_seconds(delta: timedelta) -> int:
    return max(0, int(delta.total_seconds()))
