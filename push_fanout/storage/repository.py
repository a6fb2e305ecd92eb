from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from push_fanout.models.notification import BroadcastReport, DeviceToken
from push_fanout.models.tables import AppUpdateLog, BroadcastLog, NotificationToken
from push_fanout.notifications.errors import StoreUnavailableError
from push_fanout.utils.time import as_utc, to_naive_utc

logger = logging.getLogger(__name__)


def _short(token: str) -> str:
    return f"{token[:10]}..." if len(token) > 10 else token


class _SessionRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _fail(self, operation: str, exc: SQLAlchemyError) -> StoreUnavailableError:
        self.db.rollback()
        logger.error("Store operation failed", extra={"operation": operation, "error": str(exc)})
        return StoreUnavailableError(f"{operation} failed: {exc.__class__.__name__}")


class TokenRepository(_SessionRepository):
    """Persisted set of device tokens.

    ``token`` carries a unique index, so ``list_all`` normally returns each
    value once. Callers that send must still dedupe; deletes remove every row
    matching a value and are safe to repeat.
    """

    def list_all(self) -> list[DeviceToken]:
        try:
            rows = self.db.execute(select(NotificationToken)).scalars().all()
        except SQLAlchemyError as exc:
            raise self._fail("list_all", exc) from exc
        return [
            DeviceToken(value=row.token, registered_at=as_utc(row.registered_at), platform=row.platform)
            for row in rows
            if row.token
        ]

    def count(self) -> int:
        try:
            return int(self.db.execute(select(func.count()).select_from(NotificationToken)).scalar_one())
        except SQLAlchemyError as exc:
            raise self._fail("count", exc) from exc

    def register(self, value: str, registered_at: datetime, platform: str = "web") -> DeviceToken:
        clean = value.strip()
        if not clean:
            raise ValueError("Device token must not be empty")
        stamp = to_naive_utc(registered_at)
        try:
            try:
                row = self._upsert(clean, platform, stamp)
            except IntegrityError:
                # Another writer inserted the same value after our lookup.
                self.db.rollback()
                row = self._upsert(clean, platform, stamp)
        except SQLAlchemyError as exc:
            raise self._fail("register", exc) from exc
        return DeviceToken(value=clean, registered_at=as_utc(row.registered_at), platform=row.platform)

    def _find(self, value: str) -> NotificationToken | None:
        return self.db.execute(select(NotificationToken).where(NotificationToken.token == value)).scalars().first()

    def _upsert(self, value: str, platform: str, stamp: datetime) -> NotificationToken:
        row = self._find(value)
        if row is None:
            row = NotificationToken(token=value, platform=platform, registered_at=stamp)
            self.db.add(row)
        else:
            row.platform = platform
            row.registered_at = stamp
        self.db.commit()
        return row

    def delete_by_value(self, value: str) -> int:
        try:
            result = self.db.execute(delete(NotificationToken).where(NotificationToken.token == value))
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete_by_value", exc) from exc
        deleted = int(result.rowcount or 0)
        if deleted:
            logger.info("Deleted device token", extra={"token": _short(value), "rows": deleted})
        return deleted

    def delete_older_than(self, cutoff: datetime) -> int:
        try:
            result = self.db.execute(
                delete(NotificationToken).where(NotificationToken.registered_at < to_naive_utc(cutoff))
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete_older_than", exc) from exc
        return int(result.rowcount or 0)


class BroadcastLogRepository(_SessionRepository):
    def append(self, report: BroadcastReport) -> None:
        try:
            self.db.add(
                BroadcastLog(
                    kind=report.kind,
                    success_count=report.success_count,
                    failure_count=report.failure_count,
                    total_attempted=report.total_attempted,
                    pruned_count=report.pruned_count,
                    timestamp=to_naive_utc(report.timestamp),
                )
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("broadcast_log.append", exc) from exc

    def totals_since(self, since: datetime) -> tuple[int, int]:
        try:
            sent, failed = self.db.execute(
                select(
                    func.coalesce(func.sum(BroadcastLog.success_count), 0),
                    func.coalesce(func.sum(BroadcastLog.failure_count), 0),
                ).where(BroadcastLog.timestamp > to_naive_utc(since))
            ).one()
        except SQLAlchemyError as exc:
            raise self._fail("broadcast_log.totals_since", exc) from exc
        return int(sent), int(failed)


class AppUpdateLogRepository(_SessionRepository):
    def append(
        self,
        *,
        app_id: str,
        app_name: str | None,
        version: str,
        sent_count: int,
        failure_count: int,
        timestamp: datetime,
    ) -> AppUpdateLog:
        row = AppUpdateLog(
            app_id=app_id,
            app_name=app_name,
            type="UPDATE",
            version=version,
            sent_count=sent_count,
            failure_count=failure_count,
            timestamp=to_naive_utc(timestamp),
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("app_update_log.append", exc) from exc
        return row

    def list_for_app(self, app_id: str) -> list[AppUpdateLog]:
        try:
            return list(
                self.db.execute(
                    select(AppUpdateLog).where(AppUpdateLog.app_id == app_id).order_by(AppUpdateLog.timestamp.asc())
                ).scalars().all()
            )
        except SQLAlchemyError as exc:
            raise self._fail("app_update_log.list_for_app", exc) from exc
