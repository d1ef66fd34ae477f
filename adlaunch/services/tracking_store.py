# adlaunch/services/tracking_store.py
"""
Tracking record persistence.

Every mutation goes through ``apply()`` with a ``RecordPatch`` so that a
step's progress is written atomically and, when a version is supplied,
only if nobody else has written the record in between.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel as PydanticModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from adlaunch.core.exceptions import ConcurrentModification, RecordNotFound
from adlaunch.db.session import SessionLocal, get_db_session
from adlaunch.models.tracking import CampaignTrackingRecord
from adlaunch.schemas.tracking import TrackingRecord

log = logging.getLogger("adlaunch.tracking_store")

LIST_FIELDS = ("targeting_units", "creatives", "ads", "geo_targets", "keyword_batches")

# Unversioned writes (failure recording) re-read and retry this often on a lost race
UNVERSIONED_WRITE_ATTEMPTS = 3


def _to_json(item: Any) -> Dict[str, Any]:
    if isinstance(item, PydanticModel):
        return item.model_dump(mode="json")
    return dict(item)


@dataclass
class ItemUpdate:
    """Merge ``changes`` into the list item whose ``key`` field equals ``value``"""
    key: str
    value: Any
    changes: Dict[str, Any]


@dataclass
class RecordPatch:
    set: Dict[str, Any] = field(default_factory=dict)
    push: Dict[str, List[Any]] = field(default_factory=dict)
    update_items: Dict[str, List[ItemUpdate]] = field(default_factory=dict)

    def apply_to(self, row: CampaignTrackingRecord):
        for name, value in self.set.items():
            if name in LIST_FIELDS and value is not None:
                value = [_to_json(v) for v in value]
            setattr(row, name, value)

        for name, items in self.push.items():
            current = list(getattr(row, name) or [])
            current.extend(_to_json(i) for i in items)
            # Reassign a new list so the JSON column is flagged dirty
            setattr(row, name, current)

        for name, updates in self.update_items.items():
            current = [dict(i) for i in (getattr(row, name) or [])]
            for update in updates:
                for item in current:
                    if item.get(update.key) == update.value:
                        item.update(update.changes)
            setattr(row, name, current)


class TrackingRecordStore:
    """Document-style access to campaign tracking records"""

    def __init__(self, session_factory: Callable[[], Session] = None):
        self.session_factory = session_factory or SessionLocal

    @staticmethod
    def _query(db: Session, campaign_id: str, platform: str):
        return db.query(CampaignTrackingRecord).filter(
            CampaignTrackingRecord.campaign_id == campaign_id,
            CampaignTrackingRecord.platform == platform,
        )

    def find(self, campaign_id: str, platform: str) -> Optional[TrackingRecord]:
        with get_db_session(self.session_factory) as db:
            row = self._query(db, campaign_id, platform).first()
            return TrackingRecord.model_validate(row) if row else None

    def get(self, campaign_id: str, platform: str) -> TrackingRecord:
        record = self.find(campaign_id, platform)
        if record is None:
            raise RecordNotFound(
                f"No tracking record for campaign {campaign_id} on {platform}",
                {"campaignId": campaign_id, "platform": platform},
            )
        return record

    def insert(self, fields: Dict[str, Any]) -> TrackingRecord:
        """
        Create the record. When another invocation created it first, the
        existing record is returned instead.
        """
        try:
            with get_db_session(self.session_factory) as db:
                row = CampaignTrackingRecord(**fields)
                db.add(row)
                db.flush()
                record = TrackingRecord.model_validate(row)
            log.info(f"✅ Tracking record created: {fields['campaign_id']}/{fields['platform']}")
            return record
        except IntegrityError:
            log.info(f"Tracking record {fields['campaign_id']}/{fields['platform']} already exists, reusing it")
            return self.get(fields["campaign_id"], fields["platform"])

    def apply(
        self,
        campaign_id: str,
        platform: str,
        patch: RecordPatch,
        expected_version: Optional[int] = None,
    ) -> TrackingRecord:
        """
        Atomically apply ``patch``.

        With ``expected_version`` the write only succeeds against that exact
        version; without it, a lost race is retried against a fresh read.
        """
        attempts = 1 if expected_version is not None else UNVERSIONED_WRITE_ATTEMPTS
        for attempt in range(1, attempts + 1):
            try:
                return self._apply_once(campaign_id, platform, patch, expected_version)
            except StaleDataError:
                if attempt == attempts:
                    raise ConcurrentModification(
                        f"Tracking record {campaign_id}/{platform} was modified concurrently",
                        {"campaignId": campaign_id, "platform": platform},
                    )
                log.debug(f"Lost write race on {campaign_id}/{platform}, retrying (attempt {attempt})")

    def _apply_once(self, campaign_id, platform, patch, expected_version) -> TrackingRecord:
        with get_db_session(self.session_factory) as db:
            row = self._query(db, campaign_id, platform).first()
            if row is None:
                raise RecordNotFound(f"No tracking record for campaign {campaign_id} on {platform}")
            if expected_version is not None and row.version != expected_version:
                raise ConcurrentModification(
                    f"Tracking record {campaign_id}/{platform} is at version {row.version}, expected {expected_version}",
                    {"campaignId": campaign_id, "platform": platform, "version": row.version},
                )
            patch.apply_to(row)
            db.flush()
            return TrackingRecord.model_validate(row)
