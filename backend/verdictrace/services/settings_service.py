"""
Scan Settings Service

Reads and writes the mutable scan thresholds in the settings table.
A scan reads them once at start into an immutable ScanConfig.
"""
import logging
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import SettingsValidationError
from ..models.db_models import SettingDB
from ..models.signals import ScanConfig


logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD_KEY = "confidence_threshold"
CLUSTER_MIN_DOCS_KEY = "cluster_min_docs"

DEFAULTS = {
    CONFIDENCE_THRESHOLD_KEY: 0.70,
    CLUSTER_MIN_DOCS_KEY: 5,
}


class SettingsService:
    """Threshold settings backed by SettingDB."""

    def __init__(self, db: Session):
        self.db = db

    def _read(self, key: str) -> Optional[str]:
        row = self.db.query(SettingDB).filter(SettingDB.key == key).first()
        return row.value if row else None

    def get_scan_config(self, **overrides) -> ScanConfig:
        """
        Current thresholds as a ScanConfig.

        Missing or unparseable values fall back to the defaults.
        Keyword overrides (window_days, bucket_interval, ...) are applied last.
        """
        threshold = DEFAULTS[CONFIDENCE_THRESHOLD_KEY]
        min_docs = DEFAULTS[CLUSTER_MIN_DOCS_KEY]
        try:
            raw = self._read(CONFIDENCE_THRESHOLD_KEY)
            if raw is not None:
                threshold = float(raw)
            raw = self._read(CLUSTER_MIN_DOCS_KEY)
            if raw is not None:
                min_docs = int(raw)
        except (SQLAlchemyError, ValueError) as e:
            logger.warning(f"Could not read scan settings, using defaults: {e}")
            threshold = DEFAULTS[CONFIDENCE_THRESHOLD_KEY]
            min_docs = DEFAULTS[CLUSTER_MIN_DOCS_KEY]

        values = {"confidence_threshold": threshold, "cluster_min_docs": min_docs}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ScanConfig(**values)

    def update(
        self,
        confidence_threshold: Optional[float] = None,
        cluster_min_docs: Optional[int] = None,
    ) -> Dict[str, float]:
        """
        Validate and store new thresholds.

        Raises:
            SettingsValidationError: value out of range
        """
        updates = {}
        if confidence_threshold is not None:
            if not 0.0 <= confidence_threshold <= 1.0:
                raise SettingsValidationError("confidence_threshold must be between 0 and 1")
            updates[CONFIDENCE_THRESHOLD_KEY] = str(confidence_threshold)
        if cluster_min_docs is not None:
            if cluster_min_docs < 1:
                raise SettingsValidationError("cluster_min_docs must be at least 1")
            updates[CLUSTER_MIN_DOCS_KEY] = str(cluster_min_docs)

        for key, value in updates.items():
            row = self.db.query(SettingDB).filter(SettingDB.key == key).first()
            if row:
                row.value = value
            else:
                self.db.add(SettingDB(key=key, value=value))
        self.db.commit()

        config = self.get_scan_config()
        return {
            CONFIDENCE_THRESHOLD_KEY: config.confidence_threshold,
            CLUSTER_MIN_DOCS_KEY: config.cluster_min_docs,
        }
