"""
Organization settings provider.

Settings are plain key -> text rows in organization_settings. The trip engine
reads them through the typed helpers below; missing keys fall back to the
caller's default.
"""
from __future__ import annotations

import logging
from typing import Any

from ..extensions import db
from ..models import OrganizationSetting
from ..validation import ValidationError

logger = logging.getLogger(__name__)


# Keys consumed by the trip engine
REQUIRE_VEHICLE_AND_DRIVER = "trip.require_vehicle_and_driver"
PREVENT_DUPLICATE_BILL_OF_LADING = "trip.prevent_duplicate_bill_of_lading"
BOL_DUPLICATE_CHECK_START_DAY = "trip.bol_duplicate_check_start_day"
REPORT_CALCULATION_DATE_FLAG = "report.calculation_date_flag"

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off"}


def get_org_setting(org_id: int, key: str, default: Any = None) -> str | Any:
    row = db.session.query(OrganizationSetting).filter_by(org_id=org_id, key=key).first()
    if row is None or row.value is None:
        return default
    return row.value


def get_org_setting_bool(org_id: int, key: str, default: bool = False) -> bool:
    raw = get_org_setting(org_id, key)
    if raw is None:
        return default
    s = str(raw).strip().lower()
    if s in TRUE_VALUES:
        return True
    if s in FALSE_VALUES:
        return False
    logger.warning("Setting %s for org %s is not a boolean (%r); using default", key, org_id, raw)
    return default


def upsert_org_setting(org_id: int, key: str, value: str | None, user_id: int | None = None) -> dict:
    key = (key or "").strip()
    if not key:
        raise ValidationError("key is required")
    if value is not None and not isinstance(value, str):
        value = str(value).lower() if isinstance(value, bool) else str(value)

    row = db.session.query(OrganizationSetting).filter_by(org_id=org_id, key=key).first()
    if row:
        row.value = value
        row.updated_by_user_id = user_id
    else:
        row = OrganizationSetting(org_id=org_id, key=key, value=value, updated_by_user_id=user_id)
        db.session.add(row)
    db.session.commit()
    return row.to_dict()
