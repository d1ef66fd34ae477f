# adlaunch/services/calculator.py
"""
Budget and targeting calculator.

Pure functions, no I/O: identical inputs always produce identical budgets
and targeting, which is what makes re-running a step safe.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Union

import pycountry

from adlaunch.core.exceptions import NoValidLocations, UnrecognizedLocation, ValidationError
from adlaunch.schemas.campaign import Location

log = logging.getLogger("adlaunch.calculator")

SECONDS_PER_DAY = 24 * 60 * 60
MINOR_UNITS_PER_UNIT = 100          # cents
MICROS_PER_UNIT = 1_000_000         # Google Ads micros
MIN_BILLABLE_MICROS = 10_000

# Shortcuts the frontend is known to send
COUNTRY_ALIASES: Dict[str, str] = {
    "USA": "US",
    "U.S.A.": "US",
    "U.S.": "US",
    "AMERICA": "US",
    "UK": "GB",
    "U.K.": "GB",
    "ENGLAND": "GB",
    "GREAT BRITAIN": "GB",
    "UAE": "AE",
}


# ────────────────────────────────────────────
# Budget
# ────────────────────────────────────────────

@dataclass(frozen=True)
class BudgetPlan:
    total_budget: float
    platform_count: int
    per_platform_budget: float
    duration_days: int
    daily_budget: int  # whole currency units

    @property
    def daily_budget_minor(self) -> int:
        return self.daily_budget * MINOR_UNITS_PER_UNIT

    @property
    def daily_budget_micros(self) -> int:
        return round_up_micros(self.daily_budget * MICROS_PER_UNIT)


def round_up_micros(amount_micros: float, unit: int = MIN_BILLABLE_MICROS) -> int:
    """Round a micros amount up to the smallest billable unit"""
    raw = math.floor(amount_micros or 0)
    if raw <= 0:
        return unit
    return max(math.ceil(raw / unit) * unit, unit)


def _as_datetime(value: Union[str, date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}") from e


def campaign_duration_days(start: Union[str, date, datetime], end: Union[str, date, datetime]) -> int:
    start_dt, end_dt = _as_datetime(start), _as_datetime(end)
    if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
        start_dt, end_dt = start_dt.replace(tzinfo=None), end_dt.replace(tzinfo=None)
    days = math.ceil((end_dt - start_dt).total_seconds() / SECONDS_PER_DAY)
    if days <= 0:
        raise ValidationError("End date must be after start date")
    return days


def compute_budget(
    total_budget: float,
    platforms: Iterable[str],
    start: Union[str, date, datetime],
    end: Union[str, date, datetime],
) -> BudgetPlan:
    """
    Split the campaign budget equally across its platforms and spread each
    share over the campaign duration, with at least one currency unit per day.
    """
    if total_budget is None or total_budget < 0:
        raise ValidationError(f"Invalid total budget: {total_budget!r}")

    platform_count = len({str(p).upper() for p in platforms})
    if platform_count == 0:
        raise ValidationError("Campaign targets no platforms")

    per_platform_budget = total_budget / platform_count
    duration_days = campaign_duration_days(start, end)
    daily_budget = max(1, math.floor(per_platform_budget / duration_days))

    return BudgetPlan(
        total_budget=total_budget,
        platform_count=platform_count,
        per_platform_budget=per_platform_budget,
        duration_days=duration_days,
        daily_budget=daily_budget,
    )


# ────────────────────────────────────────────
# Countries
# ────────────────────────────────────────────

def normalize_country(value: Optional[str]) -> str:
    """
    Normalize a country input to its ISO 3166 alpha-2 code.

    Order: alias table, ISO alpha-2/alpha-3 code, English name.
    """
    if value is None or not str(value).strip():
        raise UnrecognizedLocation(value or "")

    key = str(value).strip().upper()
    if key in COUNTRY_ALIASES:
        return COUNTRY_ALIASES[key]

    country = None
    if len(key) == 2:
        country = pycountry.countries.get(alpha_2=key)
    elif len(key) == 3:
        country = pycountry.countries.get(alpha_3=key)
    if country is not None:
        return country.alpha_2

    try:
        return pycountry.countries.lookup(key).alpha_2
    except LookupError:
        log.debug(f"Could not normalize country: {value}")
        raise UnrecognizedLocation(str(value))


def iso_country_code(value: Optional[str]) -> Optional[str]:
    """Strict ISO-2/ISO-3 code to alpha-2; None for names or unknown codes"""
    key = str(value or "").strip().upper()
    if len(key) == 2:
        country = pycountry.countries.get(alpha_2=key)
    elif len(key) == 3:
        country = pycountry.countries.get(alpha_3=key)
    else:
        return None
    return country.alpha_2 if country else None


def country_name(alpha_2: str) -> str:
    country = pycountry.countries.get(alpha_2=alpha_2)
    return country.name if country else alpha_2


# ────────────────────────────────────────────
# Targeting
# ────────────────────────────────────────────

@dataclass(frozen=True)
class TargetingSpec:
    countries: List[str]
    rejected: List[str] = field(default_factory=list)

    def as_meta_targeting(self) -> Dict:
        return {"geo_locations": {"countries": list(self.countries)}}


def build_targeting(locations: Iterable[Location]) -> TargetingSpec:
    """
    Resolve campaign locations to a country-level targeting spec.

    Unrecognized entries are dropped (and reported); an empty result is an
    error, never an implicit worldwide audience.
    """
    countries: List[str] = []
    rejected: List[str] = []
    for loc in locations:
        try:
            code = normalize_country(loc.country)
        except UnrecognizedLocation as e:
            log.warning(f"⚠️ Dropping location: {e.message}")
            rejected.append(loc.country)
            continue
        if code not in countries:
            countries.append(code)

    if not countries:
        raise NoValidLocations(
            "Targeting validation failed: no valid country codes could be resolved",
            {"rejected": rejected},
        )
    return TargetingSpec(countries=countries, rejected=rejected)


def group_locations_by_country(locations: Iterable[Location]) -> Dict[str, List[str]]:
    """
    Group location names (state, city) under their ISO alpha-2 country.

    Only ISO-2/ISO-3 country codes are accepted; anything else is skipped with
    a warning. A country without state/city maps to an empty list, meaning the
    whole country.
    """
    grouped: Dict[str, List[str]] = {}
    for loc in locations:
        raw = str(loc.country or "").strip()
        if not raw:
            continue
        code = iso_country_code(raw)
        if code is None:
            log.warning(f"⚠️ Skipping location, country is not a known ISO-2/ISO-3 code: {raw}")
            continue

        names = grouped.setdefault(code, [])
        for value in (loc.state, loc.city):
            if value and str(value) not in names:
                names.append(str(value))

    if not grouped:
        raise NoValidLocations("No valid geo targeting locations found (expecting ISO-2 or ISO-3 country codes)")
    return grouped
