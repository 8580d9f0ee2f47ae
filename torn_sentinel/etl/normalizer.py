"""Turn raw Torn and YATA payloads into normalized snapshots and stock lists."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Sequence

from ..config.constants import HOME_LOCATION, REGIONS
from .models import Listing, Snapshot, StockItem, TravelStatus

logger = logging.getLogger(__name__)

_TRAVELING_TO = re.compile(r"to (.+?)(?: from .+)?$")
_ABROAD_IN = re.compile(r"^in\s+", re.IGNORECASE)

_REGION_LOOKUP: dict[str, str] = {}
for _key, (_code, _name) in REGIONS.items():
    _REGION_LOOKUP[_key] = _name
    _REGION_LOOKUP[_code] = _name
    _REGION_LOOKUP[_name.lower()] = _name
_REGION_LOOKUP[HOME_LOCATION.lower()] = HOME_LOCATION


def normalize_region(value: str | None) -> str:
    """Map a region key, YATA code or display name onto its display name."""

    if not value:
        return HOME_LOCATION
    cleaned = value.strip()
    return _REGION_LOOKUP.get(cleaned.lower(), cleaned)


def _coerce_int(value: object | None) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = re.sub(r"[^0-9-]", "", value)
        if digits:
            try:
                return int(digits)
            except ValueError:
                return 0
    return 0


def _coerce_float(value: object | None) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return 0.0
    return 0.0


def _bar(payload: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    bar = payload.get(name)
    if isinstance(bar, Mapping):
        return bar
    bars = payload.get("bars")
    if isinstance(bars, Mapping) and isinstance(bars.get(name), Mapping):
        return bars[name]
    return {}


def _inventory_counts(payload: Mapping[str, Any]) -> dict[str, int]:
    counts: dict[str, int] = {}
    inventory = payload.get("inventory")
    if not isinstance(inventory, Sequence) or isinstance(inventory, str):
        return counts
    for item in inventory:
        if not isinstance(item, Mapping):
            continue
        item_id = item.get("ID") or item.get("id")
        if not item_id:
            continue
        key = str(item_id)
        counts[key] = counts.get(key, 0) + (_coerce_int(item.get("quantity")) or 1)
    return counts


def parse_location(payload: Mapping[str, Any]) -> tuple[str, int]:
    """Resolve (location, travel_time_left) from the travel and status selections."""

    travel = payload.get("travel") if isinstance(payload.get("travel"), Mapping) else {}
    status = payload.get("status") if isinstance(payload.get("status"), Mapping) else {}
    time_left = max(0, _coerce_int(travel.get("time_left")))
    destination = travel.get("destination")
    if destination:
        return normalize_region(str(destination)), time_left
    state = str(status.get("state") or "")
    description = str(status.get("description") or "")
    if state == "Traveling":
        match = _TRAVELING_TO.search(description)
        return normalize_region(match.group(1) if match else "Abroad"), time_left
    if state == "Abroad":
        return normalize_region(_ABROAD_IN.sub("", description) or "Abroad"), time_left
    return HOME_LOCATION, time_left


def parse_travel_status(payload: Mapping[str, Any]) -> TravelStatus:
    location, time_left = parse_location(payload)
    return TravelStatus(destination=location, time_left=time_left)


def _listing_from_market(entry: Mapping[str, Any]) -> Listing | None:
    item = entry.get("item") if isinstance(entry.get("item"), Mapping) else {}
    item_id = _coerce_int(item.get("id") or entry.get("item_id") or entry.get("ID"))
    listing_id = entry.get("id") or entry.get("uid") or entry.get("UID")
    if not item_id:
        return None
    return Listing(
        source="market",
        listing_id=f"market:{listing_id if listing_id else item_id}",
        item_id=item_id,
        unit_price=_coerce_float(entry.get("price")),
        quantity=_coerce_int(entry.get("amount") or entry.get("quantity")),
        item_name=str(item.get("name") or entry.get("name") or ""),
    )


def _listing_from_bazaar(entry: Mapping[str, Any]) -> Listing | None:
    item_id = _coerce_int(entry.get("ID") or entry.get("item_id") or entry.get("id"))
    if not item_id:
        return None
    listing_id = entry.get("UID") or entry.get("uid") or item_id
    return Listing(
        source="bazaar",
        listing_id=f"bazaar:{listing_id}",
        item_id=item_id,
        unit_price=_coerce_float(entry.get("price")),
        quantity=_coerce_int(entry.get("quantity") or entry.get("amount")),
        item_name=str(entry.get("name") or ""),
    )


def parse_listings(payload: Mapping[str, Any]) -> tuple[Listing, ...]:
    listings: list[Listing] = []
    for source, builder in (
        ("itemmarket", _listing_from_market),
        ("bazaar", _listing_from_bazaar),
    ):
        entries = payload.get(source)
        if isinstance(entries, Mapping):
            entries = list(entries.values())
        if not isinstance(entries, Sequence) or isinstance(entries, str):
            continue
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            listing = builder(entry)
            if listing is not None and listing.quantity > 0:
                listings.append(listing)
    return tuple(listings)


def build_snapshot(
    account_id: str,
    payload: Mapping[str, Any],
    taken_at: float,
) -> Snapshot:
    """Build a snapshot from the merged v1 user selections and v2 listing payload."""

    location, time_left = parse_location(payload)
    energy = _bar(payload, "energy")
    nerve = _bar(payload, "nerve")
    job = payload.get("job") if isinstance(payload.get("job"), Mapping) else {}
    stats = (
        payload.get("personalstats")
        if isinstance(payload.get("personalstats"), Mapping)
        else {}
    )
    return Snapshot(
        account_id=account_id,
        taken_at=taken_at,
        cash=_coerce_float(payload.get("money_onhand")),
        location=location,
        travel_time_left=time_left,
        inventory=_inventory_counts(payload),
        listings=parse_listings(payload),
        energy=_coerce_int(energy.get("current")),
        energy_max=_coerce_int(energy.get("maximum")) or 100,
        nerve=_coerce_int(nerve.get("current")),
        nerve_max=_coerce_int(nerve.get("maximum")),
        job_points=_coerce_int(job.get("jobpoints")),
        job_position=str(job.get("position") or ""),
        criminal_offenses=_coerce_int(stats.get("criminaloffenses")),
    )


def parse_foreign_stock(payload: Mapping[str, Any] | None) -> dict[str, list[StockItem]]:
    """Normalize the YATA travel export into region name -> stock list."""

    result: dict[str, list[StockItem]] = {}
    if not payload:
        return result
    stocks = payload.get("stocks")
    if not isinstance(stocks, Mapping):
        logger.warning("foreign stock payload missing 'stocks' mapping")
        return result
    for code, country in stocks.items():
        if not isinstance(country, Mapping):
            continue
        items: list[StockItem] = []
        for raw in country.get("stocks") or ():
            if not isinstance(raw, Mapping):
                continue
            items.append(
                StockItem(
                    item_id=_coerce_int(raw.get("id")),
                    name=str(raw.get("name") or ""),
                    unit_price=_coerce_float(raw.get("cost")),
                    quantity=_coerce_int(raw.get("quantity")),
                )
            )
        result[normalize_region(str(code))] = items
    return result


def stock_for_region(
    stock_by_region: Mapping[str, Sequence[StockItem]] | None,
    region: str,
) -> Sequence[StockItem] | None:
    """Look up a region's stock list by any of its names; None when unavailable."""

    if not stock_by_region:
        return None
    wanted = normalize_region(region)
    for name, items in stock_by_region.items():
        if normalize_region(name) == wanted:
            return items
    return None
