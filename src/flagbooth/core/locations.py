from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import parse_qs, urlencode, urlparse

from flagbooth.core.models import Location


def _loc(slug: str, name: str, country: str, flag: str, tier: int, tagline: str) -> Location:
    return Location(slug=slug, name=name, country=country, flag=flag, tier=tier, tagline=tagline)


_ALL = [
    _loc("jackson-street-bridge", "Jackson Street Bridge", "Spain", "\U0001F1EA\U0001F1F8", 1,
         "Where the skyline meets the world"),
    _loc("ponce-city-market", "Ponce City Market", "Morocco", "\U0001F1F2\U0001F1E6", 1,
         "Market vibes, global flavor"),
    _loc("krog-street-market", "Krog Street Market", "South Africa", "\U0001F1FF\U0001F1E6", 1,
         "Culture on every corner"),
    _loc("pittsburgh-yards", "Pittsburgh Yards", "Cabo Verde", "\U0001F1E8\U0001F1FB", 1,
         "Building tomorrow today"),
    _loc("piedmont-park", "Piedmont Park", "Saudi Arabia", "\U0001F1F8\U0001F1E6", 1,
         "Atlanta's green heart"),
    _loc("buckhead-village", "Buckhead Village", "Haiti", "\U0001F1ED\U0001F1F9", 1,
         "Luxury meets legacy"),
    _loc("west-end", "West End", "Uzbekistan", "\U0001F1FA\U0001F1FF", 1,
         "The heartbeat of the Westside"),
    _loc("little-five-points", "Little Five Points", "Rotating", "\U0001F30D", 2,
         "Atlanta's creative soul"),
    _loc("east-atlanta-village", "East Atlanta Village", "Rotating", "\U0001F30D", 2,
         "Village vibes, world stage"),
    _loc("sweet-auburn", "Sweet Auburn", "Heritage", "\U0001F3DB️", 2,
         "Where history walks"),
    _loc("auc-clark-atlanta", "AUC / Clark Atlanta", "Heritage", "\U0001F3DB️", 2,
         "Legacy of excellence"),
    _loc("castleberry-hill", "Castleberry Hill", "TBD", "\U0001F3A8", 2,
         "Art district energy"),
    _loc("centennial-olympic-park", "Centennial Olympic Park", "Fan Festival", "⚽", 3,
         "The world plays here"),
    _loc("pemberton-place", "Pemberton Place", "Fan Festival", "⚽", 3,
         "Where Atlanta welcomes the world"),
    _loc("hartsfield-jackson-airport", "Hartsfield-Jackson Airport", "Arrivals", "✈️", 3,
         "Welcome to Atlanta"),
    _loc("oca-mural-network", "OCA Mural Network", "Bonus", "⭐", 3,
         "Art without walls"),
]

LOCATIONS: Dict[str, Location] = {loc.slug: loc for loc in _ALL}

TOTAL_LOCATIONS = len(LOCATIONS)

GROUP_STAGE = "group_stage"


def get_location(slug: Optional[str]) -> Optional[Location]:
    """Location for a slug, or None if the slug is unknown."""
    if not slug:
        return None
    return LOCATIONS.get(slug)


def require_location(slug: str) -> Location:
    loc = get_location(slug)
    if loc is None:
        raise ValueError(f"Unknown location '{slug}'.")
    return loc


def _find_override(slug: str, overrides: Iterable[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    for o in overrides or ():
        if o.get("location_id") == slug:
            return o
    return None


def effective_location(slug: Optional[str], overrides: Iterable[Mapping[str, Any]] = ()) -> Optional[Location]:
    """
    The location as visitors should see it in the current phase.

    Knockout phases ship overrides ({location_id, country, flag, tagline}); a matching
    override replaces those fields (empty values keep the base text) and marks the
    location as a knockout location.
    """
    base = get_location(slug)
    if base is None:
        return None
    o = _find_override(base.slug, overrides)
    if o is None:
        return base
    return replace(
        base,
        country=o.get("country") or base.country,
        flag=o.get("flag") or base.flag,
        tagline=o.get("tagline") or base.tagline,
        knockout=True,
    )


def is_knockout_location(slug: str, overrides: Iterable[Mapping[str, Any]] = ()) -> bool:
    return get_location(slug) is not None and _find_override(slug, overrides) is not None


def checkin_url(public_url: str, slug: str) -> str:
    """URL encoded in a location's QR code."""
    return f"{public_url.rstrip('/')}/?{urlencode({'loc': slug})}"


def location_from_url(url: str) -> Optional[str]:
    """The `loc` query parameter of a scanned URL, if any."""
    values = parse_qs(urlparse(url).query).get("loc")
    return values[0] if values else None
