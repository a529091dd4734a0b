"""
Address parsing for geocoding / place-details results.

Providers return inconsistent granularity for Indian addresses, so the
locality is picked by a fixed precedence that favours the most specific
human-addressable unit:

    premise
    > street number + route
    > neighborhood
    > "Sector N, <sub-city>" built from sublocality components
    > sector alone
    > sub-city alone
    > route
    > raw sublocality > raw neighborhood > formatted address
"""

import re
from typing import Any, Dict, List, Optional

from app.models.location import NormalizedAddress, PlaceResult

SECTOR_PATTERN = re.compile(r"^Sector\s*\d+", re.IGNORECASE)

SUBLOCALITY_TYPES = [
    "sublocality",
    "sublocality_level_1",
    "sublocality_level_2",
    "sublocality_level_3",
    "sublocality_level_4",
]


def get_component(components: List[Dict[str, Any]], component_type: str) -> str:
    """First non-empty long_name carrying the given type, or ""."""
    for component in components:
        if component_type in (component.get("types") or []) and component.get("long_name"):
            return component["long_name"]
    return ""


def get_all_components(components: List[Dict[str, Any]], component_type: str) -> List[str]:
    return [
        c["long_name"]
        for c in components
        if component_type in (c.get("types") or []) and c.get("long_name")
    ]


def derive_locality(components: List[Dict[str, Any]], formatted_address: str = "") -> str:
    premises = get_all_components(components, "premise")
    premise = premises[0] if premises else ""
    street_number = get_component(components, "street_number")
    route = get_component(components, "route")
    neighborhood = get_component(components, "neighborhood")

    sublocalities: List[str] = []
    for component_type in SUBLOCALITY_TYPES:
        sublocalities.extend(get_all_components(components, component_type))
    sector = next((part for part in sublocalities if SECTOR_PATTERN.match(part)), "")
    sub_city = next((part for part in sublocalities if not SECTOR_PATTERN.match(part)), "")

    if premise:
        return premise
    if street_number and route:
        return f"{street_number} {route}"
    if neighborhood:
        return neighborhood
    if sector and sub_city:
        return f"{sector}, {sub_city}"
    if sector:
        return sector
    if sub_city:
        return sub_city
    if route:
        return route
    return get_component(components, "sublocality") or neighborhood or formatted_address or ""


def derive_city(components: List[Dict[str, Any]]) -> str:
    return (
        get_component(components, "locality")
        or get_component(components, "administrative_area_level_2")
        or get_component(components, "administrative_area_level_1")
    )


def parse_place(place: Optional[PlaceResult]) -> NormalizedAddress:
    """Derive the normalized address fields for a place or geocoding hit."""
    if place is None:
        return NormalizedAddress()

    components = place.address_components
    premises = get_all_components(components, "premise")
    return NormalizedAddress(
        locality=derive_locality(components, place.formatted_address),
        city=derive_city(components),
        state=get_component(components, "administrative_area_level_1"),
        pin_code=get_component(components, "postal_code"),
        premise=premises[0] if premises else "",
        route=get_component(components, "route"),
        neighborhood=get_component(components, "neighborhood"),
        sublocality=get_component(components, "sublocality") or get_component(components, "sublocality_level_1"),
        formatted_address=place.formatted_address,
    )
