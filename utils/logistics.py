"""
Location and weight helpers shared by pricing, assignment and insights.

The pincode table and the interstate distance matrix are coarse proxies; they are
not a routing engine.
"""

import re
from datetime import datetime, timedelta

__all__ = [
    "PINCODE_DIRECTORY",
    "CITY_STATES",
    "calculate_distance",
    "calculate_location_distance",
    "get_zone_type",
    "get_delivery_area",
    "get_state_from_pincode",
    "lookup_state",
    "calculate_volumetric_weight",
    "get_chargeable_weight",
    "add_business_days",
    "is_business_day",
    "is_valid_pincode",
]

VOLUMETRIC_DIVISOR = 5000

PINCODE_DIRECTORY: dict[str, dict[str, str]] = {
    "110001": {"city": "New Delhi", "state": "Delhi", "zone": "metro"},
    "110002": {"city": "New Delhi", "state": "Delhi", "zone": "metro"},
    "110003": {"city": "New Delhi", "state": "Delhi", "zone": "metro"},
    "400001": {"city": "Mumbai", "state": "Maharashtra", "zone": "metro"},
    "400002": {"city": "Mumbai", "state": "Maharashtra", "zone": "metro"},
    "400003": {"city": "Mumbai", "state": "Maharashtra", "zone": "metro"},
    "560001": {"city": "Bangalore", "state": "Karnataka", "zone": "metro"},
    "560002": {"city": "Bangalore", "state": "Karnataka", "zone": "metro"},
    "560003": {"city": "Bangalore", "state": "Karnataka", "zone": "metro"},
    "600001": {"city": "Chennai", "state": "Tamil Nadu", "zone": "metro"},
    "600002": {"city": "Chennai", "state": "Tamil Nadu", "zone": "metro"},
    "600003": {"city": "Chennai", "state": "Tamil Nadu", "zone": "metro"},
    "700001": {"city": "Kolkata", "state": "West Bengal", "zone": "metro"},
    "700002": {"city": "Kolkata", "state": "West Bengal", "zone": "metro"},
    "700003": {"city": "Kolkata", "state": "West Bengal", "zone": "metro"},
    "500001": {"city": "Hyderabad", "state": "Telangana", "zone": "metro"},
    "500002": {"city": "Hyderabad", "state": "Telangana", "zone": "metro"},
    "500003": {"city": "Hyderabad", "state": "Telangana", "zone": "metro"},
    "380001": {"city": "Ahmedabad", "state": "Gujarat", "zone": "tier1"},
    "380002": {"city": "Ahmedabad", "state": "Gujarat", "zone": "tier1"},
    "411001": {"city": "Pune", "state": "Maharashtra", "zone": "tier1"},
    "411014": {"city": "Pune", "state": "Maharashtra", "zone": "tier1"},
    "395001": {"city": "Surat", "state": "Gujarat", "zone": "tier2"},
    "395006": {"city": "Surat", "state": "Gujarat", "zone": "tier2"},
    "302001": {"city": "Jaipur", "state": "Rajasthan", "zone": "tier2"},
    "302002": {"city": "Jaipur", "state": "Rajasthan", "zone": "tier2"},
}

# Lower-cased city name -> state
CITY_STATES: dict[str, str] = {
    "delhi": "Delhi",
    "new delhi": "Delhi",
    "mumbai": "Maharashtra",
    "pune": "Maharashtra",
    "nashik": "Maharashtra",
    "bangalore": "Karnataka",
    "bengaluru": "Karnataka",
    "mysore": "Karnataka",
    "chennai": "Tamil Nadu",
    "coimbatore": "Tamil Nadu",
    "kolkata": "West Bengal",
    "hyderabad": "Telangana",
    "ahmedabad": "Gujarat",
    "surat": "Gujarat",
    "vadodara": "Gujarat",
    "jaipur": "Rajasthan",
    "jodhpur": "Rajasthan",
}

INTERSTATE_DISTANCES_KM: dict[frozenset[str], int] = {
    frozenset({"Delhi", "Maharashtra"}): 1400,
    frozenset({"Delhi", "Karnataka"}): 2100,
    frozenset({"Delhi", "Tamil Nadu"}): 2200,
    frozenset({"Delhi", "West Bengal"}): 1500,
    frozenset({"Delhi", "Gujarat"}): 950,
    frozenset({"Maharashtra", "Karnataka"}): 850,
    frozenset({"Maharashtra", "Tamil Nadu"}): 1100,
    frozenset({"Maharashtra", "Gujarat"}): 550,
    frozenset({"Karnataka", "Tamil Nadu"}): 350,
    frozenset({"Gujarat", "Rajasthan"}): 650,
}

LOCAL_DISTANCE_KM = 15
INTRASTATE_DISTANCE_KM = 200
DEFAULT_INTERSTATE_KM = 800
UNKNOWN_PINCODE_KM = 500

_ZONE_PREFIXES = {
    "metro": ("110", "400", "560", "600", "700", "500"),
    "tier1": ("380", "411", "462", "452", "641"),
    "tier2": ("395", "302", "226", "321", "143"),
}

_STATES_BY_FIRST_DIGIT = {
    "1": "Delhi",
    "2": "Haryana",
    "3": "Rajasthan",
    "4": "Maharashtra",
    "5": "Telangana",
    "6": "Tamil Nadu",
    "7": "West Bengal",
    "8": "Bihar",
}

_PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")


def is_valid_pincode(pincode: str | None) -> bool:
    """Six digits, not starting with zero."""
    return bool(pincode) and bool(_PINCODE_RE.match(pincode))


def get_state_from_pincode(pincode: str | None) -> str:
    """Best-effort state for a pincode; known pincodes win over the first-digit table."""
    if not pincode:
        return "Unknown"
    known = PINCODE_DIRECTORY.get(pincode)
    if known:
        return known["state"]
    return _STATES_BY_FIRST_DIGIT.get(pincode[0], "Unknown")


def lookup_state(city: str | None, pincode: str | None = None) -> str | None:
    """Resolve a state from a city name, then a pincode. None when neither helps."""
    if city:
        state = CITY_STATES.get(city.strip().lower())
        if state:
            return state
    if pincode:
        state = get_state_from_pincode(pincode)
        if state != "Unknown":
            return state
    return None


def _interstate_distance(state_a: str, state_b: str) -> int:
    return INTERSTATE_DISTANCES_KM.get(frozenset({state_a, state_b}), DEFAULT_INTERSTATE_KM)


def calculate_distance(from_pincode: str, to_pincode: str) -> dict[str, int | str]:
    """Coarse distance between two pincodes: {"distance": km, "type": local|intrastate|interstate}."""
    origin = PINCODE_DIRECTORY.get(from_pincode)
    destination = PINCODE_DIRECTORY.get(to_pincode)
    if not origin or not destination:
        return {"distance": UNKNOWN_PINCODE_KM, "type": "interstate"}
    if origin["city"] == destination["city"]:
        return {"distance": LOCAL_DISTANCE_KM, "type": "local"}
    if origin["state"] == destination["state"]:
        return {"distance": INTRASTATE_DISTANCE_KM, "type": "intrastate"}
    return {
        "distance": _interstate_distance(origin["state"], destination["state"]),
        "type": "interstate",
    }


def calculate_location_distance(
    from_city: str, from_state: str, to_city: str, to_state: str
) -> dict[str, int | str]:
    """Same as calculate_distance but keyed on city/state names."""
    if from_city.strip().lower() == to_city.strip().lower() and from_state == to_state:
        return {"distance": LOCAL_DISTANCE_KM, "type": "local"}
    if from_state == to_state:
        return {"distance": INTRASTATE_DISTANCE_KM, "type": "intrastate"}
    return {"distance": _interstate_distance(from_state, to_state), "type": "interstate"}


def get_zone_type(pincode: str) -> str:
    """metro / tier1 / tier2 / remote"""
    known = PINCODE_DIRECTORY.get(pincode)
    if known:
        return known["zone"]
    prefix = pincode[:3]
    for zone, prefixes in _ZONE_PREFIXES.items():
        if prefix in prefixes:
            return zone
    return "remote"


def get_delivery_area(pincode: str | None) -> str:
    """Quadrant derived from the last digit of the pincode."""
    if not pincode or not pincode[-1].isdigit():
        return "NORTH"
    last_digit = int(pincode[-1])
    if last_digit <= 2:
        return "NORTH"
    if last_digit <= 4:
        return "SOUTH"
    if last_digit <= 6:
        return "EAST"
    return "WEST"


def calculate_volumetric_weight(length: float, width: float, height: float) -> float:
    """Standard courier formula: L x W x H (cm) / 5000."""
    return (length * width * height) / VOLUMETRIC_DIVISOR


def get_chargeable_weight(dead_weight: float, volumetric_weight: float | None) -> float:
    return max(dead_weight, volumetric_weight or 0.0)


def is_business_day(day: datetime) -> bool:
    return day.weekday() < 5


def add_business_days(start: datetime, days: int) -> datetime:
    """Move forward `days` working days, skipping Saturdays and Sundays."""
    result = start
    added = 0
    while added < days:
        result = result + timedelta(days=1)
        if is_business_day(result):
            added += 1
    return result
