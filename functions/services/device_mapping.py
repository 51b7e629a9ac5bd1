"""Device, room and assembly lookup tables shared by the extraction and
estimation engines."""

import re
from typing import Dict, List, Tuple

from models.blueprint import DeviceType, RoomType


# Fallback assembly for unmapped device types and missing catalog codes
DEFAULT_ASSEMBLY_CODE = "MISC-STD"
SERVICE_PANEL_ASSEMBLY_CODE = "SVC-PNL"

DEVICE_TO_ASSEMBLY: Dict[DeviceType, str] = {
    DeviceType.RECEPTACLE: "REC-STD",
    DeviceType.GFCI_RECEPTACLE: "REC-GFCI",
    DeviceType.WEATHER_RESISTANT_RECEPTACLE: "REC-WR",
    DeviceType.FLOOR_RECEPTACLE: "REC-FLR",

    DeviceType.SWITCH: "SW-SNGL",
    DeviceType.DIMMER_SWITCH: "SW-DIM",
    DeviceType.THREE_WAY_SWITCH: "SW-3WAY",
    DeviceType.FOUR_WAY_SWITCH: "SW-4WAY",

    DeviceType.CEILING_LIGHT: "LT-CEIL",
    DeviceType.RECESSED_LIGHT: "LT-REC",
    DeviceType.PENDANT_LIGHT: "LT-PEND",
    DeviceType.TRACK_LIGHT: "LT-TRACK",
    DeviceType.UNDER_CABINET_LIGHT: "LT-UC",

    DeviceType.SMOKE_DETECTOR: "SD-STD",
    DeviceType.CO_DETECTOR: "CO-STD",
    DeviceType.THERMOSTAT: "THERM-STD",
    DeviceType.DOORBELL: "DB-STD",
    DeviceType.FAN: "FAN-STD",

    DeviceType.CUSTOM: DEFAULT_ASSEMBLY_CODE,
}


def assembly_code_for(device_type: str) -> str:
    """Assembly code for a device type; unknown types map to MISC-STD."""
    try:
        return DEVICE_TO_ASSEMBLY[DeviceType(device_type)]
    except ValueError:
        return DEFAULT_ASSEMBLY_CODE


# Room keywords scanned on the drawing, in match order
KNOWN_ROOM_TYPES: List[Tuple[str, RoomType]] = [
    ("Living Room", RoomType.LIVING),
    ("Kitchen", RoomType.KITCHEN),
    ("Bedroom", RoomType.BEDROOM),
    ("Master Bedroom", RoomType.MASTER_BEDROOM),
    ("Bathroom", RoomType.BATHROOM),
    ("Master Bathroom", RoomType.MASTER_BATHROOM),
    ("Dining Room", RoomType.DINING),
    ("Garage", RoomType.GARAGE),
    ("Hallway", RoomType.HALLWAY),
    ("Basement", RoomType.BASEMENT),
    ("Attic", RoomType.ATTIC),
    ("Closet", RoomType.CLOSET),
    ("Laundry", RoomType.LAUNDRY),
    ("Office", RoomType.OFFICE),
    ("Den", RoomType.DEN),
]

DeviceBundle = List[Tuple[DeviceType, int]]

_BEDROOM_BUNDLE: DeviceBundle = [
    (DeviceType.RECEPTACLE, 4),
    (DeviceType.SWITCH, 1),
    (DeviceType.CEILING_LIGHT, 1),
]

_BATHROOM_BUNDLE: DeviceBundle = [
    (DeviceType.GFCI_RECEPTACLE, 2),
    (DeviceType.SWITCH, 2),
    (DeviceType.RECESSED_LIGHT, 2),
    (DeviceType.FAN, 1),
]

# Fixed device bundle per room type
ROOM_DEVICE_BUNDLES: Dict[RoomType, DeviceBundle] = {
    RoomType.LIVING: [
        (DeviceType.RECEPTACLE, 6),
        (DeviceType.SWITCH, 2),
        (DeviceType.CEILING_LIGHT, 1),
    ],
    RoomType.KITCHEN: [
        (DeviceType.GFCI_RECEPTACLE, 4),
        (DeviceType.SWITCH, 3),
        (DeviceType.RECESSED_LIGHT, 4),
        (DeviceType.UNDER_CABINET_LIGHT, 2),
    ],
    RoomType.BEDROOM: _BEDROOM_BUNDLE,
    RoomType.MASTER_BEDROOM: _BEDROOM_BUNDLE,
    RoomType.BATHROOM: _BATHROOM_BUNDLE,
    RoomType.MASTER_BATHROOM: _BATHROOM_BUNDLE,
}

DEFAULT_DEVICE_BUNDLE: DeviceBundle = [
    (DeviceType.RECEPTACLE, 2),
    (DeviceType.SWITCH, 1),
    (DeviceType.CEILING_LIGHT, 1),
]


def device_bundle_for(room_type: str) -> DeviceBundle:
    """Device bundle for a room type; other types get the default bundle."""
    try:
        return ROOM_DEVICE_BUNDLES.get(RoomType(room_type), DEFAULT_DEVICE_BUNDLE)
    except ValueError:
        return DEFAULT_DEVICE_BUNDLE


# Drawing keywords per device type. Declared for keyword-driven device
# counting; device counts currently come from ROOM_DEVICE_BUNDLES only.
DEVICE_KEYWORD_PATTERNS: List[Tuple[re.Pattern, DeviceType]] = [
    (re.compile(r"receptacle|outlet", re.I), DeviceType.RECEPTACLE),
    (re.compile(r"gfci|gfi", re.I), DeviceType.GFCI_RECEPTACLE),
    (re.compile(r"\bwr(?:tr)?\b", re.I), DeviceType.WEATHER_RESISTANT_RECEPTACLE),
    (re.compile(r"floor\s*receptacle", re.I), DeviceType.FLOOR_RECEPTACLE),
    (re.compile(r"(?:^|\s)switch", re.I), DeviceType.SWITCH),
    (re.compile(r"dimmer\s*switch", re.I), DeviceType.DIMMER_SWITCH),
    (re.compile(r"3-way\s*switch", re.I), DeviceType.THREE_WAY_SWITCH),
    (re.compile(r"4-way\s*switch", re.I), DeviceType.FOUR_WAY_SWITCH),
    (re.compile(r"ceiling\s*(?:light|fan)", re.I), DeviceType.CEILING_LIGHT),
    (re.compile(r"recessed\s*light", re.I), DeviceType.RECESSED_LIGHT),
    (re.compile(r"(?:pendant|hanging)\s*light", re.I), DeviceType.PENDANT_LIGHT),
    (re.compile(r"track\s*light", re.I), DeviceType.TRACK_LIGHT),
    (re.compile(r"under\s*cabinet\s*light", re.I), DeviceType.UNDER_CABINET_LIGHT),
    (re.compile(r"smoke\s*detector", re.I), DeviceType.SMOKE_DETECTOR),
    (re.compile(r"(?:co|carbon\s*monoxide)\s*detector", re.I), DeviceType.CO_DETECTOR),
    (re.compile(r"thermostat", re.I), DeviceType.THERMOSTAT),
    (re.compile(r"doorbell", re.I), DeviceType.DOORBELL),
    (re.compile(r"\bfan\b", re.I), DeviceType.FAN),
]
