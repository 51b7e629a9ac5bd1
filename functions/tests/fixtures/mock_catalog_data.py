"""Mock catalog data for testing.

A small electrical catalog: receptacles, switches and lights with either a
bill of materials or a default material cost, the MISC-STD fallback and the
SVC-PNL service panel. LT-UC and FAN-STD are deliberately absent so those
devices fall back to MISC-STD.
"""

from typing import Any, Dict, List


ASSEMBLIES: List[Dict[str, Any]] = [
    {
        "_id": "asm-rec-std",
        "code": "REC-STD",
        "name": "Standard Receptacle",
        "phase": "trim",
        "laborMinutes": 15,
        "materials": [
            {"materialId": "mat-receptacle", "quantity": 1},
            {"materialId": "mat-box", "quantity": 1},
        ],
    },
    {
        "_id": "asm-rec-gfci",
        "code": "REC-GFCI",
        "name": "GFCI Receptacle",
        "phase": "trim",
        "laborMinutes": 20,
        "defaultMaterialCost": 18.0,
    },
    {
        "_id": "asm-sw-sngl",
        "code": "SW-SNGL",
        "name": "Single Pole Switch",
        "phase": "trim",
        "laborMinutes": 12,
        "materials": [
            {"materialId": "mat-switch", "quantity": 1},
            {"materialId": "mat-box", "quantity": 1, "wasteFactor": 1.2},
        ],
    },
    {
        "_id": "asm-lt-ceil",
        "code": "LT-CEIL",
        "name": "Ceiling Light",
        "phase": "trim",
        "laborMinutes": 30,
        "defaultMaterialCost": 25.0,
    },
    {
        "_id": "asm-lt-rec",
        "code": "LT-REC",
        "name": "Recessed Light",
        "phase": "rough",
        "laborMinutes": 30,
        "defaultMaterialCost": 40.0,
    },
    {
        "_id": "asm-misc",
        "code": "MISC-STD",
        "name": "Miscellaneous Device",
        "phase": "rough",
        "laborMinutes": 30,
        "defaultMaterialCost": 10.0,
    },
    {
        "_id": "asm-svc-pnl",
        "code": "SVC-PNL",
        "name": "200A Service Panel",
        "phase": "service",
        "laborMinutes": 480,
        "materials": [
            {"materialId": "mat-panel", "quantity": 1},
        ],
    },
]

MATERIALS: List[Dict[str, Any]] = [
    {"_id": "mat-receptacle", "name": "Duplex Receptacle 15A", "unit": "EA", "currentCost": 2.5, "wasteFactor": 1.05},
    {"_id": "mat-box", "name": "Single Gang Box", "unit": "EA", "currentCost": 1.0},
    {"_id": "mat-switch", "name": "Single Pole Switch 15A", "unit": "EA", "currentCost": 3.0, "wasteFactor": 1.0},
    {"_id": "mat-panel", "name": "200A Load Center", "unit": "EA", "currentCost": 350.0},
]

PERMIT_MAPPINGS: List[Dict[str, Any]] = [
    {"assemblyId": "asm-rec-std", "permitType": "electrical", "permitFieldMapping": "outlets", "countFactor": 1},
    {"assemblyId": "asm-rec-gfci", "permitType": "electrical", "permitFieldMapping": "outlets"},
    {"assemblyId": "asm-sw-sngl", "permitType": "electrical", "permitFieldMapping": "switches", "countFactor": 1},
    {"assemblyId": "asm-lt-ceil", "permitType": "electrical", "permitFieldMapping": "fixtures", "countFactor": 2},
    {"assemblyId": "asm-svc-pnl", "permitType": "electrical", "permitFieldMapping": "servicePanels"},
    {"assemblyId": "asm-lt-rec", "permitType": "building", "permitFieldMapping": "fixtures"},
]

COMPANY_RECORD: Dict[str, Any] = {
    "PK": "COMPANY#co-1",
    "SK": "METADATA",
    "name": "Bright Spark Electric",
    "customerName": "Jordan Homes",
    "hourlyRate": 85,
    "overheadPercentage": 15,
    "profitPercentage": 10,
}

PROJECT_RECORD: Dict[str, Any] = {
    "PK": "PROJECT#proj-1",
    "SK": "METADATA",
    "projectId": "proj-1",
    "companyId": "co-1",
    "name": "Maple Street Remodel",
    "type": "residential",
    "squareFootage": 2000,
    "customer": {"id": "cust-1"},
    "generalContractor": {"id": "gc-1"},
    "status": "active",
}
