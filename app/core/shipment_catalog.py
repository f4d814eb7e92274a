# Fixed catalogues used by the shipment editors and booking validation.

PACKAGING_TYPES: dict[int, str] = {
    237: "10KG BOX",
    238: "25KG BOX",
    239: "ENVELOPE",
    240: "TUBE (PACKAGE)",
    241: "PAK (PACKAGE)",
    242: "BAGS",
    243: "BALE(S)",
    244: "BOX(ES)",
    245: "BUNCH(ES)",
    246: "BUNDLE(S)",
    248: "CARBOY(S)",
    249: "CARPET(S)",
    250: "CARTONS",
    251: "CASE(S)",
    252: "COIL(S)",
    253: "CRATE(S)",
    254: "CYLINDER(S)",
    255: "DRUM(S)",
    256: "LOOSE",
    257: "PAIL(S)",
    258: "PALLET(S)",
    260: "REELS(S)",
    261: "ROLL(S)",
    262: "SKID(S)",
    265: "TOTE(S)",
    266: "TUBES/PIPES",
    268: "GALLONS",
    269: "LIQUID BULK",
    270: "CONTAINER",
    271: "PIECES",
    272: "LOAD",
    273: "BLADE(S)",
    274: "RACKS",
    275: "GAYLORDS",
}

DEFAULT_PACKAGING_TYPE = 262

# NMFC freight classes
FREIGHT_CLASSES: frozenset[str] = frozenset(
    {
        "50", "55", "60", "65", "70", "77.5", "85", "92.5", "100",
        "110", "125", "150", "175", "200", "250", "300", "400", "500",
    }
)

RATE_CODES: dict[str, str] = {
    "FRT": "Freight",
    "FUE": "Fuel",
    "ADC": "Additional Charge",
    "SUR": "Surcharge",
    "TRF": "Transaction Fee",
}
