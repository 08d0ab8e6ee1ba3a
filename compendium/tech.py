"""
Static tech lookup for the Compendium sync client.

Maps the numeric module ids used by the Compendium service to module names.
An id that is not in the table resolves to an empty string.
"""

# Module ids as assigned by the Compendium service
TECH_NAMES = {
    # Economy
    101: "TransportCapacity",
    102: "ShipmentComputer",
    103: "Trade",
    104: "Rush",
    105: "TradeBurst",
    106: "ShipmentDrone",
    107: "Offload",
    108: "ShipmentBeam",
    109: "Entrust",
    110: "Dispatch",
    111: "Recall",
    112: "RelicDrone",

    # Mining
    201: "MiningBoost",
    202: "HydrogenBayExtension",
    203: "Enrich",
    204: "RemoteMining",
    205: "HydrogenUpload",
    206: "MiningUnity",
    207: "Crunch",
    208: "Genesis",
    209: "HydrogenRocket",
    210: "MiningDrone",

    # Weapons
    301: "Battery",
    302: "Laser",
    303: "MassBattery",
    304: "DualLaser",
    305: "Barrage",
    306: "DartLauncher",

    # Shields
    401: "AlphaShield",
    402: "DeltaShield",
    403: "PassiveShield",
    404: "OmegaShield",
    405: "MirrorShield",
    406: "BlastShield",
    407: "AreaShield",

    # Support
    501: "EMP",
    502: "Teleport",
    503: "RedStarLifeExtender",
    504: "RemoteRepair",
    505: "TimeWarp",
    506: "Unity",
    507: "Sanctuary",
    508: "Stealth",
    509: "Fortify",
    510: "Impulse",
    511: "AlphaRocket",
    512: "Salvage",
    513: "Suppress",
    514: "Destiny",
    515: "Barrier",
    516: "Vengeance",
    517: "DeltaRocket",
    518: "Leap",
    519: "Bond",
    520: "AlphaDrone",
    521: "Suspend",
    522: "OmegaRocket",
    523: "RemoteBomb",

    # Ships
    601: "Transport",
    602: "Miner",
    603: "Battleship",

    # Drones and artifacts
    701: "DroneSquad",
    702: "BlastDrone",
    703: "ChainDrone",
    704: "DecoyDrone",

    # Legacy ids still reported by older clients
    1: "RedStarScanner",
    2: "ShipmentRelay",
    3: "CorpShipmentDrone",
    42: "WhiteStarScanner",
}


def get_tech_from_index(tech_id) -> str:
    """Resolve a tech id to its name, or "" if the id is unknown."""
    if isinstance(tech_id, bool):
        return ""
    if isinstance(tech_id, float) and not tech_id.is_integer():
        return ""
    try:
        return TECH_NAMES.get(int(tech_id), "")
    except (TypeError, ValueError):
        return ""


def is_valid_tech(tech_id) -> bool:
    """Check whether a tech id resolves to a known tech."""
    return get_tech_from_index(tech_id) != ""
