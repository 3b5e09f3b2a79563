from typing import Iterable, Mapping, Optional, Set

from osm import tags as osmTags

BUS = "bus"
TROLLEYBUS = "trolleybus"
SHARE_TAXI = "share_taxi"
MINIBUS = "minibus"
TRAIN = "train"
TRAM = "tram"
SUBWAY = "subway"
LIGHT_RAIL = "light_rail"
MONORAIL = "monorail"
FUNICULAR = "funicular"
FERRY = "ferry"

ROAD = "road"
RAIL = "rail"
WATER = "water"

MODES_BY_FAMILY = {
    ROAD: {BUS, TROLLEYBUS, SHARE_TAXI, MINIBUS},
    RAIL: {TRAIN, TRAM, SUBWAY, LIGHT_RAIL, MONORAIL, FUNICULAR},
    WATER: {FERRY},
}
PUBLIC_TRANSPORT_MODES = set().union(*MODES_BY_FAMILY.values())


def modeFamily(mode: str) -> Optional[str]:
    for family, modes in MODES_BY_FAMILY.items():
        if mode in modes:
            return family
    return None


def isRoadMode(mode: str) -> bool:
    return modeFamily(mode) == ROAD


def isRailMode(mode: str) -> bool:
    return modeFamily(mode) == RAIL


def isWaterMode(mode: str) -> bool:
    return modeFamily(mode) == WATER


def identifyPtv1DefaultMode(
    tags: Mapping[str, str], backupMode: Optional[str] = None
) -> Optional[str]:
    """Most likely mode of a scheme A entity, e.g. bus for highway=bus_stop."""
    if osmTags.hasPtv1ValueTag(tags):
        if osmTags.HIGHWAY in tags:
            if tags[osmTags.HIGHWAY] in [
                osmTags.BUS_STOP,
                osmTags.STATION,
                osmTags.PLATFORM,
                osmTags.PLATFORM_EDGE,
            ]:
                return BUS
        elif osmTags.RAILWAY in tags:
            if tags[osmTags.RAILWAY] == osmTags.TRAM_STOP:
                return TRAM
            if tags[osmTags.RAILWAY] in [
                osmTags.STATION,
                osmTags.HALT,
                osmTags.PLATFORM,
                osmTags.PLATFORM_EDGE,
                osmTags.STOP,
            ]:
                return TRAIN
    elif osmTags.isFerryTerminal(tags) or tags.get(osmTags.FERRY) == osmTags.YES:
        return FERRY
    return backupMode


def collectPublicTransportModes(
    tags: Mapping[str, str], defaultMode: Optional[str] = None
) -> Set[str]:
    included = {
        mode for mode in PUBLIC_TRANSPORT_MODES if tags.get(mode) == osmTags.YES
    }
    if len(included) > 0:
        excluded = {
            mode for mode in PUBLIC_TRANSPORT_MODES if tags.get(mode) == osmTags.NO
        }
        return included - excluded
    if defaultMode is not None:
        return {defaultMode}
    return set()


def isModeCompatible(
    modes: Iterable[str], referenceModes: Iterable[str], allowPseudo: bool
) -> bool:
    modes = set(modes)
    referenceModes = set(referenceModes)
    if len(modes & referenceModes) > 0:
        return True
    if not allowPseudo:
        return False
    families = {modeFamily(mode) for mode in modes}
    return any(modeFamily(mode) in families for mode in referenceModes)


def isPtv2StopPositionPtv1Stop(tags: Mapping[str, str]) -> bool:
    """Stop position that is also tagged as a scheme A stop (bus_stop, halt, ...)."""
    if osmTags.isFerryTerminal(tags):
        return True
    if tags.get(osmTags.HIGHWAY) == osmTags.BUS_STOP:
        return True
    return tags.get(osmTags.RAILWAY) in [
        osmTags.TRAM_STOP,
        osmTags.HALT,
        osmTags.STATION,
    ]
