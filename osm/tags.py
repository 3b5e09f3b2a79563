from typing import Mapping, Optional

HIGHWAY = "highway"
RAILWAY = "railway"
WATERWAY = "waterway"
AMENITY = "amenity"
PUBLIC_TRANSPORT = "public_transport"
TYPE = "type"
NAME = "name"
LAYER = "layer"
LEVEL = "level"
FERRY = "ferry"
ROUTE = "route"
YES = "yes"
NO = "no"

REF_KEYS = ["ref", "local_ref", "loc_ref"]

# scheme A (Ptv1)
BUS_STOP = "bus_stop"
PLATFORM = "platform"
PLATFORM_EDGE = "platform_edge"
HALT = "halt"
STOP = "stop"
STATION = "station"
TRAM_STOP = "tram_stop"
SUBWAY_ENTRANCE = "subway_entrance"
FERRY_TERMINAL = "ferry_terminal"

PTV1_HIGHWAY_VALUES = {BUS_STOP, PLATFORM}
PTV1_RAILWAY_VALUES = {
    HALT,
    STOP,
    PLATFORM,
    PLATFORM_EDGE,
    STATION,
    TRAM_STOP,
    SUBWAY_ENTRANCE,
}

# scheme B (Ptv2)
STOP_POSITION = "stop_position"
STOP_AREA = "stop_area"
PTV2_VALUES = {PLATFORM, STOP_POSITION, STATION, STOP_AREA}

# relations
MULTIPOLYGON = "multipolygon"
STOP_ROLE = "stop"
PLATFORM_ROLE = "platform"
OUTER_ROLE = "outer"


def hasPtv2Key(tags: Mapping[str, str]) -> bool:
    return PUBLIC_TRANSPORT in tags


def ptv2Value(tags: Mapping[str, str]) -> Optional[str]:
    return tags.get(PUBLIC_TRANSPORT)


def isFerryTerminal(tags: Mapping[str, str]) -> bool:
    return tags.get(AMENITY) == FERRY_TERMINAL


def isBusStop(tags: Mapping[str, str]) -> bool:
    return tags.get(HIGHWAY) == BUS_STOP


def isTramStop(tags: Mapping[str, str]) -> bool:
    return tags.get(RAILWAY) == TRAM_STOP


def isStopPosition(tags: Mapping[str, str]) -> bool:
    return tags.get(PUBLIC_TRANSPORT) == STOP_POSITION


def isPtv2Station(tags: Mapping[str, str]) -> bool:
    return tags.get(PUBLIC_TRANSPORT) == STATION


def hasPtv1ValueTag(tags: Mapping[str, str]) -> bool:
    return (
        tags.get(HIGHWAY) in PTV1_HIGHWAY_VALUES
        or tags.get(RAILWAY) in PTV1_RAILWAY_VALUES
    )


def isPtv1(tags: Mapping[str, str]) -> bool:
    return hasPtv1ValueTag(tags) or isFerryTerminal(tags)


def isStopAreaRelation(tags: Mapping[str, str]) -> bool:
    return tags.get(TYPE) == PUBLIC_TRANSPORT and tags.get(PUBLIC_TRANSPORT) == STOP_AREA


def isMultipolygonPlatformRelation(tags: Mapping[str, str]) -> bool:
    return tags.get(TYPE) == MULTIPOLYGON and tags.get(PUBLIC_TRANSPORT) == PLATFORM


def isPlatformEquivalentRelation(tags: Mapping[str, str]) -> bool:
    if isMultipolygonPlatformRelation(tags):
        return True
    return tags.get(TYPE) == PUBLIC_TRANSPORT and tags.get(PUBLIC_TRANSPORT) == PLATFORM


def refValues(tags: Mapping[str, str]) -> list[str]:
    values = []
    for key in REF_KEYS:
        if key in tags:
            values.extend(value.strip() for value in tags[key].split(";"))
    return [value for value in values if len(value) > 0]


def verticalLayer(tags: Mapping[str, str]) -> Optional[int]:
    for key in [LAYER, LEVEL]:
        if key in tags:
            try:
                return int(float(tags[key].split(";")[0]))
            except ValueError:
                return None
    return None
