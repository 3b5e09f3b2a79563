from enum import Enum
from typing import Mapping, Optional

from configuration import ZoningSettings
from osm import tags as osmTags


class PtScheme(Enum):
    NONE = "none"
    PTV1 = "ptv1"
    PTV2 = "ptv2"


class PtValue(Enum):
    PLATFORM = "platform"
    STOP_POSITION = "stop_position"
    STATION = "station"
    STOP_AREA = "stop_area"
    BUS_STOP = "bus_stop"
    HALT = "halt"
    STOP = "stop"
    TRAM_STOP = "tram_stop"
    PLATFORM_EDGE = "platform_edge"
    SUBWAY_ENTRANCE = "subway_entrance"
    FERRY_TERMINAL = "ferry_terminal"
    UNSUPPORTED = "unsupported"


_PTV2_VALUES = {
    osmTags.PLATFORM: PtValue.PLATFORM,
    osmTags.STOP_POSITION: PtValue.STOP_POSITION,
    osmTags.STATION: PtValue.STATION,
    osmTags.STOP_AREA: PtValue.STOP_AREA,
}

_PTV1_VALUES = {
    osmTags.BUS_STOP: PtValue.BUS_STOP,
    osmTags.PLATFORM: PtValue.PLATFORM,
    osmTags.PLATFORM_EDGE: PtValue.PLATFORM_EDGE,
    osmTags.HALT: PtValue.HALT,
    osmTags.STOP: PtValue.STOP,
    osmTags.STATION: PtValue.STATION,
    osmTags.TRAM_STOP: PtValue.TRAM_STOP,
    osmTags.SUBWAY_ENTRANCE: PtValue.SUBWAY_ENTRANCE,
}


class TagClassifier:
    """Decides which public transport tagging scheme applies to an element.

    The result only depends on the tags and the settings. Conflicts between the
    two schemes are not resolved here: scheme B wins the classification and
    callers inspect the scheme A value through ``conflictingPtv1Value``.
    """

    def __init__(self, settings: ZoningSettings):
        self.settings = settings

    def classify(
        self,
        tags: Mapping[str, str],
        elementType: Optional[str] = None,
        elementId: Optional[int] = None,
    ) -> PtScheme:
        if not self.settings.parserActive:
            return PtScheme.NONE
        if elementType is not None and elementId is not None:
            if self.settings.isExcluded(elementType, elementId):
                return PtScheme.NONE
        if self.settings.ptv2Active and osmTags.ptv2Value(tags) in osmTags.PTV2_VALUES:
            return PtScheme.PTV2
        if self.settings.ptv1Active and osmTags.isPtv1(tags):
            return PtScheme.PTV1
        return PtScheme.NONE

    @staticmethod
    def ptValue(tags: Mapping[str, str], scheme: PtScheme) -> PtValue:
        if scheme == PtScheme.PTV2:
            return _PTV2_VALUES.get(osmTags.ptv2Value(tags), PtValue.UNSUPPORTED)
        if scheme == PtScheme.PTV1:
            if tags.get(osmTags.HIGHWAY) in osmTags.PTV1_HIGHWAY_VALUES:
                return _PTV1_VALUES[tags[osmTags.HIGHWAY]]
            if tags.get(osmTags.RAILWAY) in osmTags.PTV1_RAILWAY_VALUES:
                return _PTV1_VALUES[tags[osmTags.RAILWAY]]
            if osmTags.isFerryTerminal(tags):
                return PtValue.FERRY_TERMINAL
        return PtValue.UNSUPPORTED

    @staticmethod
    def conflictingPtv1Value(tags: Mapping[str, str]) -> Optional[PtValue]:
        if not osmTags.hasPtv2Key(tags) or not osmTags.isPtv1(tags):
            return None
        return TagClassifier.ptValue(tags, PtScheme.PTV1)
