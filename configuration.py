from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starsep_utils import GeoPoint

from osm.modes import MODES_BY_FAMILY

outputDirectory = Path("osm-zoning")
OVERPASS_URL = "https://overpass-api.de/api/interpreter"  # "http://localhost:12345/api/interpreter"

DEFAULT_SEARCH_RADIUS_STOP_TO_WAITING_AREA_M = 25.0
DEFAULT_SEARCH_RADIUS_STATION_TO_WAITING_AREA_M = 35.0
DEFAULT_SEARCH_RADIUS_STATION_PARALLEL_TRACKS_M = DEFAULT_SEARCH_RADIUS_STATION_TO_WAITING_AREA_M
DEFAULT_SEARCH_RADIUS_FERRY_STOP_TO_FERRY_ROUTE_M = 100.0
CLOSEST_EDGE_SEARCH_BUFFER_DISTANCE_M = 8.0
DEFAULT_CONNECT_DANGLING_FERRY_STOP_TO_FERRY_ROUTE = True

# pcu/h per lane
DEFAULT_CAPACITY_PER_LANE = {
    "motorway": 2000.0,
    "trunk": 2000.0,
    "primary": 1800.0,
    "secondary": 1200.0,
    "tertiary": 1200.0,
    "unclassified": 1000.0,
    "residential": 1000.0,
    "living_street": 600.0,
    "service": 800.0,
    "busway": 1000.0,
    "bus_guideway": 1000.0,
    "railway": 1.0,
    "ferry": 1.0,
}
DEFAULT_LANES_PER_DIRECTION = 1

ElementKey = Tuple[str, int]


class ZoningSettings(BaseModel):
    """Options of one zoning run. Unknown keys are rejected, values are coerced to their types."""

    model_config = ConfigDict(extra="forbid")

    parserActive: bool = True
    ptv1Active: bool = True
    ptv2Active: bool = True
    roadActive: bool = True
    railActive: bool = True
    waterwayActive: bool = True
    stopToWaitingAreaSearchRadius: float = DEFAULT_SEARCH_RADIUS_STOP_TO_WAITING_AREA_M
    stationToWaitingAreaSearchRadius: float = (
        DEFAULT_SEARCH_RADIUS_STATION_TO_WAITING_AREA_M
    )
    stationToParallelTracksSearchRadius: float = (
        DEFAULT_SEARCH_RADIUS_STATION_PARALLEL_TRACKS_M
    )
    ferryStopToFerryRouteSearchRadius: float = (
        DEFAULT_SEARCH_RADIUS_FERRY_STOP_TO_FERRY_ROUTE_M
    )
    connectDanglingFerryStopToFerryRoute: bool = (
        DEFAULT_CONNECT_DANGLING_FERRY_STOP_TO_FERRY_ROUTE
    )
    boundingPolygon: Optional[List[GeoPoint]] = None
    excludedElements: Set[ElementKey] = Field(default_factory=set)
    # stop position node id -> waiting area it must serve
    stopPositionWaitingAreas: Dict[int, ElementKey] = Field(default_factory=dict)
    # waiting area -> way the stop location must be placed on
    waitingAreaNominatedWays: Dict[ElementKey, int] = Field(default_factory=dict)
    suppressedStopAreaLogging: Set[int] = Field(default_factory=set)
    leftHandDrive: bool = False
    showProgress: bool = True

    def activatedModeFamilies(self) -> Set[str]:
        families = set()
        if self.roadActive:
            families.add("road")
        if self.railActive:
            families.add("rail")
        if self.waterwayActive:
            families.add("water")
        return families

    def activatedModes(self) -> Set[str]:
        return {
            mode
            for family in self.activatedModeFamilies()
            for mode in MODES_BY_FAMILY[family]
        }

    def hasBoundingPolygon(self) -> bool:
        return self.boundingPolygon is not None and len(self.boundingPolygon) >= 3

    def isExcluded(self, elementType: str, elementId: int) -> bool:
        return (elementType, elementId) in self.excludedElements

    def isStopPositionWaitingAreaOverwritten(self, stopNodeId: int) -> bool:
        return stopNodeId in self.stopPositionWaitingAreas

    def isWaitingAreaOfStopPosition(self, elementType: str, elementId: int) -> bool:
        return (elementType, elementId) in self.stopPositionWaitingAreas.values()

    def nominatedWay(self, elementType: str, elementId: int) -> Optional[int]:
        return self.waitingAreaNominatedWays.get((elementType, elementId))

    @field_validator("boundingPolygon", mode="before")
    @classmethod
    def _boundingPolygonFromPairs(cls, value):
        if value is None:
            return value
        return [
            dict(lat=point[0], lon=point[1]) if isinstance(point, (list, tuple)) else point
            for point in value
        ]

    @field_validator("waitingAreaNominatedWays", mode="before")
    @classmethod
    def _nominatedWaysFromTriples(cls, value):
        # JSON has no tuple keys, files list [type, id, way id] triples
        if isinstance(value, list):
            return {(elementType, elementId): wayId for elementType, elementId, wayId in value}
        return value

    @staticmethod
    def fromDict(data: dict) -> "ZoningSettings":
        return ZoningSettings.model_validate(data)
