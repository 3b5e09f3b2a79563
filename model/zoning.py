from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from shapely.geometry import Point
from shapely.geometry.base import BaseGeometry
from starsep_utils import GeoPoint


class WaitingAreaType(Enum):
    PLATFORM = "platform"
    POLE = "pole"
    SMALL_STATION = "small_station"
    STATION = "station"


@dataclass(eq=False)
class Connectoid:
    waitingArea: "WaitingArea"
    mode: str
    linkId: int
    osmWayId: Optional[int]
    distanceAlongLink: float
    forward: bool
    location: Point
    stopPositionOsmNodeId: Optional[int] = None

    def key(self) -> Tuple:
        return (
            self.waitingArea.id,
            self.mode,
            self.linkId,
            self.forward,
            round(self.distanceAlongLink, 3),
        )


@dataclass(eq=False)
class WaitingArea:
    id: int
    osmType: str
    osmId: int
    geometry: BaseGeometry
    type: WaitingAreaType
    modes: Set[str]
    name: Optional[str] = None
    stationName: Optional[str] = None
    platformRefs: List[str] = field(default_factory=list)
    verticalLayer: Optional[int] = None
    groupIds: List[int] = field(default_factory=list)
    connectoids: List[Connectoid] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, int]:
        return self.osmType, self.osmId

    @property
    def url(self):
        return f"https://osm.org/{self.osmType}/{self.osmId}"

    @property
    def hasConnectoids(self) -> bool:
        return len(self.connectoids) > 0

    def __repr__(self):
        return f"WaitingArea({self.osmType}/{self.osmId}, {self.type.name}, {sorted(self.modes)})"


@dataclass(eq=False)
class TransferGroup:
    osmId: int
    name: Optional[str] = None
    members: Dict[Tuple[str, int], WaitingArea] = field(default_factory=dict)

    @property
    def url(self):
        return f"https://osm.org/relation/{self.osmId}"

    def addWaitingArea(self, waitingArea: WaitingArea):
        self.members[waitingArea.key] = waitingArea
        if self.osmId not in waitingArea.groupIds:
            waitingArea.groupIds.append(self.osmId)

    def hasWaitingArea(self, waitingArea: WaitingArea) -> bool:
        return waitingArea.key in self.members

    @property
    def waitingAreas(self) -> List[WaitingArea]:
        return list(self.members.values())


@dataclass(frozen=True)
class WaitingAreaSummary(GeoPoint):
    osmType: str
    osmId: int
    type: str
    name: str
    modes: str
    connectoids: int

    @property
    def url(self):
        return f"https://osm.org/{self.osmType}/{self.osmId}"


@dataclass
class ZoningResult:
    waitingAreas: List[WaitingArea]
    groups: List[TransferGroup]
    connectoids: List[Connectoid]
    statistics: Dict[str, Counter]

    def incompleteWaitingAreas(self) -> List[WaitingArea]:
        return [area for area in self.waitingAreas if not area.hasConnectoids]
