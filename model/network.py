from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from shapely.geometry import LineString, Point, Polygon
from shapely.strtree import STRtree

LOCATION_PRECISION = 3


def locationKey(point: Point) -> Tuple[float, float]:
    return round(point.x, LOCATION_PRECISION), round(point.y, LOCATION_PRECISION)


@dataclass(eq=False)
class NetworkLink:
    id: int
    osmWayId: Optional[int]
    osmNodeIds: List[int]
    geometry: LineString
    forwardModes: FrozenSet[str]
    backwardModes: FrozenSet[str]
    capacityPerLane: float
    lanesForward: int = 1
    lanesBackward: int = 1
    verticalLayer: int = 0
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def nodeA(self) -> int:
        return self.osmNodeIds[0]

    @property
    def nodeB(self) -> int:
        return self.osmNodeIds[-1]

    @property
    def modes(self) -> FrozenSet[str]:
        return self.forwardModes | self.backwardModes

    @property
    def length(self) -> float:
        return self.geometry.length

    def allowsMode(self, mode: str) -> bool:
        return mode in self.forwardModes or mode in self.backwardModes

    def allowsModeInDirection(self, mode: str, forward: bool) -> bool:
        return mode in (self.forwardModes if forward else self.backwardModes)

    def capacity(self, mode: str) -> float:
        lanes = 0
        if mode in self.forwardModes:
            lanes = max(lanes, self.lanesForward)
        if mode in self.backwardModes:
            lanes = max(lanes, self.lanesBackward)
        return self.capacityPerLane * lanes

    def locate(self, point: Point) -> float:
        return self.geometry.project(point)

    def __repr__(self):
        return f"NetworkLink(id={self.id}, osmWayId={self.osmWayId})"


class Network:
    """Parsed transport network the zoning attaches to, one link per source way."""

    def __init__(self):
        self.links: Dict[int, NetworkLink] = dict()
        self.osmNodeLocations: Dict[int, Point] = dict()
        self._linksByOsmNode: Dict[int, List[NetworkLink]] = defaultdict(list)
        self._linksByOsmWay: Dict[int, List[NetworkLink]] = defaultdict(list)
        self._osmNodeByLocation: Dict[Tuple[float, float], int] = dict()
        self._tree: Optional[STRtree] = None
        self._treeLinks: List[NetworkLink] = []

    def nextLinkId(self) -> int:
        return max(self.links.keys(), default=0) + 1

    def addLink(self, link: NetworkLink):
        if len(link.osmNodeIds) != len(link.geometry.coords):
            raise ValueError(f"Link {link.id} has mismatching node ids and geometry")
        self.links[link.id] = link
        if link.osmWayId is not None:
            self._linksByOsmWay[link.osmWayId].append(link)
        for osmNodeId, coordinate in zip(link.osmNodeIds, link.geometry.coords):
            location = Point(coordinate)
            self.osmNodeLocations[osmNodeId] = location
            self._osmNodeByLocation[locationKey(location)] = osmNodeId
            self._linksByOsmNode[osmNodeId].append(link)
        self._tree = None

    def _spatialIndex(self) -> STRtree:
        if self._tree is None:
            self._treeLinks = sorted(self.links.values(), key=lambda link: link.id)
            self._tree = STRtree([link.geometry for link in self._treeLinks])
        return self._tree

    def findLinksSpatially(self, envelope: Polygon) -> List[NetworkLink]:
        if len(self.links) == 0:
            return []
        indices = self._spatialIndex().query(envelope)
        return sorted(
            (self._treeLinks[int(index)] for index in indices),
            key=lambda link: link.id,
        )

    def hasOsmNode(self, osmNodeId: int, mode: Optional[str] = None) -> bool:
        return len(self.linksAtOsmNode(osmNodeId, mode)) > 0

    def osmNodeLocation(self, osmNodeId: int) -> Optional[Point]:
        return self.osmNodeLocations.get(osmNodeId)

    def osmNodeAtLocation(self, point: Point) -> Optional[int]:
        return self._osmNodeByLocation.get(locationKey(point))

    def linksAtOsmNode(
        self, osmNodeId: int, mode: Optional[str] = None
    ) -> List[NetworkLink]:
        links = self._linksByOsmNode.get(osmNodeId, [])
        if mode is None:
            return list(links)
        return [link for link in links if link.allowsMode(mode)]

    def linksByOsmWay(self, osmWayId: int) -> List[NetworkLink]:
        return list(self._linksByOsmWay.get(osmWayId, []))

    def isLocationPresent(self, point: Point, mode: Optional[str] = None) -> bool:
        osmNodeId = self.osmNodeAtLocation(point)
        return osmNodeId is not None and self.hasOsmNode(osmNodeId, mode)

    def addConnectorLink(
        self,
        fromOsmNodeId: int,
        fromPoint: Point,
        toOsmNodeId: int,
        mode: str,
        capacityPerLane: float,
        tags: Dict[str, str],
    ) -> NetworkLink:
        toPoint = self.osmNodeLocations[toOsmNodeId]
        link = NetworkLink(
            id=self.nextLinkId(),
            osmWayId=None,
            osmNodeIds=[fromOsmNodeId, toOsmNodeId],
            geometry=LineString([fromPoint.coords[0], toPoint.coords[0]]),
            forwardModes=frozenset({mode}),
            backwardModes=frozenset({mode}),
            capacityPerLane=capacityPerLane,
            tags=tags,
        )
        self.addLink(link)
        return link
