import logging
from collections import defaultdict
from typing import Dict, Iterator, List, Optional, Set, Tuple

from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.strtree import STRtree
from starsep_utils import Node, Way

from configuration import ElementKey, ZoningSettings
from model.deferred import DeferredItem, DeferredKind, RetainedOuterWay
from model.geo import Projector
from model.network import Network, NetworkLink, locationKey
from model.zoning import Connectoid, TransferGroup, WaitingArea
from osm.osmErrors import ZoningError
from zoning.profiler import ZoningProfiler


class ZoningReaderState:
    """Everything the three passes create, defer and look up.

    One instance is owned by the reader and handed to every handler. Waiting
    areas are unique per (type, id), deferred items are removed exactly once and
    ``reset`` starts over from an empty state.
    """

    def __init__(
        self, network: Network, settings: ZoningSettings, projector: Projector
    ):
        self.network = network
        self.settings = settings
        self.projector = projector
        self.boundingArea: Optional[Polygon] = None
        if settings.hasBoundingPolygon():
            self.boundingArea = projector.polygon(
                (point.lat, point.lon) for point in settings.boundingPolygon
            )
        self.reset()

    def reset(self):
        self.waitingAreas: Dict[ElementKey, WaitingArea] = dict()
        self.waitingAreaAliases: Dict[ElementKey, ElementKey] = dict()
        self.groups: Dict[int, TransferGroup] = dict()
        self.connectoids: List[Connectoid] = []
        self.deferred: Dict[DeferredKind, Dict[ElementKey, DeferredItem]] = {
            kind: dict() for kind in DeferredKind
        }
        self.retainedWays: Dict[int, Way] = dict()
        self.osmNodes: Dict[int, Node] = dict()
        self.ignoredStopAreaStopPositions: Set[ElementKey] = set()
        self.waitingAreasWithoutMappedMode: Set[ElementKey] = set()
        # (group id, platform member key) seen before the platform existed
        self.pendingPlatformMemberships: List[Tuple[int, ElementKey]] = []
        # group id -> stop role node ids, in member order
        self.groupStopMembers: Dict[int, List[int]] = defaultdict(list)
        self._groupStopNodeIds: Set[int] = set()
        self.reportedMissingMembers: Set[ElementKey] = set()
        self.profiler = ZoningProfiler()
        self._connectoidKeys: Set[Tuple] = set()
        self._connectoidLocations: Set[Tuple[float, float]] = set()
        self._nextWaitingAreaId = 1
        self._areaTree: Optional[STRtree] = None
        self._areaTreeAreas: List[WaitingArea] = []

    # waiting areas

    def nextWaitingAreaId(self) -> int:
        waitingAreaId = self._nextWaitingAreaId
        self._nextWaitingAreaId += 1
        return waitingAreaId

    def registerWaitingArea(self, waitingArea: WaitingArea) -> WaitingArea:
        existing = self.lookupWaitingArea(waitingArea.osmType, waitingArea.osmId)
        if existing is not None:
            logging.error(f"Waiting area {waitingArea.osmType} {waitingArea.osmId} registered twice")
            return existing
        self.waitingAreas[waitingArea.key] = waitingArea
        self.profiler.incrementWaitingArea(waitingArea.type)
        self._areaTree = None
        return waitingArea

    def lookupWaitingArea(self, osmType: str, osmId: int) -> Optional[WaitingArea]:
        key = (osmType, osmId)
        key = self.waitingAreaAliases.get(key, key)
        return self.waitingAreas.get(key)

    def aliasWaitingArea(self, aliasKey: ElementKey, waitingArea: WaitingArea):
        self.waitingAreaAliases[aliasKey] = waitingArea.key

    def spatialQueryWaitingAreas(self, envelope: BaseGeometry) -> List[WaitingArea]:
        if len(self.waitingAreas) == 0:
            return []
        if self._areaTree is None:
            self._areaTreeAreas = sorted(
                self.waitingAreas.values(), key=lambda area: area.id
            )
            self._areaTree = STRtree([area.geometry for area in self._areaTreeAreas])
        indices = self._areaTree.query(envelope)
        return sorted(
            (self._areaTreeAreas[int(index)] for index in indices),
            key=lambda area: area.id,
        )

    def spatialQueryLinks(self, envelope: BaseGeometry) -> List[NetworkLink]:
        return self.network.findLinksSpatially(envelope)

    # transfer groups

    def registerTransferGroup(self, group: TransferGroup) -> TransferGroup:
        if group.osmId in self.groups:
            logging.error(f"Transfer group {group.osmId} registered twice")
            return self.groups[group.osmId]
        self.groups[group.osmId] = group
        self.profiler.groups += 1
        return group

    def lookupTransferGroup(self, osmId: int) -> Optional[TransferGroup]:
        return self.groups.get(osmId)

    def groupsOf(self, waitingArea: WaitingArea) -> List[TransferGroup]:
        return [self.groups[groupId] for groupId in waitingArea.groupIds]

    # deferred work

    def enqueueDeferred(self, item: DeferredItem) -> bool:
        osmType, osmId = item.key
        waitingArea = self.lookupWaitingArea(osmType, osmId)
        if waitingArea is not None and waitingArea.hasConnectoids:
            logging.debug(f"{osmType} {osmId} already has stop locations, not deferred")
            return False
        self.deferred[item.kind][item.key] = item
        return True

    def drainDeferred(self, kind: DeferredKind) -> Iterator[DeferredItem]:
        queue = self.deferred[kind]
        for key in sorted(queue):
            item = queue.pop(key, None)
            # removed while draining
            if item is not None:
                yield item

    def lookupDeferred(
        self, kind: DeferredKind, osmType: str, osmId: int
    ) -> Optional[DeferredItem]:
        return self.deferred[kind].get((osmType, osmId))

    def hasDeferred(self, kind: DeferredKind, osmType: str, osmId: int) -> bool:
        return (osmType, osmId) in self.deferred[kind]

    def removeDeferred(
        self, kind: DeferredKind, osmType: str, osmId: int
    ) -> Optional[DeferredItem]:
        return self.deferred[kind].pop((osmType, osmId), None)

    # retained geometry

    def markRetainedWay(self, wayId: int):
        item = RetainedOuterWay(wayId)
        self.deferred[item.kind][item.key] = item

    def isRetainedWay(self, wayId: int) -> bool:
        return self.hasDeferred(DeferredKind.RETAINED_OUTER_WAY, "way", wayId)

    def unmarkRetainedWay(self, wayId: int):
        self.removeDeferred(DeferredKind.RETAINED_OUTER_WAY, "way", wayId)
        self.retainedWays.pop(wayId, None)

    def retainedWayIds(self) -> Set[int]:
        return {
            item.wayId
            for item in self.deferred[DeferredKind.RETAINED_OUTER_WAY].values()
        }

    def registerRetainedWay(self, way: Way):
        self.retainedWays[way.id] = way

    def getRetainedWay(self, wayId: int) -> Optional[Way]:
        return self.retainedWays.get(wayId)

    def registerOsmNode(self, node: Node):
        self.osmNodes[node.id] = node

    def getOsmNode(self, nodeId: int) -> Optional[Node]:
        return self.osmNodes.get(nodeId)

    # connectoids

    def addConnectoid(self, connectoid: Connectoid) -> bool:
        if self.waitingAreas.get(connectoid.waitingArea.key) is not connectoid.waitingArea:
            raise ZoningError(
                f"Connectoid for unregistered waiting area {connectoid.waitingArea.key}"
            )
        key = connectoid.key()
        if key in self._connectoidKeys:
            return False
        self._connectoidKeys.add(key)
        self._connectoidLocations.add(locationKey(connectoid.location))
        self.connectoids.append(connectoid)
        connectoid.waitingArea.connectoids.append(connectoid)
        self.profiler.connectoids += 1
        return True

    def hasConnectoidsAt(self, location: Point) -> bool:
        return locationKey(location) in self._connectoidLocations

    # stop areas

    def ignoreStopAreaStopPosition(self, osmType: str, osmId: int):
        self.ignoredStopAreaStopPositions.add((osmType, osmId))

    def isIgnoredStopAreaStopPosition(self, osmType: str, osmId: int) -> bool:
        return (osmType, osmId) in self.ignoredStopAreaStopPositions

    def addPendingPlatformMembership(self, groupId: int, memberKey: ElementKey):
        self.pendingPlatformMemberships.append((groupId, memberKey))

    def addGroupStopMember(self, groupId: int, nodeId: int):
        if nodeId not in self.groupStopMembers[groupId]:
            self.groupStopMembers[groupId].append(nodeId)
        self._groupStopNodeIds.add(nodeId)

    def isGroupStopMember(self, nodeId: int) -> bool:
        return nodeId in self._groupStopNodeIds

    def reportMissingMember(self, memberType: str, memberId: int) -> bool:
        """True the first time a missing member is seen."""
        key = (memberType, memberId)
        if key in self.reportedMissingMembers:
            return False
        self.reportedMissingMembers.add(key)
        return True

    # bounding area

    def hasBoundingArea(self) -> bool:
        return self.boundingArea is not None

    def isWithinBoundingArea(self, geometry: BaseGeometry) -> bool:
        return self.boundingArea is None or self.boundingArea.intersects(geometry)

    def isNearBoundingBoundary(self, geometry: BaseGeometry) -> bool:
        if self.boundingArea is None:
            return False
        return (
            self.boundingArea.exterior.distance(geometry)
            <= self.settings.stationToWaitingAreaSearchRadius
        )
