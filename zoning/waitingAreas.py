import logging
from typing import Iterable, List, Mapping, Optional, Set

from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.base import BaseGeometry
from starsep_utils import Element, Node, Way

from configuration import ZoningSettings
from model.geo import boundingBox
from model.zoning import TransferGroup, WaitingArea, WaitingAreaType
from osm import osmErrors
from osm import tags as osmTags
from osm.modes import (
    collectPublicTransportModes,
    identifyPtv1DefaultMode,
    isModeCompatible,
    isPtv2StopPositionPtv1Stop,
    isRoadMode,
)
from osm.overpass import isClosedWay
from zoning.connectoids import ConnectoidHelper
from zoning.linkMatcher import SpatialLinkMatcher
from zoning.state import ZoningReaderState


def ptv1WaitingAreaType(tags: Mapping[str, str]) -> WaitingAreaType:
    if osmTags.isBusStop(tags):
        return WaitingAreaType.POLE
    if osmTags.isTramStop(tags):
        return WaitingAreaType.PLATFORM
    if tags.get(osmTags.RAILWAY) == osmTags.HALT:
        return WaitingAreaType.SMALL_STATION
    if tags.get(osmTags.RAILWAY) == osmTags.STATION:
        return WaitingAreaType.STATION
    return WaitingAreaType.PLATFORM


class WaitingAreaHelper:
    """Creates waiting areas and finds the ones a stop position serves."""

    def __init__(
        self,
        state: ZoningReaderState,
        settings: ZoningSettings,
        matcher: SpatialLinkMatcher,
        connectoids: ConnectoidHelper,
    ):
        self.state = state
        self.settings = settings
        self.matcher = matcher
        self.connectoids = connectoids

    def geometryOf(self, element: Element) -> Optional[BaseGeometry]:
        projector = self.state.projector
        if isinstance(element, Node):
            return projector.nodePoint(element)
        if isinstance(element, Way):
            nodes = [self.state.getOsmNode(nodeId) for nodeId in element.nodes]
            if any(node is None for node in nodes) or len(nodes) == 0:
                return None
            coordinates = projector.coordinates(nodes)
            if isClosedWay(element):
                return Polygon(coordinates)
            if len(coordinates) == 1:
                return Point(coordinates[0])
            return LineString(coordinates)
        return None

    def createWaitingArea(
        self,
        element: Element,
        tags: Mapping[str, str],
        waitingAreaType: WaitingAreaType,
        defaultMode: Optional[str],
        modes: Optional[Set[str]] = None,
    ) -> Optional[WaitingArea]:
        existing = self.state.lookupWaitingArea(element.type, element.id)
        if existing is not None:
            return existing
        if modes is None:
            modes = collectPublicTransportModes(tags, defaultMode)
        activatedModes = set(modes) & self.settings.activatedModes()
        if len(modes) > 0 and len(activatedModes) == 0:
            logging.debug(f"{element.type} {element.id} only serves deactivated modes {sorted(modes)}")
            return None
        geometry = self.geometryOf(element)
        if geometry is None:
            logging.warning(osmErrors.osmErrorWayMissingNodes(element.id))
            return None
        waitingArea = self.state.registerWaitingArea(
            WaitingArea(
                id=self.state.nextWaitingAreaId(),
                osmType=element.type,
                osmId=element.id,
                geometry=geometry,
                type=waitingAreaType,
                modes=activatedModes,
                name=tags.get(osmTags.NAME),
                platformRefs=osmTags.refValues(tags),
                verticalLayer=osmTags.verticalLayer(tags),
                tags=dict(tags),
            )
        )
        if len(waitingArea.modes) == 0:
            self.state.waitingAreasWithoutMappedMode.add(waitingArea.key)
        return waitingArea

    def createWaitingAreaWithConnectoidsAtNode(
        self,
        node: Node,
        tags: Mapping[str, str],
        defaultMode: Optional[str],
        waitingAreaType: WaitingAreaType,
        modes: Optional[Set[str]] = None,
    ) -> Optional[WaitingArea]:
        waitingArea = self.createWaitingArea(
            node, tags, waitingAreaType, defaultMode, modes
        )
        if waitingArea is None:
            return None
        self.connectoids.createConnectoidsAtOsmNode(
            waitingArea, node.id, waitingArea.modes, knownStopPosition=True
        )
        return waitingArea

    @staticmethod
    def filterModeCompatible(
        waitingAreas: Iterable[WaitingArea], modes: Iterable[str], allowPseudo: bool
    ) -> List[WaitingArea]:
        """Areas without any known mode are never compatible."""
        modes = set(modes)
        return [
            area
            for area in waitingAreas
            if len(area.modes) > 0 and isModeCompatible(area.modes, modes, allowPseudo)
        ]

    @staticmethod
    def closestWaitingArea(
        geometry: BaseGeometry,
        waitingAreas: Iterable[WaitingArea],
        maxDistance: Optional[float] = None,
    ) -> Optional[WaitingArea]:
        candidates = [
            (area.geometry.distance(geometry), area.id, area) for area in waitingAreas
        ]
        if maxDistance is not None:
            candidates = [item for item in candidates if item[0] <= maxDistance]
        if len(candidates) == 0:
            return None
        return min(candidates, key=lambda item: (item[0], item[1]))[2]

    def waitingAreasNear(self, geometry: BaseGeometry, radius: float) -> List[WaitingArea]:
        return [
            area
            for area in self.state.spatialQueryWaitingAreas(boundingBox(geometry, radius))
            if area.geometry.distance(geometry) <= radius
        ]

    @staticmethod
    def updateStationName(waitingArea: WaitingArea, tags: Mapping[str, str]):
        if osmTags.NAME in tags:
            waitingArea.stationName = tags[osmTags.NAME]

    @staticmethod
    def updateGroupName(group: TransferGroup, tags: Mapping[str, str]):
        name = tags.get(osmTags.NAME)
        if name is None:
            return
        if group.name is None:
            group.name = name
        elif group.name != name:
            logging.debug(f"Stop area {group.osmId} keeps name {group.name}, ignoring {name}")

    def _isOnWrongSideOfRoad(
        self, waitingArea: WaitingArea, node: Node, modes: Iterable[str]
    ) -> bool:
        network = self.state.network
        location = network.osmNodeLocation(node.id)
        if location is None:
            return False
        for mode in modes:
            if not isRoadMode(mode):
                continue
            links = network.linksAtOsmNode(node.id, mode)
            if len(links) > 0 and all(
                len(self.matcher.accessDirections(waitingArea.geometry, link, mode, location))
                == 0
                for link in links
            ):
                return True
        return False

    def _findByReference(
        self,
        node: Node,
        tags: Mapping[str, str],
        waitingAreas: List[WaitingArea],
        modes: Set[str],
        location: Point,
    ) -> List[WaitingArea]:
        found = dict()
        for ref in osmTags.refValues(tags):
            matches = []
            for area in waitingAreas:
                if ref not in area.platformRefs:
                    continue
                if len(area.modes) == 0:
                    logging.info(
                        f"SALVAGED: waiting area {area.osmType} {area.osmId} referenced by stop position {node.id} "
                        f"matched although it has no known mode"
                    )
                elif not isModeCompatible(area.modes, modes, True):
                    continue
                matches.append(area)
            closest = self.closestWaitingArea(location, matches)
            if closest is not None:
                found[closest.key] = closest
        return list(found.values())

    def _findByReferenceOrName(
        self,
        node: Node,
        tags: Mapping[str, str],
        waitingAreas: List[WaitingArea],
        modes: Set[str],
    ) -> List[WaitingArea]:
        location = self.state.projector.nodePoint(node)
        matched = self._findByReference(node, tags, waitingAreas, modes, location)
        if len(matched) > 0:
            return matched
        name = tags.get(osmTags.NAME)
        if name is None:
            return []
        matched = [
            area
            for area in waitingAreas
            if area.name == name
            and area.geometry.distance(location) <= self.settings.stopToWaitingAreaSearchRadius
            and not self._isOnWrongSideOfRoad(area, node, modes)
        ]
        closest = self.closestWaitingArea(location, matched)
        return [closest] if closest is not None else []

    def _findSpatially(
        self, node: Node, tags: Mapping[str, str], modes: Set[str]
    ) -> List[WaitingArea]:
        location = self.state.projector.nodePoint(node)
        network = self.state.network
        potential = [
            area
            for area in self.waitingAreasNear(location, self.settings.stopToWaitingAreaSearchRadius)
            # an area on the network only serves its own location
            if not (
                area.hasConnectoids
                and isinstance(area.geometry, Point)
                and network.isLocationPresent(area.geometry)
            )
        ]
        if len(potential) == 0:
            logging.debug(f"No waiting area near stop position {node.id}")
            return []
        matched = self._findByReferenceOrName(node, tags, potential, modes)
        if len(matched) > 0:
            return matched
        closest = self.closestWaitingArea(
            location, self.filterModeCompatible(potential, modes, allowPseudo=True)
        )
        return [closest] if closest is not None else []

    def findWaitingAreasForStopPosition(
        self,
        node: Node,
        tags: Mapping[str, str],
        modes: Set[str],
        group: Optional[TransferGroup] = None,
        suppressLogging: bool = False,
    ) -> List[WaitingArea]:
        """Waiting areas served by the stop position, most trusted evidence first.

        A user override wins, then references and names among the areas of the
        stop area, then a spatial search around the node. A scheme A stop on the
        network becomes its own platform, and without modes the closest area of
        the stop area is used.
        """
        if self.settings.isStopPositionWaitingAreaOverwritten(node.id):
            osmType, osmId = self.settings.stopPositionWaitingAreas[node.id]
            waitingArea = self.state.lookupWaitingArea(osmType, osmId)
            if waitingArea is None:
                if not suppressLogging:
                    logging.warning(
                        f"Waiting area {osmType} {osmId} chosen for stop position {node.id} is not available"
                    )
                return []
            return [waitingArea]

        if group is not None:
            matched = self._findByReferenceOrName(node, tags, group.waitingAreas, modes)
            if len(matched) > 0:
                return matched

        matched = self._findSpatially(node, tags, modes)
        if len(matched) > 0:
            return matched

        if isPtv2StopPositionPtv1Stop(tags) and self.state.network.hasOsmNode(node.id):
            waitingArea = self.createWaitingArea(
                node,
                tags,
                ptv1WaitingAreaType(tags),
                identifyPtv1DefaultMode(tags),
                modes if len(modes) > 0 else None,
            )
            if waitingArea is not None:
                return [waitingArea]

        if len(modes) == 0 and group is not None:
            closest = self.closestWaitingArea(
                self.state.projector.nodePoint(node),
                group.waitingAreas,
                self.settings.stopToWaitingAreaSearchRadius,
            )
            if closest is not None:
                return [closest]
        return []
