import logging
from typing import Iterable, Optional

from shapely.geometry import Point
from starsep_utils import Node

from configuration import DEFAULT_CAPACITY_PER_LANE, ZoningSettings
from model.geo import boundingBox
from model.network import NetworkLink
from model.zoning import Connectoid, TransferGroup, WaitingArea
from osm import osmErrors
from zoning.linkMatcher import SpatialLinkMatcher, closestPointOnLink
from zoning.state import ZoningReaderState

# existing vertex reused as stop location when closer than this
VERTEX_SNAP_DISTANCE_M = 1.0


class ConnectoidHelper:
    def __init__(
        self,
        state: ZoningReaderState,
        settings: ZoningSettings,
        matcher: SpatialLinkMatcher,
    ):
        self.state = state
        self.settings = settings
        self.matcher = matcher

    def logWarningIfNotNearBoundingBox(self, message: str, geometry):
        if self.state.isNearBoundingBoundary(geometry):
            logging.debug(message)
        else:
            logging.warning(message)

    def _avoidsCrossingTraffic(
        self, waitingArea: WaitingArea, location: Point, osmNodeId: Optional[int]
    ) -> bool:
        if waitingArea.geometry.distance(location) < 0.001:
            return False
        if osmNodeId is not None and self.settings.isStopPositionWaitingAreaOverwritten(
            osmNodeId
        ):
            return self.settings.stopPositionWaitingAreas[osmNodeId] != waitingArea.key
        return True

    def _addConnectoids(
        self,
        waitingArea: WaitingArea,
        link: NetworkLink,
        mode: str,
        location: Point,
        directions: Iterable[bool],
        stopPositionOsmNodeId: Optional[int] = None,
    ) -> bool:
        created = False
        distance = link.locate(location)
        for forward in directions:
            created = (
                self.state.addConnectoid(
                    Connectoid(
                        waitingArea=waitingArea,
                        mode=mode,
                        linkId=link.id,
                        osmWayId=link.osmWayId,
                        distanceAlongLink=distance,
                        forward=forward,
                        location=location,
                        stopPositionOsmNodeId=stopPositionOsmNodeId,
                    )
                )
                or created
            )
        if created:
            waitingArea.modes.add(mode)
            self.state.waitingAreasWithoutMappedMode.discard(waitingArea.key)
        return created

    def createConnectoidsAtOsmNode(
        self,
        waitingArea: WaitingArea,
        osmNodeId: int,
        modes: Iterable[str],
        knownStopPosition: bool,
        group: Optional[TransferGroup] = None,
        suppressLogging: bool = False,
    ) -> bool:
        """Stop locations at a network node for every mode, on all links reaching it."""
        network = self.state.network
        success = False
        for mode in sorted(modes):
            location = network.osmNodeLocation(osmNodeId)
            if location is None or not network.hasOsmNode(osmNodeId, mode):
                if not suppressLogging:
                    self.logWarningIfNotNearBoundingBox(
                        osmErrors.osmErrorStopPositionNotInLayer(osmNodeId, mode),
                        location if location is not None else waitingArea.geometry,
                    )
                continue
            avoidCrossingTraffic = self._avoidsCrossingTraffic(
                waitingArea, location, osmNodeId
            )
            modeSuccess = False
            for link in network.linksAtOsmNode(osmNodeId, mode):
                if (
                    not knownStopPosition
                    and waitingArea.verticalLayer is not None
                    and link.verticalLayer != waitingArea.verticalLayer
                ):
                    continue
                directions = self.matcher.accessDirections(
                    waitingArea.geometry, link, mode, location, avoidCrossingTraffic
                )
                modeSuccess = (
                    self._addConnectoids(
                        waitingArea, link, mode, location, directions, osmNodeId
                    )
                    or modeSuccess
                )
            if not modeSuccess and not waitingArea.hasConnectoids:
                self.logWarningIfNotNearBoundingBox(
                    osmErrors.osmErrorStopPositionWithoutLinks(osmNodeId, mode), location
                )
            success = modeSuccess or success
        if success and group is not None and not group.hasWaitingArea(waitingArea):
            logging.info(
                f"Waiting area {waitingArea.osmType} {waitingArea.osmId} identified for stop position {osmNodeId}, "
                f"added to stop area {group.osmId}"
            )
            group.addWaitingArea(waitingArea)
        return success

    def createConnectoidsOnLink(
        self,
        waitingArea: WaitingArea,
        link: NetworkLink,
        mode: str,
        searchRadius: float,
    ) -> bool:
        """Stop location on the link closest to the area, reusing a vertex when one is close."""
        location = closestPointOnLink(link, waitingArea.geometry)
        if location.distance(waitingArea.geometry) > searchRadius:
            logging.debug(
                f"Link {link.id} is further than {searchRadius:.0f}m from {waitingArea.osmType} {waitingArea.osmId}"
            )
            return False
        vertices = [Point(coordinate) for coordinate in link.geometry.coords]
        closestVertex = min(vertices, key=lambda vertex: vertex.distance(location))
        if closestVertex.distance(location) <= VERTEX_SNAP_DISTANCE_M:
            location = closestVertex
        stopPositionOsmNodeId = self.state.network.osmNodeAtLocation(location)
        directions = self.matcher.accessDirections(
            waitingArea.geometry,
            link,
            mode,
            location,
            self._avoidsCrossingTraffic(waitingArea, location, stopPositionOsmNodeId),
        )
        if len(directions) == 0:
            self.logWarningIfNotNearBoundingBox(
                osmErrors.osmErrorNoAccessibleLinks(waitingArea.osmType, waitingArea.osmId, mode),
                waitingArea.geometry,
            )
            return False
        return self._addConnectoids(
            waitingArea, link, mode, location, directions, stopPositionOsmNodeId
        )

    def connectDanglingFerryStop(self, node: Node, mode: str) -> bool:
        """Connects a ferry stop to the closest end of the closest ferry route nearby."""
        radius = self.settings.ferryStopToFerryRouteSearchRadius
        location = self.state.projector.nodePoint(node)
        network = self.state.network
        ferryLinks = [
            link
            for link in network.findLinksSpatially(boundingBox(location, radius))
            if link.allowsMode(mode)
            and link.osmWayId is not None
            and link.geometry.distance(location) <= radius
        ]
        if len(ferryLinks) == 0:
            logging.warning(osmErrors.osmErrorDanglingFerryStop(node.id, radius))
            return False
        closestLink = min(
            ferryLinks, key=lambda link: (link.geometry.distance(location), link.id)
        )
        endNodeId = min(
            [closestLink.nodeA, closestLink.nodeB],
            key=lambda osmNodeId: network.osmNodeLocation(osmNodeId).distance(location),
        )
        link = network.addConnectorLink(
            node.id,
            location,
            endNodeId,
            mode,
            DEFAULT_CAPACITY_PER_LANE["ferry"],
            tags={"route": "ferry", "connector": "yes"},
        )
        logging.info(
            f"⛴️ Ferry stop {node.id} connected to ferry route {closestLink.osmWayId} through link {link.id}"
        )
        return True
