import logging
from typing import Mapping, Optional, Set

from starsep_utils import Element, logDuration, Node

from configuration import ZoningSettings
from model.deferred import DeferredKind
from model.network import NetworkLink
from model.zoning import TransferGroup, WaitingArea, WaitingAreaType
from osm import osmErrors
from osm import tags as osmTags
from osm.modes import (
    BUS,
    TRAIN,
    collectPublicTransportModes,
    identifyPtv1DefaultMode,
    isPtv2StopPositionPtv1Stop,
    isRailMode,
    isRoadMode,
    isWaterMode,
)
from osm.osmErrors import ZoningError
from zoning.connectoids import ConnectoidHelper
from zoning.ferry import FerryPolicy
from zoning.linkMatcher import SpatialLinkMatcher
from zoning.state import ZoningReaderState
from zoning.waitingAreas import WaitingAreaHelper, ptv1WaitingAreaType

# stand-alone stations may serve parallel tracks
MAX_STATION_RAIL_MATCHES = 2
MAX_STATION_ROAD_MATCHES = 1


class ResolutionHandler:
    """Third pass: resolves everything Pass 2 deferred, in a fixed order.

    Stations first, so stop positions can find the areas they create, then
    ferry terminals, then stop positions (stop area members before stand-alone
    ones) and finally every waiting area that is still without a stop location.
    """

    def __init__(
        self,
        state: ZoningReaderState,
        settings: ZoningSettings,
        matcher: SpatialLinkMatcher,
        waitingAreas: WaitingAreaHelper,
        connectoids: ConnectoidHelper,
        ferry: FerryPolicy,
    ):
        self.state = state
        self.settings = settings
        self.matcher = matcher
        self.waitingAreas = waitingAreas
        self.connectoids = connectoids
        self.ferry = ferry

    def run(self):
        logging.info("🧩 Pass 3: resolving deferred entities")
        with logDuration("Pass 3 resolution"):
            self.resolvePendingPlatformMemberships()
            self.resolveStations()
            self.resolveFerryTerminals()
            self.resolveStopPositions()
            self.resolveIncompleteWaitingAreas()

    # helpers

    def _activatedModes(self, tags: Mapping[str, str], defaultMode: Optional[str]) -> Set[str]:
        return collectPublicTransportModes(tags, defaultMode) & self.settings.activatedModes()

    def _nominatedLink(
        self, waitingArea: WaitingArea, wayId: int, mode: str
    ) -> Optional[NetworkLink]:
        links = [
            link
            for link in self.state.network.linksByOsmWay(wayId)
            if link.allowsMode(mode)
        ]
        if len(links) == 0:
            logging.warning(
                osmErrors.osmErrorNominatedWayMissing(waitingArea.osmType, waitingArea.osmId, wayId)
            )
            return None
        return min(
            links, key=lambda link: (link.geometry.distance(waitingArea.geometry), link.id)
        )

    def _stopPositionModes(self, node: Node, waitingArea: WaitingArea) -> Set[str]:
        """Modes of a stop position without mode tags, from the area or the links at the node."""
        if len(waitingArea.modes) > 0:
            return set(waitingArea.modes)
        modes = set()
        for link in self.state.network.linksAtOsmNode(node.id):
            if any(isRoadMode(mode) for mode in link.modes):
                modes.add(BUS)
            modes |= {mode for mode in link.modes if not isRoadMode(mode)}
        return modes & self.settings.activatedModes()

    # (0) stop area platforms created after their stop area

    def resolvePendingPlatformMemberships(self):
        for groupId, (osmType, osmId) in self.state.pendingPlatformMemberships:
            group = self.state.lookupTransferGroup(groupId)
            waitingArea = self.state.lookupWaitingArea(osmType, osmId)
            if group is None:
                logging.error(f"Stop area {groupId} with pending platform {osmType} {osmId} is not registered")
                continue
            if waitingArea is not None:
                group.addWaitingArea(waitingArea)
                continue
            if (
                not self.state.hasBoundingArea()
                and groupId not in self.settings.suppressedStopAreaLogging
                and self.state.reportMissingMember(osmType, osmId)
            ):
                logging.warning(osmErrors.osmErrorMissingMember(groupId, osmType, osmId))
        self.state.pendingPlatformMemberships = []

    # (a) stations

    def resolveStations(self):
        for item in self.state.drainDeferred(DeferredKind.STATION):
            try:
                self._resolveStation(item.element)
            except Exception:
                logging.exception(f"Failed to resolve station {item.element.type} {item.element.id}")

    def _resolveStation(self, element: Element):
        tags = element.tags
        modes = self._activatedModes(tags, identifyPtv1DefaultMode(tags))
        if len(modes) == 0:
            logging.info(osmErrors.osmErrorStationWithoutModes(element.type, element.id))
            self.state.profiler.incrementDiscard("station without mode")
            return
        if self.ferry.isActive() and osmTags.isFerryTerminal(tags) and any(
            isWaterMode(mode) for mode in modes
        ):
            if isinstance(element, Node):
                self.ferry.processFerryStop(element, WaitingAreaType.PLATFORM)
            else:
                logging.warning(osmErrors.osmErrorFerryTerminalWay(element.id))
                self.state.profiler.incrementDiscard("ferry terminal way")
            return
        self._resolveLandBasedStation(element, tags, modes)

    def _resolveLandBasedStation(self, element: Element, tags: Mapping[str, str], modes: Set[str]):
        geometry = self.waitingAreas.geometryOf(element)
        if geometry is None:
            logging.warning(osmErrors.osmErrorWayMissingNodes(element.id))
            return
        nearby = self.waitingAreas.waitingAreasNear(
            geometry, self.settings.stationToWaitingAreaSearchRadius
        )

        grouped = [
            area
            for area in WaitingAreaHelper.filterModeCompatible(nearby, modes, allowPseudo=False)
            if len(area.groupIds) > 0
        ]
        if len(grouped) > 0:
            closest = WaitingAreaHelper.closestWaitingArea(geometry, grouped)
            for group in self.state.groupsOf(closest):
                WaitingAreaHelper.updateGroupName(group, tags)
                for waitingArea in group.waitingAreas:
                    WaitingAreaHelper.updateStationName(waitingArea, tags)
            logging.debug(f"Station {element.type} {element.id} merged into stop area(s) {closest.groupIds}")
            return

        standAlone = [
            area
            for area in WaitingAreaHelper.filterModeCompatible(nearby, modes, allowPseudo=True)
            if len(area.groupIds) == 0
        ]
        if len(standAlone) > 0:
            for waitingArea in standAlone:
                WaitingAreaHelper.updateStationName(waitingArea, tags)
            return

        self._extractStandAloneStation(element, tags, modes)

    def _extractStandAloneStation(self, element: Element, tags: Mapping[str, str], modes: Set[str]):
        defaultMode = identifyPtv1DefaultMode(tags, TRAIN)
        isNode = isinstance(element, Node)
        overridden = isNode and self.settings.isStopPositionWaitingAreaOverwritten(element.id)
        if isNode and self.state.network.hasOsmNode(element.id) and not overridden:
            # the station is its own stop position
            waitingArea = self.waitingAreas.createWaitingAreaWithConnectoidsAtNode(
                element, tags, defaultMode, ptv1WaitingAreaType(tags), modes
            )
            if waitingArea is not None:
                WaitingAreaHelper.updateStationName(waitingArea, tags)
            return

        if overridden:
            osmType, osmId = self.settings.stopPositionWaitingAreas[element.id]
            waitingArea = self.state.lookupWaitingArea(osmType, osmId)
            logging.debug(f"Station {element.id} mapped to chosen waiting area {osmType} {osmId}")
        else:
            waitingArea = self.waitingAreas.createWaitingArea(
                element, tags, WaitingAreaType.SMALL_STATION, defaultMode, modes
            )
        if waitingArea is None:
            logging.warning(f"DISCARD: unable to create waiting area for station {element.type} {element.id}")
            self.state.profiler.incrementDiscard("station without waiting area")
            return
        WaitingAreaHelper.updateStationName(waitingArea, tags)

        # a stop position chosen for this station attaches it
        if self.settings.isWaitingAreaOfStopPosition(element.type, element.id):
            return
        self._extractStandAloneStationConnectoids(element, waitingArea, modes)

    def _extractStandAloneStationConnectoids(
        self, element: Element, waitingArea: WaitingArea, modes: Set[str]
    ):
        for mode in sorted(modes):
            if isWaterMode(mode):
                self.ferry.discardWaterStation(element)
                continue
            if isRailMode(mode):
                radius = self.settings.stationToWaitingAreaSearchRadius
                maxMatches = MAX_STATION_RAIL_MATCHES
            else:
                radius = self.settings.stopToWaitingAreaSearchRadius
                maxMatches = MAX_STATION_ROAD_MATCHES

            nominatedWay = self.settings.nominatedWay(element.type, element.id)
            if nominatedWay is not None:
                link = self._nominatedLink(waitingArea, nominatedWay, mode)
                links = [link] if link is not None else []
            else:
                links = self.matcher.findAccessLinks(
                    waitingArea.geometry,
                    mode,
                    radius,
                    maxMatches,
                    waitingArea.verticalLayer,
                    sourceGeometry=waitingArea.geometry,
                )
            if len(links) == 0:
                self.connectoids.logWarningIfNotNearBoundingBox(
                    osmErrors.osmErrorStationWithoutAccessLinks(element.type, element.id),
                    waitingArea.geometry,
                )
                self.state.profiler.incrementDiscard("station without access links")
                continue
            for link in links:
                self.connectoids.createConnectoidsOnLink(
                    waitingArea, link, mode, self.settings.stationToWaitingAreaSearchRadius
                )

    # (b) ferry terminals

    def resolveFerryTerminals(self):
        for item in self.state.drainDeferred(DeferredKind.FERRY_TERMINAL):
            node = item.node
            if self.state.isGroupStopMember(node.id):
                # resolved together with its stop area
                continue
            try:
                self.ferry.processFerryStop(node, ptv1WaitingAreaType(node.tags))
            except Exception:
                logging.exception(f"Failed to resolve ferry terminal {node.id}")

    # (c) stop positions

    def resolveStopPositions(self):
        for groupId in sorted(self.state.groupStopMembers):
            group = self.state.lookupTransferGroup(groupId)
            suppressLogging = groupId in self.settings.suppressedStopAreaLogging
            for nodeId in self.state.groupStopMembers[groupId]:
                try:
                    self._resolveStopAreaStopPosition(group, nodeId, suppressLogging)
                except Exception:
                    logging.exception(f"Failed to resolve stop position {nodeId} of stop area {groupId}")
        for item in self.state.drainDeferred(DeferredKind.STOP_POSITION):
            try:
                self._resolveStandAloneStopPosition(item.node)
            except Exception:
                logging.exception(f"Failed to resolve stop position {item.node.id}")

    def _resolveStopAreaStopPosition(
        self, group: TransferGroup, nodeId: int, suppressLogging: bool
    ):
        if self.state.isIgnoredStopAreaStopPosition("node", nodeId):
            return
        node = self.state.getOsmNode(nodeId)
        if node is None:
            raise ZoningError(f"Stop position {nodeId} of stop area {group.osmId} is not resident")
        tags = node.tags
        suppressLogging = suppressLogging or ("node", nodeId) in self.state.waitingAreasWithoutMappedMode
        known = self.state.removeDeferred(DeferredKind.STOP_POSITION, "node", nodeId)
        if known is not None or (self.ferry.isActive() and osmTags.isFerryTerminal(tags)):
            self._resolveKnownStopPosition(node, tags, group, suppressLogging)
            return

        waitingArea = self.state.lookupWaitingArea("node", nodeId)
        if waitingArea is not None:
            # salvaged as a scheme A stop, attached with the other waiting areas
            if not group.hasWaitingArea(waitingArea):
                group.addWaitingArea(waitingArea)
            return

        location = self.state.network.osmNodeLocation(nodeId)
        if location is not None and self.state.hasConnectoidsAt(location):
            if not isPtv2StopPositionPtv1Stop(tags):
                logging.debug(f"Stop position {nodeId} is part of more than one stop area")
            return
        self._resolveUnknownStopPosition(node, tags, group, suppressLogging)

    def _resolveKnownStopPosition(
        self,
        node: Node,
        tags: Mapping[str, str],
        group: TransferGroup,
        suppressLogging: bool,
    ):
        modes = self._activatedModes(tags, identifyPtv1DefaultMode(tags))
        if self.ferry.appliesTo(tags, modes):
            waitingArea = self.ferry.processFerryStop(node, WaitingAreaType.PLATFORM)
            if waitingArea is not None and not group.hasWaitingArea(waitingArea):
                group.addWaitingArea(waitingArea)
            return

        matched = self.waitingAreas.findWaitingAreasForStopPosition(
            node, tags, modes, group, suppressLogging
        )
        suppressLogging = suppressLogging or self.settings.isStopPositionWaitingAreaOverwritten(node.id)
        if len(matched) == 0:
            if not suppressLogging:
                self.connectoids.logWarningIfNotNearBoundingBox(
                    osmErrors.osmErrorStopPositionWithoutWaitingArea(node.id),
                    self.state.projector.nodePoint(node),
                )
            self.state.profiler.incrementDiscard("stop position without waiting area")
            return
        for waitingArea in matched:
            accessModes = modes if len(modes) > 0 else self._stopPositionModes(node, waitingArea)
            self.connectoids.createConnectoidsAtOsmNode(
                waitingArea,
                node.id,
                accessModes,
                knownStopPosition=True,
                group=group,
                suppressLogging=suppressLogging,
            )

    def _resolveUnknownStopPosition(
        self,
        node: Node,
        tags: Mapping[str, str],
        group: TransferGroup,
        suppressLogging: bool,
    ):
        """Stop role member not tagged as stop position, attached to the most likely area of its group."""
        modes = self._activatedModes(tags, None)
        matched = self.waitingAreas.findWaitingAreasForStopPosition(
            node, tags, modes, group, suppressLogging
        )
        suppressLogging = suppressLogging or self.settings.isStopPositionWaitingAreaOverwritten(node.id)
        if len(matched) == 0:
            if not suppressLogging and len(self._activatedModes(tags, identifyPtv1DefaultMode(tags))) > 0:
                self.connectoids.logWarningIfNotNearBoundingBox(
                    osmErrors.osmErrorStopPositionWithoutWaitingArea(node.id),
                    self.state.projector.nodePoint(node),
                )
            self.state.profiler.incrementDiscard("stop position without waiting area")
            return
        if len(matched) > 1 and not suppressLogging:
            logging.error(f"More than one closest waiting area found for stop position {node.id} in stop area {group.osmId}")

        waitingArea = matched[0]
        accessModes = self._stopPositionModes(node, waitingArea)
        if len(accessModes) == 0:
            if not suppressLogging:
                logging.warning(osmErrors.osmErrorNoModes(node.type, node.id))
            self.state.profiler.incrementDiscard("stop position without mode")
            return
        success = self.connectoids.createConnectoidsAtOsmNode(
            waitingArea,
            node.id,
            accessModes,
            knownStopPosition=False,
            group=group,
            suppressLogging=suppressLogging,
        )
        if success:
            self.state.profiler.incrementSalvage("unknown stop position")
            if not suppressLogging:
                logging.info(osmErrors.osmErrorUnknownStopPositionSalvaged(group.osmId, node.id))

    def _resolveStandAloneStopPosition(self, node: Node):
        tags = node.tags
        modes = self._activatedModes(tags, identifyPtv1DefaultMode(tags))
        if len(modes) == 0:
            # no mode tagged, the areas nearby decide
            self._resolveStopPositionWithoutModes(node, tags)
            return
        if self.ferry.appliesTo(tags, modes):
            self.ferry.processFerryStop(node, ptv1WaitingAreaType(tags))
            return

        network = self.state.network
        suppressLogging = self.settings.isStopPositionWaitingAreaOverwritten(node.id)
        for mode in sorted(modes):
            if not network.hasOsmNode(node.id, mode):
                logging.debug(osmErrors.osmErrorStopPositionNotInLayer(node.id, mode))
                continue
            matched = self.waitingAreas.findWaitingAreasForStopPosition(
                node, tags, {mode}
            )
            if len(matched) == 0:
                if not suppressLogging:
                    self.connectoids.logWarningIfNotNearBoundingBox(
                        osmErrors.osmErrorStopPositionWithoutWaitingArea(node.id),
                        self.state.projector.nodePoint(node),
                    )
                self.state.profiler.incrementDiscard("stop position without waiting area")
                return
            for waitingArea in matched:
                self.connectoids.createConnectoidsAtOsmNode(
                    waitingArea, node.id, {mode}, knownStopPosition=True, suppressLogging=suppressLogging
                )

    def _resolveStopPositionWithoutModes(self, node: Node, tags: Mapping[str, str]):
        matched = self.waitingAreas.findWaitingAreasForStopPosition(node, tags, set())
        if len(matched) == 0:
            logging.debug(f"Stop position {node.id} without modes has no waiting area nearby, ignored")
            return
        for waitingArea in matched:
            self.connectoids.createConnectoidsAtOsmNode(
                waitingArea,
                node.id,
                self._stopPositionModes(node, waitingArea),
                knownStopPosition=True,
            )

    # (d) waiting areas without stop locations

    def resolveIncompleteWaitingAreas(self):
        incomplete = sorted(
            (area for area in self.state.waitingAreas.values() if not area.hasConnectoids),
            key=lambda area: (area.osmType != "node", area.osmId),
        )
        for waitingArea in incomplete:
            try:
                self._resolveIncompleteWaitingArea(waitingArea)
            except Exception:
                logging.exception(f"Failed to resolve waiting area {waitingArea.osmType} {waitingArea.osmId}")

    def _resolveIncompleteWaitingArea(self, waitingArea: WaitingArea):
        modes = waitingArea.modes & self.settings.activatedModes()
        if len(modes) == 0:
            logging.warning(osmErrors.osmErrorNoModes(waitingArea.osmType, waitingArea.osmId))
            self.state.profiler.incrementDiscard("waiting area without mode")
            return
        if waitingArea.osmType == "node" and self.state.network.hasOsmNode(waitingArea.osmId):
            logging.error(
                osmErrors.osmErrorOnNetworkWithoutConnectoids(waitingArea.osmType, waitingArea.osmId)
            )
            self.state.profiler.incrementDiscard("waiting area on network without stop location")
            return

        radius = self.settings.stopToWaitingAreaSearchRadius
        for mode in sorted(modes):
            nominatedWay = self.settings.nominatedWay(waitingArea.osmType, waitingArea.osmId)
            if nominatedWay is not None:
                link = self._nominatedLink(waitingArea, nominatedWay, mode)
                if link is None:
                    self.state.profiler.incrementDiscard("nominated way missing")
                    continue
            elif isWaterMode(mode):
                self.ferry.discardWaterPlatform(waitingArea)
                continue
            else:
                links = self.matcher.findAccessLinks(
                    waitingArea.geometry, mode, radius, 1, waitingArea.verticalLayer
                )
                if len(links) == 0:
                    self.connectoids.logWarningIfNotNearBoundingBox(
                        osmErrors.osmErrorNoAccessibleLinks(waitingArea.osmType, waitingArea.osmId, mode),
                        waitingArea.geometry,
                    )
                    self.state.profiler.incrementDiscard("no accessible link")
                    continue
                link = links[0]
            self.connectoids.createConnectoidsOnLink(waitingArea, link, mode, radius)
