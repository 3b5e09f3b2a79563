import logging
from typing import Mapping, Optional, Set

from starsep_utils import Node, Relation, RelationMember, Way

from configuration import ZoningSettings
from model.deferred import (
    DeferredFerryTerminal,
    DeferredKind,
    DeferredStation,
    DeferredStopPosition,
)
from model.geo import boundingBox
from model.zoning import TransferGroup, WaitingAreaType
from osm import osmErrors
from osm import tags as osmTags
from osm.classifier import PtScheme, PtValue, TagClassifier
from osm.modes import (
    BUS,
    FERRY,
    TRAIN,
    collectPublicTransportModes,
    identifyPtv1DefaultMode,
)
from osm.overpass import elementKey, membersWithRole
from osm.source import OsmDataSource
from zoning.connectoids import ConnectoidHelper
from zoning.ferry import FerryPolicy
from zoning.state import ZoningReaderState
from zoning.waitingAreas import WaitingAreaHelper


class ExtractionHandler:
    """Second pass: creates waiting areas and groups, defers what needs context.

    Platforms and poles become waiting areas straight away. Stations, stop
    positions and ferry terminals are deferred because the areas they attach to
    may appear later in the stream. Stop areas become transfer groups.
    """

    def __init__(
        self,
        state: ZoningReaderState,
        settings: ZoningSettings,
        source: OsmDataSource,
        classifier: TagClassifier,
        waitingAreas: WaitingAreaHelper,
        connectoids: ConnectoidHelper,
        ferry: FerryPolicy,
    ):
        self.state = state
        self.settings = settings
        self.source = source
        self.classifier = classifier
        self.waitingAreas = waitingAreas
        self.connectoids = connectoids
        self.ferry = ferry

    # nodes

    def handleNode(self, node: Node):
        try:
            self._extractNode(node)
        except Exception:
            logging.exception(f"Failed to process node {node.id}")

    def _extractNode(self, node: Node):
        if self.source.isRetained(node.id):
            self.state.registerOsmNode(node)
        scheme = self.classifier.classify(node.tags, node.type, node.id)
        if scheme == PtScheme.NONE:
            return
        self.state.registerOsmNode(node)
        if not self.state.isWithinBoundingArea(self.state.projector.nodePoint(node)):
            logging.debug(f"Node {node.id} outside bounding area, skipped")
            return
        if scheme == PtScheme.PTV2:
            self._extractPtv2Node(node, node.tags)
        else:
            self._extractPtv1Node(node, node.tags)

    def _extractPtv2Node(self, node: Node, tags: Mapping[str, str]):
        value = self.classifier.ptValue(tags, PtScheme.PTV2)
        self.state.profiler.incrementTag(PtScheme.PTV2, value.value)
        if value == PtValue.PLATFORM:
            self._extractPtv2PlatformNode(node, tags)
        elif value == PtValue.STOP_POSITION:
            self._extractPtv2StopPosition(node, tags)
        elif value == PtValue.STATION:
            self.state.enqueueDeferred(DeferredStation(node, PtScheme.PTV2))
        elif value == PtValue.STOP_AREA:
            logging.info(osmErrors.osmErrorStopAreaOnNode(node.id))

    def _extractPtv2PlatformNode(self, node: Node, tags: Mapping[str, str]):
        network = self.state.network
        if self.ferry.isActive() and osmTags.isFerryTerminal(tags):
            if (
                network.hasOsmNode(node.id, FERRY)
                or self.settings.connectDanglingFerryStopToFerryRoute
            ):
                # a ferry platform is its own stop position
                self.state.enqueueDeferred(DeferredStopPosition(node))
                return
        defaultMode = identifyPtv1DefaultMode(tags)
        if network.hasOsmNode(node.id):
            self.waitingAreas.createWaitingAreaWithConnectoidsAtNode(
                node, tags, defaultMode, WaitingAreaType.PLATFORM
            )
        else:
            self.waitingAreas.createWaitingArea(
                node, tags, WaitingAreaType.PLATFORM, defaultMode
            )

    def _extractPtv2StopPosition(self, node: Node, tags: Mapping[str, str]):
        defaultMode = identifyPtv1DefaultMode(tags)
        modes = collectPublicTransportModes(tags, defaultMode)
        activatedModes = modes & self.settings.activatedModes()
        discarded = False
        if len(modes) > 0 and len(activatedModes) == 0:
            logging.debug(f"Stop position {node.id} only serves deactivated modes {sorted(modes)}")
            discarded = True
        elif defaultMode is None or self.ferry.appliesTo(tags, activatedModes):
            # mode, if any, comes from the areas or links it serves
            self.state.enqueueDeferred(DeferredStopPosition(node))
        else:
            discarded = self._extractPtv2Ptv1StopPosition(node, tags, activatedModes)
        if discarded:
            self.state.ignoreStopAreaStopPosition(node.type, node.id)

    def _extractPtv2Ptv1StopPosition(
        self, node: Node, tags: Mapping[str, str], modes: Set[str]
    ) -> bool:
        """Uses the scheme A tags of a stop position to judge it, True when discarded."""
        if self.state.network.hasOsmNode(node.id):
            self.state.enqueueDeferred(DeferredStopPosition(node))
            return False
        if osmTags.isTramStop(tags):
            logging.warning(osmErrors.osmErrorTramStopOffNetwork(node.id))
            self.state.profiler.incrementDiscard("tram stop off track")
            return True

        ptv1Value = self.classifier.conflictingPtv1Value(tags)
        radius = self.settings.stopToWaitingAreaSearchRadius
        if ptv1Value in [PtValue.HALT, PtValue.STATION]:
            radius = self.settings.stationToParallelTracksSearchRadius
        location = self.state.projector.nodePoint(node)
        nearbyLinks = [
            link
            for link in self.state.spatialQueryLinks(boundingBox(location, radius))
            if any(link.allowsMode(mode) for mode in modes)
        ]
        if len(nearbyLinks) == 0:
            logging.info(osmErrors.osmErrorStopPositionOnDeactivatedInfrastructure(node.id))
            self.state.profiler.incrementDiscard("stop position without infrastructure")
            return True

        if ptv1Value not in [PtValue.BUS_STOP, PtValue.HALT, PtValue.STATION]:
            logging.warning(osmErrors.osmErrorStopPositionWithoutPtv1Context(node.id))
            self.state.profiler.incrementDiscard("stop position off network")
            return True
        logging.info(osmErrors.osmErrorStopPositionSalvagedAsPtv1(node.id, ptv1Value.value))
        self.state.profiler.incrementSalvage(f"stop position as {ptv1Value.value}")
        self._extractPtv1Node(node, tags)
        return False

    def _extractPtv1Node(self, node: Node, tags: Mapping[str, str]):
        value = self.classifier.ptValue(tags, PtScheme.PTV1)
        self.state.profiler.incrementTag(PtScheme.PTV1, value.value)
        network = self.state.network
        onNetwork = network.hasOsmNode(node.id)

        if value == PtValue.BUS_STOP:
            if onNetwork:
                self.state.enqueueDeferred(DeferredStopPosition(node))
            else:
                self.waitingAreas.createWaitingArea(node, tags, WaitingAreaType.POLE, BUS)
        elif value == PtValue.PLATFORM:
            defaultMode = BUS if tags.get(osmTags.HIGHWAY) == osmTags.PLATFORM else TRAIN
            if onNetwork:
                self.waitingAreas.createWaitingAreaWithConnectoidsAtNode(
                    node, tags, defaultMode, WaitingAreaType.PLATFORM
                )
            else:
                self.waitingAreas.createWaitingArea(
                    node, tags, WaitingAreaType.PLATFORM, defaultMode
                )
        elif value == PtValue.TRAM_STOP:
            if not self.settings.railActive:
                return
            if onNetwork:
                self.state.enqueueDeferred(DeferredStopPosition(node))
            else:
                logging.info(osmErrors.osmErrorTramStopOffNetwork(node.id))
                self.state.profiler.incrementDiscard("tram stop off track")
        elif value in [PtValue.HALT, PtValue.STOP]:
            if not self.settings.railActive:
                return
            if onNetwork:
                self.state.enqueueDeferred(DeferredStopPosition(node))
            else:
                self.waitingAreas.createWaitingArea(
                    node, tags, WaitingAreaType.SMALL_STATION, TRAIN
                )
        elif value == PtValue.STATION:
            if self.settings.railActive:
                self.state.enqueueDeferred(DeferredStation(node, PtScheme.PTV1))
        elif value == PtValue.FERRY_TERMINAL:
            if not self.ferry.isActive():
                return
            if (
                not network.hasOsmNode(node.id, FERRY)
                and not self.settings.connectDanglingFerryStopToFerryRoute
            ):
                logging.warning(osmErrors.osmErrorFerryNotOnNetwork(node.type, node.id))
                self.state.profiler.incrementDiscard("ferry stop not on network")
            else:
                self.state.enqueueDeferred(DeferredFerryTerminal(node))
        # platform edges and subway entrances are only counted

    # ways

    def handleWay(self, way: Way):
        try:
            self._extractWay(way)
        except Exception:
            logging.exception(f"Failed to process way {way.id}")

    def _extractWay(self, way: Way):
        retained = self.state.isRetainedWay(way.id)
        if retained:
            self.state.registerRetainedWay(way)
        scheme = self.classifier.classify(way.tags, way.type, way.id)
        if self.state.hasBoundingArea() and (scheme != PtScheme.NONE or retained):
            geometry = self.waitingAreas.geometryOf(way)
            if geometry is None or not self.state.isWithinBoundingArea(geometry):
                logging.debug(f"Way {way.id} outside bounding area, skipped")
                if retained:
                    self.state.unmarkRetainedWay(way.id)
                return
        if scheme == PtScheme.PTV2:
            self._extractPtv2Way(way, way.tags)
        elif scheme == PtScheme.PTV1:
            self._extractPtv1Way(way, way.tags)

    def _extractPtv2Way(self, way: Way, tags: Mapping[str, str]):
        value = self.classifier.ptValue(tags, PtScheme.PTV2)
        self.state.profiler.incrementTag(PtScheme.PTV2, value.value)
        if value == PtValue.PLATFORM:
            self.waitingAreas.createWaitingArea(
                way, tags, WaitingAreaType.PLATFORM, identifyPtv1DefaultMode(tags)
            )
        elif value == PtValue.STOP_POSITION:
            logging.info(osmErrors.osmErrorStopPositionOnWay(way.id))
        elif value == PtValue.STOP_AREA:
            logging.info(osmErrors.osmErrorStopAreaOnWay(way.id))
        elif value == PtValue.STATION:
            self.state.enqueueDeferred(DeferredStation(way, PtScheme.PTV2))

    def _extractPtv1Way(self, way: Way, tags: Mapping[str, str]):
        value = self.classifier.ptValue(tags, PtScheme.PTV1)
        self.state.profiler.incrementTag(PtScheme.PTV1, value.value)
        if value == PtValue.PLATFORM:
            self.waitingAreas.createWaitingArea(
                way, tags, WaitingAreaType.PLATFORM, identifyPtv1DefaultMode(tags)
            )
        elif value == PtValue.STATION:
            if self.settings.railActive:
                self.state.enqueueDeferred(DeferredStation(way, PtScheme.PTV1))
        elif value == PtValue.FERRY_TERMINAL:
            if self.ferry.isActive():
                logging.warning(osmErrors.osmErrorFerryTerminalWay(way.id))
                self.state.profiler.incrementDiscard("ferry terminal way")
        elif value != PtValue.PLATFORM_EDGE:
            logging.debug(f"Way {way.id} tagged {value.value} is not supported, ignored")

    # relations

    def handleRelation(self, relation: Relation):
        try:
            self._extractRelation(relation)
        except Exception:
            logging.exception(f"Failed to process relation {relation.id}")

    def _extractRelation(self, relation: Relation):
        if not self.settings.parserActive or self.source.isExcluded(
            relation.type, relation.id
        ):
            return
        tags = relation.tags
        if osmTags.isStopAreaRelation(tags):
            if self.settings.ptv2Active:
                self._extractStopArea(relation)
        elif osmTags.isPlatformEquivalentRelation(tags):
            if self.settings.ptv2Active:
                self._extractPlatformRelation(relation)
        elif tags.get(osmTags.TYPE) == osmTags.PUBLIC_TRANSPORT:
            logging.debug(
                f"Unsupported public_transport={tags.get(osmTags.PUBLIC_TRANSPORT)} relation {relation.id}"
            )

    def _extractPlatformRelation(self, relation: Relation):
        self.state.profiler.incrementTag(PtScheme.PTV2, PtValue.PLATFORM.value)
        outer = next(
            (
                member
                for member in membersWithRole(relation, osmTags.OUTER_ROLE)
                if member.type == "way"
            ),
            None,
        )
        if outer is None or self.source.isExcluded(outer.type, outer.id):
            logging.warning(osmErrors.osmErrorMultipolygonWithoutOuter(relation.id))
            return
        way = self.state.getRetainedWay(outer.id)
        if way is None:
            if not self.state.hasBoundingArea():
                logging.warning(osmErrors.osmErrorMultipolygonWithoutOuter(relation.id))
            return
        waitingArea = self.waitingAreas.createWaitingArea(
            way,
            relation.tags,
            WaitingAreaType.PLATFORM,
            identifyPtv1DefaultMode(relation.tags),
        )
        if waitingArea is not None:
            self.state.aliasWaitingArea(elementKey(relation), waitingArea)

    def _extractStopArea(self, relation: Relation):
        suppressLogging = relation.id in self.settings.suppressedStopAreaLogging
        group = self.state.lookupTransferGroup(relation.id)
        if group is None:
            group = self.state.registerTransferGroup(TransferGroup(osmId=relation.id))
        WaitingAreaHelper.updateGroupName(group, relation.tags)
        self.state.profiler.incrementTag(PtScheme.PTV2, PtValue.STOP_AREA.value)
        for member in relation.members:
            if self.source.isExcluded(member.type, member.id):
                continue
            if member.role == osmTags.PLATFORM_ROLE:
                self._registerPlatformOnGroup(group, member, suppressLogging)
            elif member.role == osmTags.STOP_ROLE:
                self._extractStopMember(group, member, suppressLogging)
            elif member.role == "":
                self._extractMemberWithoutRole(group, member, suppressLogging)

    def _reportMissingMember(
        self,
        group: TransferGroup,
        member: RelationMember,
        suppressLogging: bool,
        message: Optional[str] = None,
    ):
        # expected when the data is cut by a bounding area
        if suppressLogging or self.state.hasBoundingArea():
            return
        if self.state.reportMissingMember(member.type, member.id):
            logging.warning(
                message or osmErrors.osmErrorMissingMember(group.osmId, member.type, member.id)
            )

    def _registerPlatformOnGroup(
        self, group: TransferGroup, member: RelationMember, suppressLogging: bool
    ):
        waitingArea = self.state.lookupWaitingArea(member.type, member.id)
        if waitingArea is not None:
            group.addWaitingArea(waitingArea)
            return
        if member.type == "relation":
            # platform relations follow in the stream
            self.state.addPendingPlatformMembership(group.osmId, (member.type, member.id))
            return
        node = self.state.getOsmNode(member.id) if member.type == "node" else None
        if node is not None:
            modes = collectPublicTransportModes(
                node.tags, identifyPtv1DefaultMode(node.tags)
            )
            if len(modes & self.settings.activatedModes()) == 0:
                return
        self._reportMissingMember(group, member, suppressLogging)

    def _extractStopMember(
        self, group: TransferGroup, member: RelationMember, suppressLogging: bool
    ):
        if member.type != "node":
            if not self.source.contains(member):
                self._reportMissingMember(group, member, suppressLogging)
                return
            if not suppressLogging:
                logging.warning(
                    osmErrors.osmErrorStopPositionNotNode(group.osmId, member.type, member.id)
                )
            if self._salvageStopRole(group, member, suppressLogging):
                self.state.ignoreStopAreaStopPosition(member.type, member.id)
            return
        node = self.state.getOsmNode(member.id)
        if node is None:
            self._reportMissingMember(group, member, suppressLogging)
            return
        if not osmTags.isStopPosition(node.tags) and self._salvageStopRole(
            group, member, suppressLogging
        ):
            self.state.ignoreStopAreaStopPosition(member.type, member.id)
            return
        self.state.addGroupStopMember(group.osmId, node.id)

    def _salvageStopRole(
        self, group: TransferGroup, member: RelationMember, suppressLogging: bool
    ) -> bool:
        """Reinterprets a stop role member that is no stop position, True when it must be ignored as stop."""
        node = self.state.getOsmNode(member.id) if member.type == "node" else None
        if node is not None and self.ferry.isActive() and self.ferry.keepsStopRole(node.tags):
            return False

        deferredStation = self.state.lookupDeferred(
            DeferredKind.STATION, member.type, member.id
        )
        if deferredStation is not None:
            if not suppressLogging:
                logging.info(osmErrors.osmErrorStopRoleStation(group.osmId, member.id))
            self.state.profiler.incrementSalvage("stop role station")
            WaitingAreaHelper.updateGroupName(group, deferredStation.element.tags)
            return True

        waitingArea = self.state.lookupWaitingArea(member.type, member.id)
        if waitingArea is not None:
            if not suppressLogging:
                logging.info(osmErrors.osmErrorStopRolePlatform(group.osmId, member.id))
            self.state.profiler.incrementSalvage("stop role platform")
            group.addWaitingArea(waitingArea)
            return True

        if not suppressLogging:
            logging.warning(osmErrors.osmErrorStopRoleUnidentified(group.osmId, member.id))
        self.state.profiler.incrementDiscard("unidentified stop role")
        return True

    def _extractMemberWithoutRole(
        self, group: TransferGroup, member: RelationMember, suppressLogging: bool
    ):
        if member.type == "node":
            node = self.state.getOsmNode(member.id)
            if node is None:
                self._reportMissingMember(group, member, suppressLogging)
                return
            self._extractNodeWithoutRole(group, node)
        elif member.type == "way":
            self._extractWayWithoutRole(group, member, suppressLogging)
        else:
            logging.debug(
                f"Stop area {group.osmId} member {member.type} {member.id} without role ignored"
            )

    def _extractNodeWithoutRole(self, group: TransferGroup, node: Node):
        tags = node.tags
        scheme = self.classifier.classify(tags, node.type, node.id)
        value = self.classifier.ptValue(tags, scheme)
        if value == PtValue.STATION:
            WaitingAreaHelper.updateGroupName(group, tags)
        elif value in [PtValue.PLATFORM, PtValue.BUS_STOP, PtValue.TRAM_STOP]:
            waitingArea = self.state.lookupWaitingArea(node.type, node.id)
            if waitingArea is not None:
                group.addWaitingArea(waitingArea)
        elif value == PtValue.HALT and self.settings.railActive:
            WaitingAreaHelper.updateGroupName(group, tags)
        # ferry terminals without role may be any member of the group, left alone

    def _extractWayWithoutRole(
        self, group: TransferGroup, member: RelationMember, suppressLogging: bool
    ):
        deferredStation = self.state.removeDeferred(
            DeferredKind.STATION, member.type, member.id
        )
        if deferredStation is not None:
            stationTags = deferredStation.element.tags
            WaitingAreaHelper.updateGroupName(group, stationTags)
            for waitingArea in group.waitingAreas:
                WaitingAreaHelper.updateStationName(waitingArea, stationTags)
            return
        waitingArea = self.state.lookupWaitingArea(member.type, member.id)
        if waitingArea is not None:
            group.addWaitingArea(waitingArea)
            return
        message = None
        if self.source.contains(member):
            message = osmErrors.osmErrorUnavailableStopAreaWay(group.osmId, member.id)
        self._reportMissingMember(group, member, suppressLogging, message)

    def complete(self):
        logging.info(
            f"📍 {len(self.state.waitingAreas)} waiting areas, {len(self.state.groups)} stop areas, "
            + ", ".join(
                f"{len(self.state.deferred[kind])} deferred {kind.value}"
                for kind in [
                    DeferredKind.STATION,
                    DeferredKind.FERRY_TERMINAL,
                    DeferredKind.STOP_POSITION,
                ]
            )
        )
