import logging
from typing import Iterable, Mapping, Optional

from starsep_utils import Element, Node

from configuration import ZoningSettings
from model.zoning import WaitingArea, WaitingAreaType
from osm import osmErrors
from osm import tags as osmTags
from osm.modes import FERRY, collectPublicTransportModes, isWaterMode
from zoning.connectoids import ConnectoidHelper
from zoning.state import ZoningReaderState
from zoning.waitingAreas import WaitingAreaHelper


class FerryPolicy:
    """How ferry stops become waiting areas.

    A ferry terminal or ferry stop position is its own waiting area and stop
    position. Off the ferry network it is connected to the closest ferry route
    when allowed, otherwise it is dropped. Water platforms without a stop
    position and stand-alone water stations are dropped.
    """

    def __init__(
        self,
        state: ZoningReaderState,
        settings: ZoningSettings,
        waitingAreas: WaitingAreaHelper,
        connectoids: ConnectoidHelper,
    ):
        self.state = state
        self.settings = settings
        self.waitingAreas = waitingAreas
        self.connectoids = connectoids

    def isActive(self) -> bool:
        return self.settings.waterwayActive

    def appliesTo(self, tags: Mapping[str, str], modes: Iterable[str]) -> bool:
        if not self.isActive():
            return False
        return osmTags.isFerryTerminal(tags) or any(isWaterMode(mode) for mode in modes)

    def keepsStopRole(self, tags: Mapping[str, str]) -> bool:
        """A ferry terminal listed as stop in a stop area is its own stop position."""
        return osmTags.isFerryTerminal(tags)

    def processFerryStop(
        self, node: Node, waitingAreaType: WaitingAreaType
    ) -> Optional[WaitingArea]:
        tags = node.tags
        network = self.state.network
        onNetwork = network.hasOsmNode(node.id, FERRY)
        if onNetwork and self.settings.isStopPositionWaitingAreaOverwritten(node.id):
            osmType, osmId = self.settings.stopPositionWaitingAreas[node.id]
            waitingArea = self.state.lookupWaitingArea(osmType, osmId)
            if waitingArea is not None:
                logging.debug(f"Ferry stop {node.id} mapped to chosen waiting area {osmType} {osmId}")
                WaitingAreaHelper.updateStationName(waitingArea, tags)
                self.connectoids.createConnectoidsAtOsmNode(
                    waitingArea, node.id, {FERRY}, knownStopPosition=True
                )
                return waitingArea

        modes = {
            mode
            for mode in collectPublicTransportModes(tags, FERRY)
            if isWaterMode(mode)
        } & self.settings.activatedModes()
        if len(modes) == 0:
            logging.warning(osmErrors.osmErrorNoModes(node.type, node.id))
            self.state.profiler.incrementDiscard("ferry stop without mode")
            return None

        if not onNetwork and self.settings.connectDanglingFerryStopToFerryRoute:
            onNetwork = self.connectoids.connectDanglingFerryStop(node, FERRY)
            if not onNetwork:
                self.state.profiler.incrementDiscard("dangling ferry stop")
                return None

        if not onNetwork:
            logging.error(osmErrors.osmErrorFerryNotOnNetwork(node.type, node.id))
            self.state.profiler.incrementDiscard("ferry stop not on network")
            return None
        return self.waitingAreas.createWaitingAreaWithConnectoidsAtNode(
            node, tags, FERRY, waitingAreaType, modes
        )

    def discardWaterPlatform(self, waitingArea: WaitingArea):
        logging.warning(osmErrors.osmErrorWaterPlatform(waitingArea.osmType, waitingArea.osmId))
        self.state.profiler.incrementDiscard("water platform without stop position")

    def discardWaterStation(self, element: Element):
        logging.warning(osmErrors.osmErrorWaterStation(element.type, element.id))
        self.state.profiler.incrementDiscard("water station")
