import logging

from starsep_utils import logDuration

from configuration import ZoningSettings
from model.geo import Projector
from model.network import Network
from model.zoning import ZoningResult
from osm.classifier import TagClassifier
from osm.source import OsmDataSource
from zoning.connectoids import ConnectoidHelper
from zoning.discovery import DiscoveryHandler
from zoning.extraction import ExtractionHandler
from zoning.ferry import FerryPolicy
from zoning.linkMatcher import SpatialLinkMatcher
from zoning.resolution import ResolutionHandler
from zoning.state import ZoningReaderState
from zoning.waitingAreas import WaitingAreaHelper


class ZoningReader:
    """Runs discovery, extraction and resolution over one data source."""

    def __init__(
        self,
        source: OsmDataSource,
        network: Network,
        settings: ZoningSettings,
        projector: Projector,
    ):
        self.source = source
        self.network = network
        self.settings = settings
        self.projector = projector
        self.classifier = TagClassifier(settings)
        self.state = ZoningReaderState(network, settings, projector)
        self.matcher = SpatialLinkMatcher(self.state, settings)
        self.connectoids = ConnectoidHelper(self.state, settings, self.matcher)
        self.waitingAreas = WaitingAreaHelper(
            self.state, settings, self.matcher, self.connectoids
        )
        self.ferry = FerryPolicy(self.state, settings, self.waitingAreas, self.connectoids)

    def reset(self):
        self.state.reset()
        self.source.reset()

    def read(self) -> ZoningResult:
        if not self.settings.parserActive:
            logging.info("🚏 Public transport parser deactivated, empty zoning")
            return self._result()

        self.discover()
        self.extract()
        self.resolve()

        result = self._result()
        incomplete = result.incompleteWaitingAreas()
        if len(incomplete) > 0:
            logging.info(f"🚏 {len(incomplete)} waiting areas left without stop location")
        self.state.profiler.logSummary()
        return result

    def discover(self):
        DiscoveryHandler(self.state, self.settings, self.source, self.classifier).run()

    def extract(self):
        logging.info("📍 Pass 2: extracting waiting areas and stop areas")
        with logDuration("Pass 2 extraction"):
            self.source.stream(
                ExtractionHandler(
                    self.state,
                    self.settings,
                    self.source,
                    self.classifier,
                    self.waitingAreas,
                    self.connectoids,
                    self.ferry,
                ),
                "📍",
            )

    def resolve(self):
        ResolutionHandler(
            self.state,
            self.settings,
            self.matcher,
            self.waitingAreas,
            self.connectoids,
            self.ferry,
        ).run()

    def _result(self) -> ZoningResult:
        return ZoningResult(
            waitingAreas=sorted(self.state.waitingAreas.values(), key=lambda area: area.id),
            groups=[self.state.groups[groupId] for groupId in sorted(self.state.groups)],
            connectoids=list(self.state.connectoids),
            statistics=self.state.profiler.summary(),
        )
