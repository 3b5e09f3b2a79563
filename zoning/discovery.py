import logging

from starsep_utils import logDuration, Relation, Way
from tqdm import tqdm

from configuration import ZoningSettings
from osm import tags as osmTags
from osm.classifier import PtScheme, TagClassifier
from osm.overpass import membersWithRole
from osm.source import OsmDataSource
from zoning.state import ZoningReaderState


class DiscoveryHandler:
    """First pass: decides which ways and nodes must stay resident.

    Relations are scanned before ways because a platform multipolygon's outer
    way usually carries no tags of its own.
    """

    def __init__(
        self,
        state: ZoningReaderState,
        settings: ZoningSettings,
        source: OsmDataSource,
        classifier: TagClassifier,
    ):
        self.state = state
        self.settings = settings
        self.source = source
        self.classifier = classifier

    def handleRelation(self, relation: Relation):
        if self.source.isExcluded(relation.type, relation.id):
            return
        if osmTags.isPlatformEquivalentRelation(relation.tags):
            for member in membersWithRole(relation, osmTags.OUTER_ROLE):
                if member.type != "way" or self.source.isExcluded(member.type, member.id):
                    continue
                self.state.markRetainedWay(member.id)
        elif osmTags.isStopAreaRelation(relation.tags):
            for member in membersWithRole(relation, "", osmTags.STOP_ROLE):
                if member.type == "node":
                    self.source.retainNode(member.id)

    def handleWay(self, way: Way):
        eligible = self.classifier.classify(way.tags, way.type, way.id) != PtScheme.NONE
        if eligible or self.state.isRetainedWay(way.id):
            for nodeId in way.nodes:
                self.source.retainNode(nodeId)

    def run(self):
        logging.info("🔍 Pass 1: discovering retained ways and nodes")
        disable = not self.settings.showProgress
        with logDuration("Pass 1 discovery"):
            for relation in tqdm(
                self.source.relations(), desc="🔍 relations", disable=disable
            ):
                self.handleRelation(relation)
            for way in tqdm(self.source.ways(), desc="🔍 ways", disable=disable):
                self.handleWay(way)
        logging.info(
            f"🔍 {len(self.state.retainedWayIds())} retained ways, "
            f"{len(self.source.retainedNodeIds)} retained nodes"
        )
