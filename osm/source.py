from typing import Iterator, Set, Tuple

from starsep_utils import Node, OverpassResult, Relation, RelationMember, Way
from tqdm import tqdm

from configuration import ZoningSettings
from osm.overpass import resolveMember


class OsmDataSource:
    """Streams an Overpass result in the fixed order nodes, ways, relations.

    Nodes are kept resident for later passes only when retained beforehand
    through ``retainNode``.
    """

    def __init__(self, overpassResult: OverpassResult, settings: ZoningSettings):
        self.overpassResult = overpassResult
        self.settings = settings
        self.retainedNodeIds: Set[int] = set()

    def nodes(self) -> Iterator[Node]:
        for nodeId in sorted(self.overpassResult.nodes):
            yield self.overpassResult.nodes[nodeId]

    def ways(self) -> Iterator[Way]:
        for wayId in sorted(self.overpassResult.ways):
            yield self.overpassResult.ways[wayId]

    def relations(self) -> Iterator[Relation]:
        for relationId in sorted(self.overpassResult.relations):
            yield self.overpassResult.relations[relationId]

    def stream(self, handler, description: str = ""):
        disable = not self.settings.showProgress
        for node in tqdm(self.nodes(), desc=f"{description} nodes", disable=disable):
            handler.handleNode(node)
        for way in tqdm(self.ways(), desc=f"{description} ways", disable=disable):
            handler.handleWay(way)
        for relation in tqdm(
            self.relations(), desc=f"{description} relations", disable=disable
        ):
            handler.handleRelation(relation)
        handler.complete()

    def contains(self, member: RelationMember) -> bool:
        return resolveMember(self.overpassResult, member) is not None

    def retainNode(self, nodeId: int):
        self.retainedNodeIds.add(nodeId)

    def isRetained(self, nodeId: int) -> bool:
        return nodeId in self.retainedNodeIds

    def isExcluded(self, elementType: str, elementId: int) -> bool:
        return self.settings.isExcluded(elementType, elementId)

    def bounds(self) -> Tuple[float, float, float, float]:
        lats = [node.lat for node in self.overpassResult.nodes.values()]
        lons = [node.lon for node in self.overpassResult.nodes.values()]
        if len(lats) == 0:
            raise ValueError("Overpass result contains no nodes")
        return min(lats), min(lons), max(lats), max(lons)

    def reset(self):
        self.retainedNodeIds = set()
