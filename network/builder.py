import logging
from typing import FrozenSet, Optional, Set, Tuple

from shapely.geometry import LineString
from starsep_utils import logDuration, Way

from configuration import (
    DEFAULT_CAPACITY_PER_LANE,
    DEFAULT_LANES_PER_DIRECTION,
    ZoningSettings,
)
from model.geo import Projector
from model.network import Network, NetworkLink
from osm import modes as osmModes
from osm import tags as osmTags
from osm.source import OsmDataSource

BUS_ROAD_CLASSES = {
    "motorway",
    "trunk",
    "primary",
    "secondary",
    "tertiary",
    "unclassified",
    "residential",
    "living_street",
    "service",
    "busway",
    "bus_guideway",
}
RAILWAY_MODES = {
    "rail": {osmModes.TRAIN},
    "narrow_gauge": {osmModes.TRAIN},
    "light_rail": {osmModes.LIGHT_RAIL},
    "subway": {osmModes.SUBWAY},
    "tram": {osmModes.TRAM},
    "monorail": {osmModes.MONORAIL},
    "funicular": {osmModes.FUNICULAR},
}
ACCESS_GRANTED = {"yes", "designated"}


def _roadClass(tags) -> Optional[str]:
    highway = tags.get(osmTags.HIGHWAY)
    if highway is None:
        return None
    roadClass = highway.removesuffix("_link")
    if roadClass not in BUS_ROAD_CLASSES:
        return None
    return roadClass


def _roadModes(tags) -> Set[str]:
    if (
        tags.get("access") == "no"
        and tags.get("bus") not in ACCESS_GRANTED
        and tags.get("psv") not in ACCESS_GRANTED
    ):
        return set()
    modes = {osmModes.BUS, osmModes.SHARE_TAXI, osmModes.MINIBUS}
    if tags.get("trolley_wire") == osmTags.YES:
        modes.add(osmModes.TROLLEYBUS)
    if tags.get("bus") == osmTags.NO:
        modes.discard(osmModes.BUS)
    return modes


def _directions(tags, roadBased: bool) -> Tuple[bool, bool]:
    oneway = tags.get("oneway")
    if roadBased and "no" in [tags.get("oneway:bus"), tags.get("oneway:psv")]:
        return True, True
    if oneway == "-1":
        return False, True
    if oneway == "yes" or (roadBased and tags.get("junction") == "roundabout"):
        return True, False
    return True, True


def _lanes(tags, forward: bool, backward: bool) -> Tuple[int, int]:
    try:
        lanes = int(tags["lanes"])
    except (KeyError, ValueError):
        return DEFAULT_LANES_PER_DIRECTION, DEFAULT_LANES_PER_DIRECTION
    if forward and backward:
        perDirection = max(lanes // 2, 1)
        return perDirection, perDirection
    return max(lanes, 1), max(lanes, 1)


def classifyWay(way: Way) -> Optional[Tuple[Set[str], float, bool]]:
    """Modes, capacity per lane and road flag of a network way, None if not a network way."""
    tags = way.tags
    roadClass = _roadClass(tags)
    if roadClass is not None:
        return _roadModes(tags), DEFAULT_CAPACITY_PER_LANE[roadClass], True
    if tags.get(osmTags.RAILWAY) in RAILWAY_MODES:
        return (
            set(RAILWAY_MODES[tags[osmTags.RAILWAY]]),
            DEFAULT_CAPACITY_PER_LANE["railway"],
            False,
        )
    if tags.get(osmTags.ROUTE) == osmTags.FERRY:
        return {osmModes.FERRY}, DEFAULT_CAPACITY_PER_LANE["ferry"], False
    return None


@logDuration
def buildNetwork(
    source: OsmDataSource, projector: Projector, settings: ZoningSettings
) -> Network:
    logging.info("🛤️ Building network")
    network = Network()
    activatedModes = settings.activatedModes()
    nodes = source.overpassResult.nodes
    for way in source.ways():
        classification = classifyWay(way)
        if classification is None:
            continue
        modes, capacityPerLane, roadBased = classification
        modes = modes & activatedModes
        if len(modes) == 0 or len(way.nodes) < 2:
            continue
        if any(nodeId not in nodes for nodeId in way.nodes):
            logging.debug(f"Network way {way.id} has nodes outside the data, skipped")
            continue
        forward, backward = _directions(way.tags, roadBased)
        lanesForward, lanesBackward = _lanes(way.tags, forward, backward)
        forwardModes: FrozenSet[str] = frozenset(modes) if forward else frozenset()
        backwardModes: FrozenSet[str] = frozenset(modes) if backward else frozenset()
        network.addLink(
            NetworkLink(
                id=way.id,
                osmWayId=way.id,
                osmNodeIds=list(way.nodes),
                geometry=LineString(
                    projector.coordinates(nodes[nodeId] for nodeId in way.nodes)
                ),
                forwardModes=forwardModes,
                backwardModes=backwardModes,
                capacityPerLane=capacityPerLane,
                lanesForward=lanesForward,
                lanesBackward=lanesBackward,
                verticalLayer=osmTags.verticalLayer(way.tags) or 0,
                tags=dict(way.tags),
            )
        )
    logging.info(f"🛤️ Network with {len(network.links)} links")
    return network
