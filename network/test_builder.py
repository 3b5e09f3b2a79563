from starsep_utils import Way
from starsep_utils.overpass import KeyDict

from configuration import ZoningSettings
from network.builder import classifyWay


def _way(**tags) -> Way:
    return Way(id=1, type="way", tags=KeyDict(tags), nodes=[1, 2])


def test_classifyWay():
    modes, capacity, roadBased = classifyWay(_way(highway="primary_link"))
    assert "bus" in modes and roadBased
    assert capacity == 1800.0

    modes, _, roadBased = classifyWay(_way(railway="tram"))
    assert modes == {"tram"} and not roadBased

    modes, _, _ = classifyWay(_way(route="ferry"))
    assert modes == {"ferry"}

    modes, _, _ = classifyWay(_way(highway="service", access="no", psv="yes"))
    assert "bus" in modes
    modes, _, _ = classifyWay(_way(highway="service", access="no"))
    assert modes == set()
    modes, _, _ = classifyWay(_way(highway="residential", trolley_wire="yes"))
    assert "trolleybus" in modes

    assert classifyWay(_way(highway="footway")) is None
    assert classifyWay(_way(building="yes")) is None


def test_buildNetwork(osmData, settings):
    osmData.road(10, [(1, 0, 0), (2, 100, 0)], dict(highway="primary", oneway="-1"))
    osmData.road(11, [(3, 0, 10), (4, 100, 10)], dict(highway="secondary", oneway="yes", **{"oneway:bus": "no"}))
    osmData.road(12, [(5, 0, 20), (6, 100, 20)], dict(railway="rail", layer="-1"))
    osmData.road(13, [(7, 0, 30), (8, 100, 30)], dict(highway="footway"))
    network = osmData.reader(settings).network

    assert sorted(network.links) == [10, 11, 12]
    assert network.links[10].forwardModes == frozenset()
    assert "bus" in network.links[10].backwardModes
    assert network.links[11].allowsModeInDirection("bus", False)
    assert network.links[12].verticalLayer == -1
    assert network.links[12].length > 99
    assert network.hasOsmNode(5, "train")
    assert not network.hasOsmNode(5, "bus")
    assert not network.hasOsmNode(7)


def test_buildNetworkSkipsDeactivatedModes(osmData):
    osmData.road(10, [(1, 0, 0), (2, 100, 0)])
    osmData.road(12, [(5, 0, 20), (6, 100, 20)], dict(railway="rail"))
    network = osmData.reader(ZoningSettings(showProgress=False, roadActive=False)).network
    assert sorted(network.links) == [12]
