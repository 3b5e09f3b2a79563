from typing import List, Tuple

from shapely.geometry import LineString, Point

from configuration import ZoningSettings
from model.geo import Projector
from model.network import Network, NetworkLink
from zoning.linkMatcher import SpatialLinkMatcher
from zoning.state import ZoningReaderState


def _link(
    linkId: int,
    coordinates: List[Tuple[float, float]],
    modes=frozenset({"bus"}),
    oneway: bool = False,
    capacityPerLane: float = 1000.0,
    verticalLayer: int = 0,
) -> NetworkLink:
    return NetworkLink(
        id=linkId,
        osmWayId=linkId,
        osmNodeIds=[linkId * 100 + index for index in range(len(coordinates))],
        geometry=LineString(coordinates),
        forwardModes=frozenset(modes),
        backwardModes=frozenset() if oneway else frozenset(modes),
        capacityPerLane=capacityPerLane,
        verticalLayer=verticalLayer,
    )


def _matcher(*links: NetworkLink, **settings) -> SpatialLinkMatcher:
    network = Network()
    for link in links:
        network.addLink(link)
    zoningSettings = ZoningSettings(showProgress=False, **settings)
    state = ZoningReaderState(network, zoningSettings, Projector("EPSG:32634"))
    return SpatialLinkMatcher(state, zoningSettings)


def _ids(links: List[NetworkLink]) -> List[int]:
    return [link.id for link in links]


def test_findAccessLinksFiltersMode():
    matcher = _matcher(
        _link(1, [(-50, 0), (50, 0)], modes={"tram"}),
        _link(2, [(-50, -15), (50, -15)]),
    )
    assert _ids(matcher.findAccessLinks(Point(0, 5), "bus", 25)) == [2]
    assert _ids(matcher.findAccessLinks(Point(0, 5), "tram", 25)) == [1]
    assert matcher.findAccessLinks(Point(0, 5), "train", 25) == []


def test_findAccessLinksRespectsRadius():
    matcher = _matcher(_link(1, [(-50, 0), (50, 0)]))
    assert matcher.findAccessLinks(Point(0, 30), "bus", 25) == []
    assert _ids(matcher.findAccessLinks(Point(0, 20), "bus", 25)) == [1]


def test_findAccessLinksPrefersCapacityWithinBuffer():
    service = _link(1, [(-50, 0), (50, 0)], capacityPerLane=800.0)
    primary = _link(2, [(-50, -5), (50, -5)], capacityPerLane=1800.0)
    assert _ids(_matcher(service, primary).findAccessLinks(Point(0, 5), "bus", 25)) == [2]

    distantPrimary = _link(2, [(-50, -15), (50, -15)], capacityPerLane=1800.0)
    assert _ids(_matcher(service, distantPrimary).findAccessLinks(Point(0, 5), "bus", 25)) == [1]


def test_findAccessLinksVerticalLayer():
    matcher = _matcher(
        _link(1, [(-50, 0), (50, 0)], verticalLayer=1),
        _link(2, [(-50, -10), (50, -10)]),
    )
    assert _ids(matcher.findAccessLinks(Point(0, 5), "bus", 25, verticalLayer=0)) == [2]
    assert _ids(matcher.findAccessLinks(Point(0, 5), "bus", 25)) == [1]


def test_findAccessLinksSkipsWrongSideOfOnewayRoad():
    # eastbound, the area is on the left
    oneway = _link(1, [(-50, 0), (50, 0)], oneway=True)
    assert _matcher(oneway).findAccessLinks(Point(0, 5), "bus", 25) == []
    assert _ids(_matcher(oneway, leftHandDrive=True).findAccessLinks(Point(0, 5), "bus", 25)) == [1]
    assert _ids(_matcher(oneway).findAccessLinks(Point(0, -5), "bus", 25)) == [1]


def test_accessDirections():
    link = _link(1, [(-50, 0), (50, 0)])
    matcher = _matcher(link)
    assert matcher.accessDirections(Point(0, -5), link, "bus") == [True]
    assert matcher.accessDirections(Point(0, 5), link, "bus") == [False]
    assert matcher.accessDirections(Point(0, 5), link, "bus", avoidCrossingTraffic=False) == [True, False]
    # no upstream segment at the start of the link
    assert matcher.accessDirections(Point(-60, 0), link, "bus", Point(-50, 0)) == [False]


def test_findAccessLinksParallelTracks():
    tracks = [
        _link(1, [(-100, 0), (100, 0)], modes={"train"}),
        _link(2, [(-100, -5), (100, -5)], modes={"train"}),
        _link(3, [(-100, -10), (100, -10)], modes={"train"}),
    ]
    matcher = _matcher(*tracks)
    station = Point(0, 8)
    assert _ids(matcher.findAccessLinks(station, "train", 35, 2)) == [1, 2]
    assert _ids(matcher.findAccessLinks(station, "train", 35, 3)) == [1, 2, 3]
    assert _ids(matcher.findAccessLinks(station, "train", 35, 1)) == [1]


def test_findAccessLinksParallelNeedsIntersection():
    matcher = _matcher(
        _link(1, [(-100, 0), (100, 0)], modes={"train"}),
        # beside the virtual line through the station
        _link(2, [(20, -5), (100, -5)], modes={"train"}),
    )
    assert _ids(matcher.findAccessLinks(Point(0, 8), "train", 35, 2)) == [1]
