import logging

from configuration import ZoningSettings
from model.deferred import DeferredKind
from model.zoning import WaitingAreaType
from osm.osmErrors import ZoningError
from zoning.waitingAreas import WaitingAreaHelper

ROAD = [(1, -100, 0), (2, 0, 0), (3, 100, 0)]


def test_busStopOffNetworkIsPole(osmData):
    osmData.road(50, ROAD)
    osmData.node(10, 0, 6, dict(highway="bus_stop", name="Centrum", ref="01"))
    reader = osmData.extract()

    waitingArea = reader.state.lookupWaitingArea("node", 10)
    assert waitingArea.type == WaitingAreaType.POLE
    assert waitingArea.modes == {"bus"}
    assert waitingArea.name == "Centrum"
    assert waitingArea.platformRefs == ["01"]
    assert not waitingArea.hasConnectoids


def test_busStopOnNetworkIsDeferred(osmData):
    osmData.node(1, -100, 0).node(2, 0, 0, dict(highway="bus_stop")).node(3, 100, 0)
    osmData.way(50, [1, 2, 3], dict(highway="residential"))
    reader = osmData.extract()

    assert reader.state.lookupWaitingArea("node", 2) is None
    assert reader.state.hasDeferred(DeferredKind.STOP_POSITION, "node", 2)


def test_platformOnNetworkIsAttachedImmediately(osmData):
    osmData.node(1, -100, 0).node(3, 100, 0)
    osmData.node(2, 0, 0, dict(public_transport="platform", bus="yes"))
    osmData.way(51, [1, 2, 3], dict(highway="residential"))
    reader = osmData.extract()

    waitingArea = reader.state.lookupWaitingArea("node", 2)
    assert waitingArea.hasConnectoids
    assert {connectoid.linkId for connectoid in waitingArea.connectoids} == {51}


def test_stationsAreDeferred(osmData):
    osmData.node(10, 0, 0, dict(public_transport="station", name="Główna"))
    osmData.node(11, 50, 50, dict(railway="station"))
    osmData.node(12, 0, 0).node(13, 0, 5).node(14, 10, 5).node(15, 10, 0)
    osmData.way(20, [12, 13, 14, 15, 12], dict(public_transport="station"))
    reader = osmData.extract()

    assert reader.state.hasDeferred(DeferredKind.STATION, "node", 10)
    assert reader.state.hasDeferred(DeferredKind.STATION, "node", 11)
    assert reader.state.hasDeferred(DeferredKind.STATION, "way", 20)
    assert len(reader.state.waitingAreas) == 0


def test_platformMultipolygon(osmData):
    osmData.node(1, 0, 5).node(2, 20, 5).node(3, 20, 10).node(4, 0, 10)
    osmData.way(20, [1, 2, 3, 4, 1])
    osmData.relation(
        30,
        [("way", 20, "outer")],
        dict(type="multipolygon", public_transport="platform", tram="yes", name="Plac"),
    )
    reader = osmData.extract()

    waitingArea = reader.state.lookupWaitingArea("relation", 30)
    assert waitingArea is reader.state.lookupWaitingArea("way", 20)
    assert waitingArea.modes == {"tram"}
    assert waitingArea.name == "Plac"
    assert waitingArea.geometry.area > 90


def test_wayStopPositionIsIgnored(osmData, caplog):
    caplog.set_level(logging.INFO)
    osmData.road(50, ROAD, dict(highway="residential", public_transport="stop_position"))
    reader = osmData.extract()
    assert len(reader.state.waitingAreas) == 0
    assert "Way 50 is tagged as stop_position" in caplog.text


def test_tramStopOffNetworkIsDiscarded(osmData):
    osmData.node(10, 0, 0, dict(railway="tram_stop"))
    reader = osmData.extract()
    assert reader.state.lookupWaitingArea("node", 10) is None
    assert reader.state.profiler.discards["tram stop off track"] == 1


def test_stopPositionOfDeactivatedModeIsIgnored(osmData):
    osmData.node(10, 0, 0, dict(public_transport="stop_position", tram="yes"))
    reader = osmData.extract(ZoningSettings(showProgress=False, railActive=False))
    assert reader.state.isIgnoredStopAreaStopPosition("node", 10)
    assert not reader.state.hasDeferred(DeferredKind.STOP_POSITION, "node", 10)


def test_stopPositionOffNetworkSalvagedAsBusStop(osmData, caplog):
    caplog.set_level(logging.INFO)
    osmData.road(50, ROAD)
    osmData.node(10, 0, 4, dict(public_transport="stop_position", highway="bus_stop"))
    reader = osmData.extract()

    waitingArea = reader.state.lookupWaitingArea("node", 10)
    assert waitingArea.type == WaitingAreaType.POLE
    assert "SALVAGED: stop position 10" in caplog.text
    assert reader.state.profiler.salvages["stop position as bus_stop"] == 1


def test_stopPositionOffNetworkWithoutInfrastructure(osmData):
    osmData.node(10, 0, 4, dict(public_transport="stop_position", highway="bus_stop"))
    reader = osmData.extract()
    assert reader.state.lookupWaitingArea("node", 10) is None
    assert reader.state.isIgnoredStopAreaStopPosition("node", 10)


def test_stopPositionOffNetworkSalvagedAsHaltUsesStationRadius(osmData):
    osmData.road(60, [(1, -100, 0), (2, 100, 0)], dict(railway="rail"))
    osmData.node(10, 0, 30, dict(public_transport="stop_position", railway="halt"))
    reader = osmData.extract()

    waitingArea = reader.state.lookupWaitingArea("node", 10)
    assert waitingArea.type == WaitingAreaType.SMALL_STATION
    assert reader.state.profiler.salvages["stop position as halt"] == 1


def test_stopPositionOffNetworkWithRailwayPlatformIsDiscarded(osmData, caplog):
    osmData.road(60, [(1, -100, 0), (2, 100, 0)], dict(railway="rail"))
    osmData.node(10, 0, 6, dict(public_transport="stop_position", railway="platform"))
    reader = osmData.extract()

    assert reader.state.lookupWaitingArea("node", 10) is None
    assert reader.state.isIgnoredStopAreaStopPosition("node", 10)
    assert "stop position 10 is not on the network" in caplog.text


def test_boundingPolygonSkipsOutsideElements(osmData):
    osmData.node(10, 0, 6, dict(public_transport="platform", bus="yes"))
    osmData.node(11, 2000, 6, dict(public_transport="platform", bus="yes"))
    settings = ZoningSettings(showProgress=False)
    settings.boundingPolygon = osmData.boundingSquare(500)
    reader = osmData.extract(settings)
    assert reader.state.lookupWaitingArea("node", 10) is not None
    assert reader.state.lookupWaitingArea("node", 11) is None


def test_stopAreaGroupsPlatforms(osmData):
    osmData.node(10, 0, 6, dict(public_transport="platform", bus="yes"))
    osmData.node(11, 0, -6, dict(highway="bus_stop"))
    osmData.relation(
        40,
        [("node", 10, "platform"), ("node", 11, "")],
        dict(type="public_transport", public_transport="stop_area", name="Centrum"),
    )
    reader = osmData.extract()

    group = reader.state.lookupTransferGroup(40)
    assert group.name == "Centrum"
    assert [area.osmId for area in group.waitingAreas] == [10, 11]
    assert reader.state.lookupWaitingArea("node", 10).groupIds == [40]


def test_stopAreaPlatformRelationIsPending(osmData):
    osmData.node(1, 0, 5).node(2, 20, 5).node(3, 20, 10).node(4, 0, 10)
    osmData.way(20, [1, 2, 3, 4, 1])
    osmData.relation(
        30,
        [("relation", 31, "platform")],
        dict(type="public_transport", public_transport="stop_area"),
    )
    osmData.relation(
        31,
        [("way", 20, "outer")],
        dict(type="multipolygon", public_transport="platform", bus="yes"),
    )
    reader = osmData.extract()
    assert reader.state.pendingPlatformMemberships == [(30, ("relation", 31))]

    reader.resolve()
    group = reader.state.lookupTransferGroup(30)
    assert [area.osmId for area in group.waitingAreas] == [20]

def test_failingElementDoesNotStopExtraction(osmData, caplog, mocker):
    osmData.road(50, ROAD)
    osmData.node(10, 0, 6, dict(highway="bus_stop"))
    osmData.node(11, 50, 6, dict(highway="bus_stop"))
    createWaitingArea = WaitingAreaHelper.createWaitingArea

    def failOnFirst(helper, element, *args, **kwargs):
        if element.id == 10:
            raise ZoningError("broken")
        return createWaitingArea(helper, element, *args, **kwargs)

    mocker.patch.object(WaitingAreaHelper, "createWaitingArea", autospec=True, side_effect=failOnFirst)
    reader = osmData.extract()

    assert "Failed to process node 10" in caplog.text
    assert reader.state.lookupWaitingArea("node", 10) is None
    assert reader.state.lookupWaitingArea("node", 11).type == WaitingAreaType.POLE
