from configuration import ZoningSettings


def _platformData(osmData, relationId: int):
    osmData.node(1, 0, 0).node(2, 10, 0).node(3, 10, 5).node(4, 0, 5)
    osmData.way(20, [1, 2, 3, 4, 1])
    osmData.relation(
        relationId,
        [("way", 20, "outer")],
        dict(type="multipolygon", public_transport="platform", bus="yes"),
    )
    osmData.node(5, 50, 50, dict(public_transport="stop_position", bus="yes"))
    osmData.node(6, 60, 60, dict(public_transport="platform"))
    osmData.relation(
        relationId + 1,
        [("node", 5, "stop"), ("node", 6, "platform"), ("node", 7, "")],
        dict(type="public_transport", public_transport="stop_area"),
    )
    return osmData


def test_discoveryRetainsOuterWays(osmData):
    reader = _platformData(osmData, 30).reader()
    reader.discover()

    assert reader.state.retainedWayIds() == {20}
    for nodeId in [1, 2, 3, 4, 5, 7]:
        assert reader.source.isRetained(nodeId)
    assert not reader.source.isRetained(6)


def test_discoveryDoesNotDependOnIds(osmData):
    # the relation comes first and last in id order
    lowIds = _platformData(osmData, 10).reader()
    lowIds.discover()
    osmData.elements = []
    highIds = _platformData(osmData, 30).reader()
    highIds.discover()
    assert lowIds.state.retainedWayIds() == highIds.state.retainedWayIds() == {20}
    assert lowIds.source.retainedNodeIds == highIds.source.retainedNodeIds


def test_discoverySkipsExcludedElements(osmData):
    settings = ZoningSettings(showProgress=False, excludedElements={("relation", 30)})
    reader = _platformData(osmData, 30).reader(settings)
    reader.discover()
    assert reader.state.retainedWayIds() == set()
    assert not reader.source.isRetained(1)
