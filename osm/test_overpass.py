import json

from starsep_utils import RelationMember

from configuration import ZoningSettings
from osm.overpass import (
    buildPublicTransportQuery,
    downloadPublicTransportData,
    elementKey,
    isClosedWay,
    membersWithRole,
    parseOverpassElements,
    resolveMember,
)
from osm.source import OsmDataSource

ELEMENTS = [
    dict(type="relation", id=5, members=[dict(type="node", ref=1, role="platform")], tags={}),
    dict(type="way", id=3, nodes=[2, 1], tags=dict(highway="residential")),
    dict(type="node", id=2, lat=52.1, lon=21.1),
    dict(type="node", id=1, lat=52.0, lon=21.0, tags=dict(highway="bus_stop")),
]


def test_parseOverpassElements():
    result = parseOverpassElements(ELEMENTS)
    assert set(result.nodes) == {1, 2}
    assert result.nodes[1].tags == {"highway": "bus_stop"}
    assert result.nodes[2].tags == {}
    assert result.ways[3].nodes == [2, 1]
    assert not isClosedWay(result.ways[3])
    assert result.relations[5].members == [RelationMember(type="node", id=1, role="platform")]
    assert resolveMember(result, result.relations[5].members[0]) is result.nodes[1]
    assert elementKey(result.nodes[1]) == ("node", 1)


def test_parseSkipsUnknownTypesAndMissingMembers():
    result = parseOverpassElements(
        [
            dict(type="area", id=9),
            dict(
                type="relation",
                id=6,
                members=[dict(type="way", ref=77, role="outer"), dict(type="node", ref=2)],
                tags=dict(type="multipolygon"),
            ),
        ]
    )
    relation = result.relations[6]
    assert membersWithRole(relation, "outer") == [RelationMember(type="way", id=77, role="outer")]
    assert [elementKey(member) for member in membersWithRole(relation, "")] == [("node", 2)]
    assert resolveMember(result, relation.members[0]) is None


def test_downloadPublicTransportData(mocker):
    response = mocker.Mock()
    response.text = json.dumps(dict(elements=ELEMENTS))
    post = mocker.patch(
        "starsep_utils.overpass.client.post", new_callable=mocker.AsyncMock, return_value=response
    )

    result = downloadPublicTransportData(52.0, 21.0, 52.1, 21.1)

    assert "52.0,21.0,52.1,21.1" in post.call_args.kwargs["data"]["data"]
    response.raise_for_status.assert_called_once()
    assert len(result.nodes) == 2


def test_queryFetchesMembers():
    query = buildPublicTransportQuery(52.0, 21.0, 52.1, 21.1)
    assert 'relation["public_transport"](52.0,21.0,52.1,21.1);' in query
    assert "(._;>;);" in query


class RecordingHandler:
    def __init__(self):
        self.calls = []

    def handleNode(self, node):
        self.calls.append(elementKey(node))

    def handleWay(self, way):
        self.calls.append(elementKey(way))

    def handleRelation(self, relation):
        self.calls.append(elementKey(relation))

    def complete(self):
        self.calls.append("complete")


def test_streamOrder():
    source = OsmDataSource(parseOverpassElements(ELEMENTS), ZoningSettings(showProgress=False))
    handler = RecordingHandler()
    source.stream(handler)
    assert handler.calls == [
        ("node", 1),
        ("node", 2),
        ("way", 3),
        ("relation", 5),
        "complete",
    ]


def test_retainedNodes():
    source = OsmDataSource(parseOverpassElements(ELEMENTS), ZoningSettings(showProgress=False))
    source.retainNode(2)
    assert source.isRetained(2)
    assert not source.isRetained(1)
    source.reset()
    assert not source.isRetained(2)
    assert source.bounds() == (52.0, 21.0, 52.1, 21.1)
