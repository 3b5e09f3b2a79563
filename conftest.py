import math
from typing import Dict, List, Optional, Tuple

import pytest
from starsep_utils import GeoPoint

from configuration import ZoningSettings
from model.geo import Projector
from network.builder import buildNetwork
from osm.overpass import parseOverpassElements
from osm.source import OsmDataSource
from zoning.reader import ZoningReader

ORIGIN_LAT = 52.23
ORIGIN_LON = 21.0
METRES_PER_DEGREE = 111_320.0


def latLon(x: float, y: float) -> Tuple[float, float]:
    """Coordinates of a point x metres east and y metres north of the origin."""
    lat = ORIGIN_LAT + y / METRES_PER_DEGREE
    lon = ORIGIN_LON + x / (METRES_PER_DEGREE * math.cos(math.radians(ORIGIN_LAT)))
    return lat, lon


class OsmDataBuilder:
    """Overpass elements laid out in metres around a fixed origin."""

    def __init__(self):
        self.elements: List[Dict] = []

    def node(self, nodeId: int, x: float, y: float, tags: Optional[Dict] = None):
        lat, lon = latLon(x, y)
        self.elements.append(
            dict(type="node", id=nodeId, lat=lat, lon=lon, tags=tags or dict())
        )
        return self

    def way(self, wayId: int, nodeIds: List[int], tags: Optional[Dict] = None):
        self.elements.append(
            dict(type="way", id=wayId, nodes=list(nodeIds), tags=tags or dict())
        )
        return self

    def relation(
        self,
        relationId: int,
        members: List[Tuple[str, int, str]],
        tags: Optional[Dict] = None,
    ):
        self.elements.append(
            dict(
                type="relation",
                id=relationId,
                members=[
                    dict(type=memberType, ref=ref, role=role)
                    for memberType, ref, role in members
                ],
                tags=tags or dict(),
            )
        )
        return self

    def road(self, wayId: int, points: List[Tuple[int, float, float]], tags=None):
        """Way through new nodes given as (id, x, y)."""
        for nodeId, x, y in points:
            self.node(nodeId, x, y)
        return self.way(
            wayId, [nodeId for nodeId, _, _ in points], tags or dict(highway="residential")
        )

    @staticmethod
    def boundingSquare(size: float) -> List[GeoPoint]:
        """Bounding polygon reaching size metres from the origin in every direction."""
        corners = [(-size, -size), (size, -size), (size, size), (-size, size)]
        return [GeoPoint(lat=lat, lon=lon) for lat, lon in (latLon(x, y) for x, y in corners)]

    def source(self, settings: ZoningSettings) -> OsmDataSource:
        return OsmDataSource(parseOverpassElements(self.elements), settings)

    def reader(self, settings: Optional[ZoningSettings] = None) -> ZoningReader:
        if settings is None:
            settings = quietSettings()
        source = self.source(settings)
        projector = Projector.forBounds(source.bounds())
        network = buildNetwork(source, projector, settings)
        return ZoningReader(source, network, settings, projector)

    def extract(self, settings: Optional[ZoningSettings] = None) -> ZoningReader:
        """Reader after discovery and extraction, before resolution."""
        reader = self.reader(settings)
        reader.discover()
        reader.extract()
        return reader


def quietSettings(**kwargs) -> ZoningSettings:
    return ZoningSettings(showProgress=False, **kwargs)


@pytest.fixture
def osmData() -> OsmDataBuilder:
    return OsmDataBuilder()


@pytest.fixture
def settings() -> ZoningSettings:
    return quietSettings()