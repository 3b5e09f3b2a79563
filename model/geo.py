from typing import Iterable, List, Tuple

from pyproj import Transformer
from shapely.geometry import Point, Polygon, box
from shapely.geometry.base import BaseGeometry
from starsep_utils import Node


def utmEpsg(lat: float, lon: float) -> str:
    zone = int((lon + 180) // 6) % 60 + 1
    hemisphereCode = "7" if lat < 0 else "6"
    return f"EPSG:32{hemisphereCode}{zone:02d}"


class Projector:
    """Projects WGS84 coordinates to metres in the UTM zone of the data."""

    def __init__(self, epsg: str):
        self.epsg = epsg
        self.forward = Transformer.from_crs("EPSG:4326", epsg, always_xy=True)
        self.inverse = Transformer.from_crs(epsg, "EPSG:4326", always_xy=True)

    @staticmethod
    def forBounds(bounds: Tuple[float, float, float, float]) -> "Projector":
        south, west, north, east = bounds
        return Projector(utmEpsg((south + north) / 2, (west + east) / 2))

    def point(self, lat: float, lon: float) -> Point:
        x, y = self.forward.transform(lon, lat)
        return Point(x, y)

    def nodePoint(self, node: Node) -> Point:
        return self.point(node.lat, node.lon)

    def coordinates(self, nodes: Iterable[Node]) -> List[Tuple[float, float]]:
        return [self.nodePoint(node).coords[0] for node in nodes]

    def toLatLon(self, point: Point) -> Tuple[float, float]:
        lon, lat = self.inverse.transform(point.x, point.y)
        return lat, lon

    def polygon(self, latLons: Iterable[Tuple[float, float]]) -> Polygon:
        return Polygon([self.point(lat, lon).coords[0] for lat, lon in latLons])


def boundingBox(geometry: BaseGeometry, radius: float) -> Polygon:
    minX, minY, maxX, maxY = geometry.bounds
    return box(minX - radius, minY - radius, maxX + radius, maxY + radius)
