import logging
from typing import List, Optional, Tuple

from shapely.geometry import LineString, Point
from shapely.geometry.base import BaseGeometry
from shapely.ops import nearest_points

from configuration import CLOSEST_EDGE_SEARCH_BUFFER_DISTANCE_M, ZoningSettings
from model.geo import boundingBox
from model.network import NetworkLink
from osm.modes import isRoadMode
from zoning.state import ZoningReaderState

# a location closer than this to the start of a direction has no upstream segment
UPSTREAM_TOLERANCE_M = 0.001


def closestPointOnLink(link: NetworkLink, geometry: BaseGeometry) -> Point:
    return nearest_points(link.geometry, geometry)[0]


def _segmentAt(
    link: NetworkLink, distance: float, forward: bool
) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Segment of the link the location is reached through, oriented in travel direction."""
    coords = list(link.geometry.coords)
    segments = list(zip(coords[:-1], coords[1:]))
    travelled = 0.0
    chosen = segments[0] if forward else segments[-1]
    for start, end in segments:
        length = Point(start).distance(Point(end))
        if forward and travelled < distance <= travelled + length:
            chosen = (start, end)
            break
        if not forward and travelled <= distance < travelled + length:
            chosen = (start, end)
            break
        travelled += length
    if forward:
        return chosen
    return chosen[1], chosen[0]


def _isLeftOf(point: Point, start, end) -> Optional[bool]:
    cross = (end[0] - start[0]) * (point.y - start[1]) - (end[1] - start[1]) * (
        point.x - start[0]
    )
    if abs(cross) < 1e-9:
        return None
    return cross > 0


class SpatialLinkMatcher:
    """Finds the network links a waiting area can be served from."""

    def __init__(self, state: ZoningReaderState, settings: ZoningSettings):
        self.state = state
        self.settings = settings

    def accessDirections(
        self,
        areaGeometry: BaseGeometry,
        link: NetworkLink,
        mode: str,
        location: Optional[Point] = None,
        avoidCrossingTraffic: bool = True,
    ) -> List[bool]:
        """Directions (True is forward) in which a vehicle of the mode can serve the area at the location."""
        if location is None:
            location = closestPointOnLink(link, areaGeometry)
        distance = link.locate(location)
        directions = []
        for forward in [True, False]:
            if not link.allowsModeInDirection(mode, forward):
                continue
            if forward and distance <= UPSTREAM_TOLERANCE_M:
                continue
            if not forward and distance >= link.length - UPSTREAM_TOLERANCE_M:
                continue
            if avoidCrossingTraffic and isRoadMode(mode):
                if not self._isOnServedSide(areaGeometry, link, distance, forward):
                    continue
            directions.append(forward)
        return directions

    def _isOnServedSide(
        self, areaGeometry: BaseGeometry, link: NetworkLink, distance: float, forward: bool
    ) -> bool:
        start, end = _segmentAt(link, distance, forward)
        isLeft = _isLeftOf(areaGeometry.centroid, start, end)
        if isLeft is None:
            return True
        return isLeft == self.settings.leftHandDrive

    def findAccessLinks(
        self,
        areaGeometry: BaseGeometry,
        mode: str,
        searchRadius: float,
        maxResults: int = 1,
        verticalLayer: Optional[int] = None,
        sourceGeometry: Optional[BaseGeometry] = None,
        avoidCrossingTraffic: bool = True,
    ) -> List[NetworkLink]:
        """Most appropriate links for the area, best first, at most maxResults.

        Candidates within the radius are narrowed down by mode, vertical layer and
        the possibility to attach, then to those close to the closest one, then by
        capacity for road modes and finally by distance. With more than one result
        requested, links parallel to the best one (crossed by a line through the
        area and the best link) are added.
        """
        candidates = [
            link
            for link in self.state.spatialQueryLinks(boundingBox(areaGeometry, searchRadius))
            if link.geometry.distance(areaGeometry) <= searchRadius
        ]
        candidates = [link for link in candidates if link.allowsMode(mode)]
        if verticalLayer is not None:
            candidates = [link for link in candidates if link.verticalLayer == verticalLayer]
        accessible = [
            link
            for link in candidates
            if len(
                self.accessDirections(
                    areaGeometry, link, mode, avoidCrossingTraffic=avoidCrossingTraffic
                )
            )
            > 0
        ]
        if len(accessible) == 0:
            return []

        distances = {link.id: link.geometry.distance(areaGeometry) for link in accessible}
        closestDistance = min(distances.values())
        remaining = [
            link
            for link in accessible
            if distances[link.id] <= closestDistance + CLOSEST_EDGE_SEARCH_BUFFER_DISTANCE_M
        ]
        if len(remaining) > 1 and isRoadMode(mode):
            maxCapacity = max(link.capacity(mode) for link in remaining)
            remaining = [link for link in remaining if link.capacity(mode) == maxCapacity]
        remaining.sort(key=lambda link: (distances[link.id], link.id))
        best = remaining[0]
        if maxResults <= 1:
            return [best]

        virtualLine = self._virtualLine(sourceGeometry or areaGeometry, best)
        parallel = sorted(
            (
                link
                for link in accessible
                if link is not best
                and distances[link.id] <= self.settings.stationToWaitingAreaSearchRadius
                and link.geometry.intersects(virtualLine)
            ),
            key=lambda link: (distances[link.id], link.id),
        )
        matches = [best] + parallel
        logging.debug(f"{len(matches)} parallel links found for {mode}, keeping {maxResults}")
        return matches[:maxResults]

    def _virtualLine(self, geometry: BaseGeometry, link: NetworkLink) -> LineString:
        """Line from the geometry through the closest point of the link, extended at both ends."""
        extension = self.settings.stationToParallelTracksSearchRadius
        origin = geometry.centroid
        target = closestPointOnLink(link, origin)
        dx, dy = target.x - origin.x, target.y - origin.y
        length = (dx * dx + dy * dy) ** 0.5
        if length < UPSTREAM_TOLERANCE_M:
            # geometry on the link, cross it perpendicularly
            start, end = _segmentAt(link, link.locate(target), True)
            dx, dy = -(end[1] - start[1]), end[0] - start[0]
            length = (dx * dx + dy * dy) ** 0.5
        ux, uy = dx / length, dy / length
        return LineString(
            [
                (origin.x - ux * extension, origin.y - uy * extension),
                (target.x + ux * extension, target.y + uy * extension),
            ]
        )
