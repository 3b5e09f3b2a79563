#!/usr/bin/env -S uv run python
import argparse
import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    select_autoescape,
)
from starsep_utils import OverpassResult
from starsep_utils.healthchecks import healthchecks

from configuration import ZoningSettings, outputDirectory
from logger import log_duration, setupLogging
from model.geo import Projector
from model.zoning import WaitingArea, WaitingAreaSummary, ZoningResult
from network.builder import buildNetwork
from osm.overpass import downloadPublicTransportData, loadOverpassFile
from osm.source import OsmDataSource
from zoning.reader import ZoningReader

startTime = datetime.now(UTC)


def parseArguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Extract public transport waiting areas and stop locations from OSM data"
    )
    inputGroup = parser.add_mutually_exclusive_group(required=True)
    inputGroup.add_argument("--input", type=Path, help="Overpass JSON file")
    inputGroup.add_argument(
        "--bbox",
        type=float,
        nargs=4,
        metavar=("SOUTH", "WEST", "NORTH", "EAST"),
        help="download the area from Overpass",
    )
    parser.add_argument("--settings", type=Path, help="JSON settings file")
    parser.add_argument("--output", type=Path, default=outputDirectory)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


def loadSettings(path: Path | None) -> ZoningSettings:
    if path is None:
        return ZoningSettings()
    with path.open() as f:
        return ZoningSettings.fromDict(json.load(f))


def summarizeWaitingArea(waitingArea: WaitingArea, projector: Projector) -> WaitingAreaSummary:
    lat, lon = projector.toLatLon(waitingArea.geometry.centroid)
    return WaitingAreaSummary(
        lat=lat,
        lon=lon,
        osmType=waitingArea.osmType,
        osmId=waitingArea.osmId,
        type=waitingArea.type.value,
        name=waitingArea.name or waitingArea.stationName or "",
        modes=",".join(sorted(waitingArea.modes)),
        connectoids=len(waitingArea.connectoids),
    )


def zoningToDict(result: ZoningResult, projector: Projector) -> Dict[str, List[Dict]]:
    waitingAreas = []
    for waitingArea in result.waitingAreas:
        lat, lon = projector.toLatLon(waitingArea.geometry.centroid)
        waitingAreas.append(
            dict(
                id=waitingArea.id,
                osmType=waitingArea.osmType,
                osmId=waitingArea.osmId,
                type=waitingArea.type.value,
                name=waitingArea.name,
                stationName=waitingArea.stationName,
                modes=sorted(waitingArea.modes),
                refs=waitingArea.platformRefs,
                lat=lat,
                lon=lon,
                groups=waitingArea.groupIds,
            )
        )
    groups = [
        dict(
            osmId=group.osmId,
            name=group.name,
            waitingAreas=[area.id for area in group.waitingAreas],
        )
        for group in result.groups
    ]
    connectoids = []
    for connectoid in result.connectoids:
        lat, lon = projector.toLatLon(connectoid.location)
        connectoids.append(
            dict(
                waitingArea=connectoid.waitingArea.id,
                mode=connectoid.mode,
                linkId=connectoid.linkId,
                osmWayId=connectoid.osmWayId,
                forward=connectoid.forward,
                stopPositionOsmNodeId=connectoid.stopPositionOsmNodeId,
                lat=lat,
                lon=lon,
            )
        )
    return dict(waitingAreas=waitingAreas, groups=groups, connectoids=connectoids)


def loadData(arguments: argparse.Namespace) -> OverpassResult:
    if arguments.input is not None:
        return loadOverpassFile(arguments.input)
    return downloadPublicTransportData(*arguments.bbox)


@log_duration
def processData(arguments: argparse.Namespace):
    settings = loadSettings(arguments.settings)
    source = OsmDataSource(loadData(arguments), settings)
    projector = Projector.forBounds(source.bounds())
    network = buildNetwork(source, projector, settings)
    result = ZoningReader(source, network, settings, projector).read()

    output = arguments.output
    output.mkdir(parents=True, exist_ok=True)
    with Path(output, "zoning.json").open("w") as f:
        json.dump(zoningToDict(result, projector), f, ensure_ascii=False, indent=2)

    env = Environment(
        loader=FileSystemLoader(searchpath="./templates"),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=StrictUndefined,
    )
    endTime = datetime.now(UTC)
    with Path(output, "index.html").open("w") as f:
        template = env.get_template("report.j2")
        f.write(
            template.render(
                statistics=result.statistics,
                groups=len(result.groups),
                connectoids=len(result.connectoids),
                waitingAreas=[
                    summarizeWaitingArea(area, projector) for area in result.waitingAreas
                ],
                incompleteWaitingAreas=[
                    summarizeWaitingArea(area, projector)
                    for area in result.incompleteWaitingAreas()
                ],
                startTime=startTime.isoformat(timespec="seconds"),
                generationSeconds=int((endTime - startTime).total_seconds()),
            )
        )
    logging.info(f"💾 Results written to {output}")


if __name__ == "__main__":
    arguments = parseArguments()
    setupLogging(arguments.verbose)
    healthchecks("/start")
    logging.info("🎬 Starting osm-zoning")
    processData(arguments)
    healthchecks()
