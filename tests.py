import json
import tempfile
import unittest
from collections import Counter
from pathlib import Path

from pydantic import ValidationError

from configuration import ZoningSettings
from main import loadSettings, summarizeWaitingArea, zoningToDict
from model.geo import Projector, utmEpsg
from model.zoning import (
    Connectoid,
    TransferGroup,
    WaitingArea,
    WaitingAreaType,
    ZoningResult,
)


class ZoningSettingsTests(unittest.TestCase):
    def test_fromDict(self):
        settings = ZoningSettings.fromDict(
            {
                "railActive": False,
                "stopToWaitingAreaSearchRadius": 30.0,
                "boundingPolygon": [[52.0, 21.0], [52.1, 21.0], [52.1, 21.1]],
                "excludedElements": [["node", "5"]],
                "stopPositionWaitingAreas": {"7": ["way", 8]},
                "waitingAreaNominatedWays": [["node", 9, 10]],
                "suppressedStopAreaLogging": [11],
            }
        )
        self.assertFalse(settings.railActive)
        self.assertEqual(settings.stopToWaitingAreaSearchRadius, 30.0)
        self.assertTrue(settings.hasBoundingPolygon())
        self.assertTrue(settings.isExcluded("node", 5))
        self.assertTrue(settings.isStopPositionWaitingAreaOverwritten(7))
        self.assertTrue(settings.isWaitingAreaOfStopPosition("way", 8))
        self.assertEqual(settings.nominatedWay("node", 9), 10)
        self.assertEqual(settings.suppressedStopAreaLogging, {11})
        self.assertNotIn("train", settings.activatedModes())
        self.assertIn("ferry", settings.activatedModes())

    def test_fromDictCoercesValues(self):
        settings = ZoningSettings.fromDict({"stationToWaitingAreaSearchRadius": "30"})
        self.assertEqual(settings.stationToWaitingAreaSearchRadius, 30.0)
        self.assertIsInstance(settings.stationToWaitingAreaSearchRadius, float)

    def test_fromDictRejectsUnknownKeys(self):
        with self.assertRaises(ValidationError):
            ZoningSettings.fromDict({"stopToWaitingAreaSearchRadus": 5})

    def test_fromDictRejectsInvalidValues(self):
        with self.assertRaises(ValidationError):
            ZoningSettings.fromDict({"stopToWaitingAreaSearchRadius": "far"})

    def test_loadSettings(self):
        self.assertEqual(loadSettings(None), ZoningSettings())
        with tempfile.TemporaryDirectory() as directory:
            path = Path(directory, "settings.json")
            path.write_text(json.dumps({"leftHandDrive": True}))
            self.assertTrue(loadSettings(path).leftHandDrive)


class ZoningOutputTests(unittest.TestCase):
    def setUp(self):
        self.projector = Projector(utmEpsg(52.23, 21.0))
        self.waitingArea = WaitingArea(
            id=1,
            osmType="node",
            osmId=10,
            geometry=self.projector.point(52.23, 21.0),
            type=WaitingAreaType.POLE,
            modes={"bus", "trolleybus"},
            stationName="Centrum",
        )
        group = TransferGroup(osmId=40, name="Centrum")
        group.addWaitingArea(self.waitingArea)
        location = self.projector.point(52.23005, 21.0)
        connectoid = Connectoid(
            waitingArea=self.waitingArea,
            mode="bus",
            linkId=50,
            osmWayId=50,
            distanceAlongLink=10.0,
            forward=True,
            location=location,
            stopPositionOsmNodeId=2,
        )
        self.waitingArea.connectoids.append(connectoid)
        self.result = ZoningResult(
            waitingAreas=[self.waitingArea],
            groups=[group],
            connectoids=[connectoid],
            statistics={"discards": Counter()},
        )

    def test_utmEpsg(self):
        self.assertEqual(utmEpsg(52.23, 21.0), "EPSG:32634")
        self.assertEqual(utmEpsg(-33.9, 18.4), "EPSG:32734")

    def test_summarizeWaitingArea(self):
        summary = summarizeWaitingArea(self.waitingArea, self.projector)
        self.assertAlmostEqual(summary.lat, 52.23, places=6)
        self.assertAlmostEqual(summary.lon, 21.0, places=6)
        self.assertEqual(summary.name, "Centrum")
        self.assertEqual(summary.modes, "bus,trolleybus")
        self.assertEqual(summary.connectoids, 1)
        self.assertEqual(summary.url, "https://osm.org/node/10")

    def test_zoningToDict(self):
        data = zoningToDict(self.result, self.projector)
        self.assertEqual(data["waitingAreas"][0]["type"], "pole")
        self.assertEqual(data["waitingAreas"][0]["groups"], [40])
        self.assertEqual(data["groups"], [dict(osmId=40, name="Centrum", waitingAreas=[1])])
        self.assertEqual(data["connectoids"][0]["stopPositionOsmNodeId"], 2)
        self.assertAlmostEqual(data["connectoids"][0]["lat"], 52.23005, places=6)
        json.dumps(data)

    def test_incompleteWaitingAreas(self):
        self.assertEqual(self.result.incompleteWaitingAreas(), [])
        self.waitingArea.connectoids.clear()
        self.assertEqual(self.result.incompleteWaitingAreas(), [self.waitingArea])


if __name__ == "__main__":
    unittest.main()
