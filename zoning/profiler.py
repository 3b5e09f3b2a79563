import logging
from collections import Counter
from typing import Dict

from model.zoning import WaitingAreaType
from osm.classifier import PtScheme


class ZoningProfiler:
    def __init__(self):
        self.ptv1Tags: Counter = Counter()
        self.ptv2Tags: Counter = Counter()
        self.waitingAreas: Counter = Counter()
        self.discards: Counter = Counter()
        self.salvages: Counter = Counter()
        self.groups = 0
        self.connectoids = 0

    def incrementTag(self, scheme: PtScheme, value: str):
        if scheme == PtScheme.PTV1:
            self.ptv1Tags[value] += 1
        elif scheme == PtScheme.PTV2:
            self.ptv2Tags[value] += 1

    def incrementWaitingArea(self, waitingAreaType: WaitingAreaType):
        self.waitingAreas[waitingAreaType.value] += 1

    def incrementDiscard(self, reason: str):
        self.discards[reason] += 1

    def incrementSalvage(self, reason: str):
        self.salvages[reason] += 1

    def summary(self) -> Dict[str, Counter]:
        return {
            "ptv1Tags": self.ptv1Tags,
            "ptv2Tags": self.ptv2Tags,
            "waitingAreas": self.waitingAreas,
            "discards": self.discards,
            "salvages": self.salvages,
            "totals": Counter(groups=self.groups, connectoids=self.connectoids),
        }

    def logSummary(self):
        logging.info(
            f"📊 {sum(self.waitingAreas.values())} waiting areas, "
            f"{self.groups} transfer groups, {self.connectoids} connectoids"
        )
        for value, count in sorted(self.ptv1Tags.items()):
            logging.info(f"📊 [Ptv1] {value}: {count}")
        for value, count in sorted(self.ptv2Tags.items()):
            logging.info(f"📊 [Ptv2] {value}: {count}")
        for reason, count in sorted(self.discards.items()):
            logging.info(f"🗑️ {reason}: {count}")
