from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from starsep_utils import Element, Node

from osm.classifier import PtScheme
from osm.overpass import elementKey


class DeferredKind(Enum):
    STATION = "station"
    STOP_POSITION = "stop_position"
    FERRY_TERMINAL = "ferry_terminal"
    RETAINED_OUTER_WAY = "retained_outer_way"


@dataclass(frozen=True)
class DeferredStation:
    element: Element
    scheme: PtScheme

    kind = DeferredKind.STATION

    @property
    def key(self) -> Tuple[str, int]:
        return elementKey(self.element)


@dataclass(frozen=True)
class DeferredStopPosition:
    node: Node

    kind = DeferredKind.STOP_POSITION

    @property
    def key(self) -> Tuple[str, int]:
        return elementKey(self.node)


@dataclass(frozen=True)
class DeferredFerryTerminal:
    node: Node

    kind = DeferredKind.FERRY_TERMINAL

    @property
    def key(self) -> Tuple[str, int]:
        return elementKey(self.node)


@dataclass(frozen=True)
class RetainedOuterWay:
    wayId: int

    kind = DeferredKind.RETAINED_OUTER_WAY

    @property
    def key(self) -> Tuple[str, int]:
        return "way", self.wayId


DeferredItem = Union[
    DeferredStation, DeferredStopPosition, DeferredFerryTerminal, RetainedOuterWay
]
