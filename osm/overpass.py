import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from starsep_utils import (
    Element,
    OverpassResult,
    Relation,
    RelationMember,
    Way,
    downloadOverpassData,
)
from starsep_utils.overpass import _parseOverpassData

from configuration import OVERPASS_URL, ElementKey


def elementKey(element: Union[Element, RelationMember]) -> ElementKey:
    return element.type, element.id


def isClosedWay(way: Way) -> bool:
    return len(way.nodes) >= 4 and way.nodes[0] == way.nodes[-1]


def membersWithRole(relation: Relation, *roles: str) -> List[RelationMember]:
    return [member for member in relation.members if member.role in roles]


def resolveMember(overpassResult: OverpassResult, member: RelationMember) -> Optional[Element]:
    """Element referenced by a relation member, None when it is not in the extract."""
    elements = dict(
        node=overpassResult.nodes,
        way=overpassResult.ways,
        relation=overpassResult.relations,
    )
    return elements[member.type].get(member.id)


def buildPublicTransportQuery(south: float, west: float, north: float, east: float) -> str:
    """Overpass QL for the road, rail and ferry network plus the public transport tagging in a box."""
    bbox = f"{south},{west},{north},{east}"
    return f"""
    (
        way["highway"]({bbox});
        way["railway"]({bbox});
        way["route"="ferry"]({bbox});
        node["public_transport"]({bbox});
        node["highway"~"^(bus_stop|platform)$"]({bbox});
        node["railway"]({bbox});
        node["amenity"="ferry_terminal"]({bbox});
        relation["public_transport"]({bbox});
        relation["type"="multipolygon"]["public_transport"="platform"]({bbox});
    );
    (._;>;);
    out body;
    """


def downloadPublicTransportData(
    south: float, west: float, north: float, east: float
) -> OverpassResult:
    query = buildPublicTransportQuery(south, west, north, east)
    return asyncio.run(downloadOverpassData(query=query, overpassUrl=OVERPASS_URL))


def parseOverpassElements(elements: List[Dict]) -> OverpassResult:
    for element in elements:
        # members of Overpass JSON always carry a role, hand written files may not
        for member in element.get("members", []):
            member.setdefault("role", "")
    return _parseOverpassData(elements)


def loadOverpassFile(path: Path) -> OverpassResult:
    logging.info(f"📂 Loading {path}")
    with path.open() as f:
        return parseOverpassElements(json.load(f)["elements"])
