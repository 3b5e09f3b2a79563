OSMError = str


class ZoningError(Exception):
    pass


def osmErrorMissingMember(relationId: int, memberType: str, memberId: int) -> OSMError:
    return f"Stop area {relationId} references {memberType} {memberId} which is not available, skipped"


def osmErrorNoModes(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: {osmType} {osmId} has no activated public transport mode"


def osmErrorFerryNotOnNetwork(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: ferry stop {osmType} {osmId} is not on the ferry network and cannot be connected"


def osmErrorFerryTerminalWay(wayId: int) -> OSMError:
    return f"DISCARD: ferry terminal way {wayId} is not supported, tag a node instead"


def osmErrorDanglingFerryStop(nodeId: int, radius: float) -> OSMError:
    return f"DISCARD: dangling ferry stop {nodeId} has no ferry route within {radius:.0f}m"


def osmErrorStopPositionOnWay(wayId: int) -> OSMError:
    return f"Way {wayId} is tagged as stop_position, only nodes can be stop positions, ignored"


def osmErrorStopAreaOnWay(wayId: int) -> OSMError:
    return f"Way {wayId} is tagged as stop_area, only relations can be stop areas, ignored"


def osmErrorStopAreaOnNode(nodeId: int) -> OSMError:
    return f"Node {nodeId} is tagged as stop_area, only relations can be stop areas, ignored"


def osmErrorStopPositionNotNode(relationId: int, memberType: str, memberId: int) -> OSMError:
    return f"Stop area {relationId} has {memberType} {memberId} in stop role, only nodes can be stops"


def osmErrorStopRoleStation(relationId: int, nodeId: int) -> OSMError:
    return f"SALVAGED: stop role member {nodeId} of stop area {relationId} is a station, used as group name"


def osmErrorStopRolePlatform(relationId: int, nodeId: int) -> OSMError:
    return f"SALVAGED: stop role member {nodeId} of stop area {relationId} is a waiting area, used as platform"


def osmErrorStopRoleUnidentified(relationId: int, nodeId: int) -> OSMError:
    return f"DISCARD: stop role member {nodeId} of stop area {relationId} is not a stop position and remains unidentified"


def osmErrorStopPositionWithoutWaitingArea(nodeId: int) -> OSMError:
    return f"DISCARD: stop position {nodeId} has no waiting area to serve"


def osmErrorStopPositionNotInLayer(nodeId: int, mode: str) -> OSMError:
    return f"DISCARD: stop position {nodeId} is not on the {mode} network"


def osmErrorStopPositionWithoutLinks(nodeId: int, mode: str) -> OSMError:
    return f"DISCARD: stop position {nodeId} has no {mode} link to attach to"


def osmErrorUnknownStopPositionSalvaged(relationId: int, nodeId: int) -> OSMError:
    return f"SALVAGED: unknown stop position {nodeId} of stop area {relationId} attached to closest waiting area"


def osmErrorNoAccessibleLinks(osmType: str, osmId: int, mode: str) -> OSMError:
    return f"DISCARD: {osmType} {osmId} has no accessible {mode} link nearby"


def osmErrorOnNetworkWithoutConnectoids(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: {osmType} {osmId} is part of the network but has no stop location"


def osmErrorWaterPlatform(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: water platform {osmType} {osmId} without stop position"


def osmErrorWaterStation(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: water based stand-alone station {osmType} {osmId}"


def osmErrorStationWithoutAccessLinks(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: stand-alone station {osmType} {osmId} has no accessible links"


def osmErrorNominatedWayMissing(osmType: str, osmId: int, wayId: int) -> OSMError:
    return f"DISCARD: way {wayId} nominated for {osmType} {osmId} is not part of the network"


def osmErrorMultipolygonWithoutOuter(relationId: int) -> OSMError:
    return f"DISCARD: platform multipolygon {relationId} has no available outer way"


def osmErrorWayMissingNodes(wayId: int) -> OSMError:
    return f"DISCARD: way {wayId} references nodes which are not available"


def osmErrorTramStopOffNetwork(nodeId: int) -> OSMError:
    return f"DISCARD: tram stop {nodeId} does not reside on a tram track"


def osmErrorStopPositionOnDeactivatedInfrastructure(nodeId: int) -> OSMError:
    return f"DISCARD: stop position {nodeId} resides on deactivated or missing infrastructure, no compatible link nearby"


def osmErrorStopPositionSalvagedAsPtv1(nodeId: int, value: str) -> OSMError:
    return f"SALVAGED: stop position {nodeId} also tagged as {value} is not on the network, processed as {value} instead"


def osmErrorStopPositionWithoutPtv1Context(nodeId: int) -> OSMError:
    return f"DISCARD: stop position {nodeId} is not on the network and carries no scheme A tag to salvage it"


def osmErrorUnavailableStopAreaWay(relationId: int, wayId: int) -> OSMError:
    return f"DISCARD: way {wayId} referenced in stop area {relationId} is neither a station nor a waiting area"


def osmErrorStationWithoutModes(osmType: str, osmId: int) -> OSMError:
    return f"DISCARD: station {osmType} {osmId} serves no activated mode"
