from osm.modes import (
    BUS,
    FERRY,
    TRAIN,
    TRAM,
    collectPublicTransportModes,
    identifyPtv1DefaultMode,
    isModeCompatible,
    isPtv2StopPositionPtv1Stop,
)
from osm.tags import refValues, verticalLayer


def test_identifyPtv1DefaultMode():
    assert identifyPtv1DefaultMode({"highway": "bus_stop"}) == BUS
    assert identifyPtv1DefaultMode({"railway": "tram_stop"}) == TRAM
    assert identifyPtv1DefaultMode({"railway": "halt"}) == TRAIN
    assert identifyPtv1DefaultMode({"amenity": "ferry_terminal"}) == FERRY
    assert identifyPtv1DefaultMode({"public_transport": "platform", "ferry": "yes"}) == FERRY
    assert identifyPtv1DefaultMode({"public_transport": "platform"}) is None
    assert identifyPtv1DefaultMode({"public_transport": "station"}, TRAIN) == TRAIN


def test_collectPublicTransportModes():
    assert collectPublicTransportModes({"bus": "yes", "tram": "yes"}) == {BUS, TRAM}
    assert collectPublicTransportModes({"bus": "yes", "tram": "no"}, TRAIN) == {BUS}
    assert collectPublicTransportModes({"name": "Centrum"}, TRAIN) == {TRAIN}
    assert collectPublicTransportModes({"name": "Centrum"}) == set()


def test_isModeCompatible():
    assert isModeCompatible({BUS, TRAM}, {TRAM}, allowPseudo=False)
    assert not isModeCompatible({BUS}, {"trolleybus"}, allowPseudo=False)
    assert isModeCompatible({BUS}, {"trolleybus"}, allowPseudo=True)
    assert not isModeCompatible({BUS}, {TRAIN}, allowPseudo=True)
    assert not isModeCompatible(set(), {TRAIN}, allowPseudo=True)


def test_isPtv2StopPositionPtv1Stop():
    assert isPtv2StopPositionPtv1Stop({"public_transport": "stop_position", "highway": "bus_stop"})
    assert isPtv2StopPositionPtv1Stop({"public_transport": "stop_position", "railway": "halt"})
    assert not isPtv2StopPositionPtv1Stop({"public_transport": "stop_position", "bus": "yes"})


def test_refValues():
    assert refValues({"ref": "01;02", "local_ref": " 3 "}) == ["01", "02", "3"]
    assert refValues({"name": "Centrum"}) == []


def test_verticalLayer():
    assert verticalLayer({"layer": "-1"}) == -1
    assert verticalLayer({"level": "2;3"}) == 2
    assert verticalLayer({"layer": "roof"}) is None
    assert verticalLayer({}) is None
