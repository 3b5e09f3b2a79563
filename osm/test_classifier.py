from configuration import ZoningSettings
from osm.classifier import PtScheme, PtValue, TagClassifier


def test_classifyPrefersPtv2():
    classifier = TagClassifier(ZoningSettings())
    tags = {"public_transport": "platform", "highway": "bus_stop"}
    assert classifier.classify(tags) == PtScheme.PTV2
    assert classifier.classify({"highway": "bus_stop"}) == PtScheme.PTV1
    assert classifier.classify({"amenity": "ferry_terminal"}) == PtScheme.PTV1
    assert classifier.classify({"highway": "residential"}) == PtScheme.NONE
    assert classifier.classify({"public_transport": "pole"}) == PtScheme.NONE


def test_classifyIsPure():
    classifier = TagClassifier(ZoningSettings())
    tags = {"public_transport": "stop_position", "bus": "yes"}
    results = {classifier.classify(tags, "node", 1) for _ in range(3)}
    assert results == {PtScheme.PTV2}
    assert tags == {"public_transport": "stop_position", "bus": "yes"}


def test_classifyRespectsSettings():
    tags = {"public_transport": "platform", "highway": "bus_stop"}
    assert TagClassifier(ZoningSettings(ptv2Active=False)).classify(tags) == PtScheme.PTV1
    assert (
        TagClassifier(ZoningSettings(ptv2Active=False, ptv1Active=False)).classify(tags)
        == PtScheme.NONE
    )
    assert TagClassifier(ZoningSettings(parserActive=False)).classify(tags) == PtScheme.NONE

    settings = ZoningSettings(excludedElements={("node", 7)})
    classifier = TagClassifier(settings)
    assert classifier.classify(tags, "node", 7) == PtScheme.NONE
    assert classifier.classify(tags, "way", 7) == PtScheme.PTV2


def test_ptValue():
    assert TagClassifier.ptValue({"public_transport": "station"}, PtScheme.PTV2) == PtValue.STATION
    assert TagClassifier.ptValue({"railway": "halt"}, PtScheme.PTV1) == PtValue.HALT
    assert TagClassifier.ptValue({"highway": "platform"}, PtScheme.PTV1) == PtValue.PLATFORM
    assert (
        TagClassifier.ptValue({"amenity": "ferry_terminal"}, PtScheme.PTV1)
        == PtValue.FERRY_TERMINAL
    )
    assert TagClassifier.ptValue({"railway": "halt"}, PtScheme.NONE) == PtValue.UNSUPPORTED


def test_conflictingPtv1Value():
    tags = {"public_transport": "stop_position", "railway": "tram_stop"}
    assert TagClassifier.conflictingPtv1Value(tags) == PtValue.TRAM_STOP
    assert TagClassifier.conflictingPtv1Value({"public_transport": "stop_position"}) is None
    assert TagClassifier.conflictingPtv1Value({"railway": "tram_stop"}) is None
