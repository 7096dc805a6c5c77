import pytest

from calibration_catalog.errors import ConfigError
from calibration_catalog.sources import SourceTerm, parse_sources


@pytest.mark.parametrize(
    "text,terms",
    [
        ("dark", [(1.0, "dark")]),
        ("flat + back", [(1.0, "flat"), (1.0, "back")]),
        ("dark + 0.5*background", [(1.0, "dark"), (0.5, "background")]),
        ("2 * sky_1+.25 lamp", [(2.0, "sky_1"), (0.25, "lamp")]),
    ],
)
def test_parse_sources(text, terms):
    expression = parse_sources(text)
    assert [(t.coefficient, t.name) for t in expression] == terms


def test_sources_round_trip_text():
    expression = parse_sources("dark+0.5*background")
    assert str(expression) == "dark + 0.5*background"
    assert expression.names == ["dark", "background"]
    assert expression.terms[0] == SourceTerm(1.0, "dark")


@pytest.mark.parametrize(
    "text",
    ["", "   ", "dark -", "dark - flat", "dark + ", "0.5", "dark flat", "__import__('os')", "dark*2"],
)
def test_invalid_sources(text):
    with pytest.raises(ConfigError):
        parse_sources(text)


def test_sources_must_be_text():
    with pytest.raises(ConfigError, match="text"):
        parse_sources(42)
