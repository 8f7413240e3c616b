import pytest

from groundpass.astrodynamics.elements import TLEFileSource, parse_tle_text
from groundpass.base.errors import ElementsNotFound

NOAA_TLE = """NOAA 15 [B]
1 25338U 98030A   24122.52885447  .00000351  00000-0  16244-3 0  9990
2 25338  98.5667 149.2409 0010361 113.0480 247.1772 14.26674233354217

NOAA 19 [+]
1 33591U 09005A   24122.49186566  .00000342  00000-0  20814-3 0  9992
2 33591  99.0487 175.4457 0013244 257.0420 102.9276 14.13005017786050
"""


def test_parse_tle_text_skips_blank_lines():
    elements = parse_tle_text(NOAA_TLE)
    assert list(elements) == ["NOAA 15 [B]", "NOAA 19 [+]"]
    assert elements["NOAA 19 [+]"].line1.startswith("1 33591U")
    assert elements["NOAA 19 [+]"].line2.startswith("2 33591")


def test_parse_tle_text_resynchronises_after_garbage():
    text = "garbage\n" + NOAA_TLE
    elements = parse_tle_text(text)
    assert "NOAA 15 [B]" in elements
    assert "NOAA 19 [+]" in elements


def test_source_prefix_lookup(tmp_path):
    path = tmp_path / "weather.txt"
    path.write_text(NOAA_TLE)
    source = TLEFileSource(path)

    assert source.get("NOAA 19").name == "NOAA 19 [+]"
    assert source.get("NOAA 15 [B]").line1.startswith("1 25338U")
    with pytest.raises(ElementsNotFound):
        source.get("NOAA 18")


def test_missing_file_reports_every_object_not_found(tmp_path):
    source = TLEFileSource(tmp_path / "missing.txt")
    assert source.load() == {}
    with pytest.raises(ElementsNotFound):
        source.get("NOAA 19")
