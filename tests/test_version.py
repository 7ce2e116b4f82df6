import json

from geyserkafka.version import LABEL_NAMES, VERSION, Version


def test_package_name():
    assert VERSION.as_dict()["package"] == "geyserkafka"


def test_as_dict_keeps_field_order():
    assert list(VERSION.as_dict()) == [
        "package",
        "version",
        "proto",
        "solana",
        "git",
        "rustc",
        "buildts",
    ]


def test_to_json_round_trip():
    version = Version("pkg", "1.2.3", "p", "s", "g", "r", "b")
    assert json.loads(version.to_json()) == version.as_dict()


def test_to_json_is_compact():
    version = Version("pkg", "1.2.3", "p", "s", "g", "r", "b")
    text = version.to_json()
    assert " " not in text
    assert text.startswith('{"package":"pkg"')


def test_label_values_follow_label_names():
    values = VERSION.label_values()
    assert len(values) == len(LABEL_NAMES)
    assert dict(zip(LABEL_NAMES, values)) == VERSION.as_dict()


def test_label_values_order():
    version = Version("pkg", "1.2.3", "p", "s", "g", "r", "b")
    assert list(version.label_values()) == ["b", "g", "pkg", "p", "r", "s", "1.2.3"]