import pytest

from vibes_pipeline.features.vibes.errors import ParseError
from vibes_pipeline.features.vibes.services.json_repair import (
    extract_json_text,
    parse_model_json,
    repair_json_text,
)


def test_clean_json_is_not_marked_repaired():
    value, repaired = parse_model_json('{"tagline": "Bright and airy"}')

    assert value == {"tagline": "Bright and airy"}
    assert repaired is False


def test_code_fences_and_prose_are_stripped():
    raw = 'Here you go:\n```json\n{"a": 1}\n```\nEnjoy!'

    assert extract_json_text(raw) == '{"a": 1}'
    assert parse_model_json(raw) == ({"a": 1}, False)


def test_trailing_comma_is_repaired():
    value, repaired = parse_model_json('{"a": [1, 2,], "b": {"c": 3,},}')

    assert value == {"a": [1, 2], "b": {"c": 3}}
    assert repaired is True


def test_adjacent_objects_get_a_separator():
    raw = '{"primaryVibes": [{"name": "Calm"} {"name": "Bright"}]}'

    value, repaired = parse_model_json(raw)

    assert value["primaryVibes"] == [{"name": "Calm"}, {"name": "Bright"}]
    assert repaired is True


def test_adjacent_top_level_objects_are_merged():
    value, repaired = parse_model_json('{"tagline": "Bright and airy home"}{"vibeStatement": "x"}')

    assert value == {"tagline": "Bright and airy home", "vibeStatement": "x"}
    assert repaired is True


def test_top_level_array_between_objects_is_not_merged():
    with pytest.raises(ParseError):
        parse_model_json('{"a": 1}[1, 2]{"b": 2}')


def test_repair_leaves_valid_text_alone():
    text = '{"a": [{"b": 1}, {"c": 2}]}'

    assert repair_json_text(text) == text


def test_unrecoverable_text_raises_parse_error():
    with pytest.raises(ParseError) as exc_info:
        parse_model_json("I could not analyze these photos.")

    assert exc_info.value.code == "parse_error"
