import pytest

from sitebuilder.utils.json_parser import extract_json_object


def test_bare_object():
    assert extract_json_object('{"title": "Acme"}') == {"title": "Acme"}


def test_fenced_object_with_chatter():
    text = 'Here you go:\n```json\n{"pages": [{"id": "home"}]}\n```\nThanks'
    assert extract_json_object(text) == {"pages": [{"id": "home"}]}


def test_trailing_commas_are_repaired():
    assert extract_json_object('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}


@pytest.mark.parametrize("text", ["", "   ", "```json\n{\"a\": 1}", "no json here", "[1, 2]"])
def test_unusable_output_raises(text):
    with pytest.raises(ValueError):
        extract_json_object(text)
