from __future__ import annotations

import pytest

from topic2pptx.deck import PLACEHOLDER_BULLET, normalize_deck, parse_model_output
from topic2pptx.errors import InvalidDeckError


def test_pads_bullets_to_three() -> None:
    deck = normalize_deck({"slides": [{"title": "A", "bullets": ["x", "y"]}]})
    assert deck.slides[0].title == "A"
    assert deck.slides[0].bullets == ["x", "y", "(fill in)"]


def test_missing_title_and_empty_bullets() -> None:
    deck = normalize_deck({"slides": [{"bullets": ["a", "", "b"]}]})
    assert deck.slides[0].title == "Slide 1"
    assert deck.slides[0].bullets == ["a", "b", PLACEHOLDER_BULLET]


@pytest.mark.parametrize("raw", [{}, {"slides": []}, {"slides": "nope"}, {"slides": [1, "x", None]}])
def test_rejects_payload_without_slides(raw) -> None:
    with pytest.raises(InvalidDeckError):
        normalize_deck(raw)


@pytest.mark.parametrize("raw", [None, "deck", 42, ["slides"]])
def test_rejects_non_objects(raw) -> None:
    with pytest.raises(InvalidDeckError):
        normalize_deck(raw)


def test_non_object_entries_are_dropped_before_numbering() -> None:
    deck = normalize_deck({"slides": ["junk", {"bullets": ["a"]}, None, {"title": "  "}]})
    assert [s.title for s in deck.slides] == ["Slide 1", "Slide 2"]


def test_body_is_split_when_bullets_missing() -> None:
    deck = normalize_deck({"slides": [{"title": "T", "body": "one\r\n two \n\nthree\nfour"}]})
    assert deck.slides[0].bullets == ["one", "two", "three", "four"]


def test_body_ignored_when_bullets_present() -> None:
    deck = normalize_deck({"slides": [{"bullets": ["kept"], "body": "x\ny\nz"}]})
    assert deck.slides[0].bullets == ["kept", PLACEHOLDER_BULLET, PLACEHOLDER_BULLET]


def test_bullet_values_are_stringified_and_not_truncated() -> None:
    deck = normalize_deck({"slides": [{"bullets": [1, None, " two ", 3.5, "4", "5", "6"]}]})
    assert deck.slides[0].bullets == ["1", "two", "3.5", "4", "5", "6"]


def test_title_is_coerced_and_trimmed() -> None:
    deck = normalize_deck({"slides": [{"title": 2024}, {"title": "  Hello  "}]})
    assert [s.title for s in deck.slides] == ["2024", "Hello"]


def test_deck_defaults_and_image_prompt() -> None:
    deck = normalize_deck({"slides": [{"title": "A", "imagePrompt": "a cat"}, {"imagePrompt": 3}]})
    assert deck.topic == "Untitled"
    assert deck.style == "professional"
    assert deck.theme is None
    assert deck.slides[0].image_prompt == "a cat"
    assert deck.slides[1].image_prompt is None


def test_deck_level_fields_are_carried() -> None:
    deck = normalize_deck({"topic": "Solar", "theme": "dark", "style": "casual", "slides": [{}]})
    assert (deck.topic, deck.theme, deck.style) == ("Solar", "dark", "casual")


def test_every_slide_meets_the_floor() -> None:
    raw = {"slides": [{}, {"title": ""}, {"bullets": []}, {"body": ""}, {"bullets": "not a list"}]}
    deck = normalize_deck(raw)
    for slide in deck.slides:
        assert slide.title
        assert len(slide.bullets) >= 3
        assert all(b.strip() for b in slide.bullets)


def test_parse_model_output_plain_and_fenced() -> None:
    assert parse_model_output('{"slides": []}') == {"slides": []}
    fenced = 'Here you go:\n```json\n{"slides": [{"title": "A"}]}\n```'
    assert parse_model_output(fenced) == {"slides": [{"title": "A"}]}


@pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2]"])
def test_parse_model_output_rejects_non_objects(text) -> None:
    with pytest.raises(InvalidDeckError):
        parse_model_output(text)
