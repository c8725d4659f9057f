import pytest

from vocabmaster.lookup.classifier import classify
from vocabmaster.models import Definition, InputType, WordRecord
from vocabmaster.utils.parsing import TextParser


class TestClassifier:

    @pytest.mark.parametrize("text,expected", [
        ("run", InputType.WORD),
        ("  run  ", InputType.WORD),
        ("", InputType.WORD),
        (None, InputType.WORD),
        ("multi word phrase", InputType.PHRASE),
        ("break\ta leg", InputType.PHRASE),
        ("你好", InputType.CHINESE),
        ("hello 世界 again", InputType.CHINESE),
        ("㐀", InputType.CHINESE),
        ("café", InputType.WORD),
    ])
    def test_classify(self, text, expected):
        assert classify(text) == expected

    def test_classification_is_stable(self):
        assert {classify("take off") for _ in range(5)} == {InputType.PHRASE}


class TestTextParser:

    @pytest.mark.parametrize("raw,lemma", [
        ("Hello.", "hello"),
        ("  Thank you! ", "thank you"),
        ("Really?!", "really"),
        ("e.g. this", "e.g. this"),
        ("apple", "apple"),
    ])
    def test_to_lemma(self, raw, lemma):
        assert TextParser.to_lemma(raw) == lemma

    def test_only_one_trailing_run_is_removed(self):
        assert TextParser.strip_trailing_punctuation("wait... what?") == "wait... what"

    def test_normalize_key(self):
        assert TextParser.normalize_key("  Café ") == "café"

    def test_slugify(self):
        assert TextParser.slugify(" Break  a\tLeg ") == "break_a_leg"

    def test_strip_html(self):
        assert TextParser.strip_html("<a href='x'>run</a> &amp; walk") == "run & walk"
        assert TextParser.strip_html(None) == ""

    @pytest.mark.parametrize("raw", ['```json\n[1, 2]\n```', '```\n[1, 2]\n```', '[1, 2]'])
    def test_strip_code_fence(self, raw):
        assert TextParser.strip_code_fence(raw) == "[1, 2]"

    def test_clean_for_tts(self):
        assert TextParser.clean_for_tts("<b>run</b>\n  fast") == "run fast"


class TestWordRecord:

    def test_key_is_normalized(self):
        record = WordRecord(key="  Run ")
        assert record.key == "run"
        assert record.display_word == "run"
        assert record.is_empty

    def test_serialized_shape(self):
        record = WordRecord(key="run", translation="跑", level=2, next_review_at=5, added_at=1)
        data = record.to_dict()
        assert data["word"] == "run"
        assert data["displayWord"] == "run"
        assert data["nextReviewAt"] == 5
        assert "extrasCache" not in data

    def test_reads_older_backup_fields(self):
        record = WordRecord.from_dict({
            "word": "Run",
            "meanings": [{
                "partOfSpeech": "verb",
                "definitions": [{"definition": "to move", "examples": ["run!"], "translationZh": "跑"}],
            }],
            "reviewCount": 2.0,
        })
        definition = record.meanings[0].definitions[0]
        assert definition == Definition("to move", example="run!", translation="跑")
        assert record.review_count == 2
        assert record.key == "run"

    @pytest.mark.parametrize("data", [
        "run",
        {},
        {"word": "  "},
        {"word": "run", "meanings": "verb"},
        {"word": "run", "level": True},
    ])
    def test_rejects_malformed(self, data):
        with pytest.raises(ValueError):
            WordRecord.from_dict(data)
