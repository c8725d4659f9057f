import asyncio

import pytest

from fakes import make_record

from vocabmaster.exceptions import ProviderMiss
from vocabmaster.models import InputType
from vocabmaster.providers.base import LookupQuery
from vocabmaster.providers.dictionary import PrimaryDictionaryProvider, SecondaryDictionaryProvider
from vocabmaster.providers.pronunciation import PronunciationPolicy, VoiceInfo
from vocabmaster.providers.registry import ProviderRegistry
from vocabmaster.providers.translation import LLMFallbackProvider, TranslationOnlyProvider
from vocabmaster.services.translation_service import TranslationService


def word_query(text, display=None):
    return LookupQuery(text=text, display_word=display or text, input_type=InputType.WORD)


FREE_DICTIONARY_RUN = [
    {
        "word": "run",
        "phonetics": [{"text": "/rʌn/", "audio": ""}, {"audio": "https://audio.test/run-us.mp3"}],
        "meanings": [
            {
                "partOfSpeech": "verb",
                "definitions": [
                    {"definition": "To move swiftly.", "example": "Run to the shop.", "synonyms": ["sprint"]},
                    {"definition": ""},
                ],
                "synonyms": ["a", "b", "c", "d", "e", "f", "g"],
            },
            {"partOfSpeech": "noun", "definitions": []},
        ],
    },
    {"word": "run", "meanings": [{"partOfSpeech": "noun", "definitions": [{"definition": "second entry"}]}]},
]


class TestPrimaryDictionary:

    def test_parse_first_entry(self):
        record = PrimaryDictionaryProvider.parse(FREE_DICTIONARY_RUN, word_query("run", "Run"))

        assert record.key == "run"
        assert record.display_word == "Run"
        assert record.phonetic == "/rʌn/"
        assert record.audio_url == "https://audio.test/run-us.mp3"
        assert record.source == "primary"
        assert len(record.meanings) == 1
        verb = record.meanings[0]
        assert verb.part_of_speech == "verb"
        assert len(verb.synonyms) == 5
        assert [d.text for d in verb.definitions] == ["To move swiftly."]
        assert verb.definitions[0].example == "Run to the shop."

    def test_top_level_phonetic_wins(self):
        data = [dict(FREE_DICTIONARY_RUN[0], phonetic="/ɹʌn/")]
        assert PrimaryDictionaryProvider.parse(data, word_query("run")).phonetic == "/ɹʌn/"

    @pytest.mark.parametrize("data", [
        [],
        {"title": "No Definitions Found"},
        [{"word": "run", "meanings": []}],
        ["garbage"],
    ])
    def test_unusable_payload_is_a_miss(self, data):
        with pytest.raises(ProviderMiss):
            PrimaryDictionaryProvider.parse(data, word_query("run"))

    def test_lookup_url_is_lowercased(self, monkeypatch):
        provider = PrimaryDictionaryProvider("https://dict.test/entries/en")
        urls = []

        async def fake_get_json(url, params=None):
            urls.append(url)
            return FREE_DICTIONARY_RUN

        monkeypatch.setattr(provider, "get_json", fake_get_json)
        asyncio.run(provider.try_resolve(word_query("Run")))
        assert urls == ["https://dict.test/entries/en/run"]


WIKTIONARY_PHRASE = {
    "fr": [{"partOfSpeech": "Noun", "definitions": [{"definition": "french sense"}]}],
    "en": [
        {
            "partOfSpeech": "Phrase",
            "definitions": [
                {
                    "definition": "<i>Used to</i> express &quot;surprise&quot;",
                    "examples": ["<b>Break a leg</b> tonight!", "", "two", "three", "four"],
                },
                {"definition": "<span></span>"},
            ],
        },
        {"partOfSpeech": "Noun", "definitions": [{"definition": "  "}]},
    ],
}


class TestSecondaryDictionary:

    def test_parse_prefers_english_and_strips_markup(self):
        record = SecondaryDictionaryProvider.parse(WIKTIONARY_PHRASE, word_query("break a leg"))

        assert record.key == "break a leg"
        assert record.source == "secondary"
        assert len(record.meanings) == 1
        definitions = record.meanings[0].definitions
        assert [d.text for d in definitions] == ['Used to express "surprise"']
        assert definitions[0].example == "Break a leg tonight!"

    def test_first_non_empty_example_is_kept(self):
        data = {"en": [{"partOfSpeech": "Verb", "definitions": [
            {"definition": "to go", "examples": ["<i></i>", "  ", "Off we go.", "Go now."]},
        ]}]}
        record = SecondaryDictionaryProvider.parse(data, word_query("go"))

        assert record.meanings[0].definitions[0].example == "Off we go."

    def test_falls_back_to_first_language_with_entries(self):
        record = SecondaryDictionaryProvider.parse(
            {"fr": WIKTIONARY_PHRASE["fr"]}, word_query("bonjour")
        )
        assert record.meanings[0].definitions[0].text == "french sense"

    @pytest.mark.parametrize("data", [
        {},
        [],
        {"en": [{"partOfSpeech": "Noun", "definitions": [{"definition": "<br/>"}]}]},
    ])
    def test_unusable_payload_is_a_miss(self, data):
        with pytest.raises(ProviderMiss):
            SecondaryDictionaryProvider.parse(data, word_query("x"))

    def test_phrase_slug(self, monkeypatch):
        provider = SecondaryDictionaryProvider("https://wiki.test/definition")
        urls = []

        async def fake_get_json(url, params=None):
            urls.append(url)
            return WIKTIONARY_PHRASE

        monkeypatch.setattr(provider, "get_json", fake_get_json)
        asyncio.run(provider.try_resolve(word_query("Break  a Leg")))
        assert urls == ["https://wiki.test/definition/break_a_leg"]


class TestRegistry:

    def test_default_tiers_share_instances(self):
        service = TranslationService()
        tiers = ProviderRegistry.build_tiers(translation_service=service)

        assert [p.tag for p in tiers[InputType.WORD]] == ["primary", "secondary", "translation-only", "llm"]
        assert [p.tag for p in tiers[InputType.PHRASE]] == ["secondary", "primary", "translation-only", "llm"]
        assert tiers[InputType.WORD][0] is tiers[InputType.PHRASE][1]
        assert isinstance(tiers[InputType.WORD][2], TranslationOnlyProvider)
        assert isinstance(tiers[InputType.WORD][3], LLMFallbackProvider)

    def test_translation_tiers_wait_for_the_join(self):
        tiers = ProviderRegistry.build_tiers(translation_service=TranslationService())
        flags = [p.requires_translation for p in tiers[InputType.WORD]]
        assert flags == [False, False, True, True]

    def test_unknown_tag(self):
        with pytest.raises(ValueError):
            ProviderRegistry.create("no-such-tier")

    def test_llm_tier_needs_translation_service(self):
        with pytest.raises(ValueError):
            ProviderRegistry.create("llm")


class TestPronunciationPolicy:

    VOICES = [
        VoiceInfo("Alex", "en-US", local_service=False),
        VoiceInfo("Samantha", "en-US", local_service=True),
        VoiceInfo("Ava (Premium)", "en-US"),
        VoiceInfo("Tingting", "zh-CN", local_service=True),
    ]

    def test_quality_voice_first(self):
        assert PronunciationPolicy.pick_local_voice(self.VOICES, "en-GB").name == "Ava (Premium)"

    def test_local_voice_next(self):
        voices = [v for v in self.VOICES if "Premium" not in v.name]
        assert PronunciationPolicy.pick_local_voice(voices, "en-US").name == "Samantha"

    def test_any_matching_voice(self):
        assert PronunciationPolicy.pick_local_voice(self.VOICES[:1], "en").name == "Alex"

    def test_no_matching_voice(self):
        assert PronunciationPolicy.pick_local_voice(self.VOICES, "fr-FR") is None

    def test_sources_without_record_audio(self):
        sources = PronunciationPolicy().sources(make_record("run"), "en-US", self.VOICES)

        assert [s.kind for s in sources] == ["neural-tts", "local-speech"]
        assert sources[0].voice == "en-US-AriaNeural"
        assert sources[1].voice == "Ava (Premium)"

    def test_sources_speak_the_display_word(self):
        record = make_record("hello", display_word="你好")
        sources = PronunciationPolicy().sources(record, "zh-CN", self.VOICES)

        assert all(s.text == "你好" for s in sources)
        assert sources[0].voice == "zh-CN-XiaoxiaoNeural"
        assert sources[1].voice == "Tingting"
