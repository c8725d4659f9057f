"""Language-specific configurations."""

LANG_CONFIG = {
    "en": {
        "label": "ENGLISH",
        "translation_code": "en",
        "speech_code": "en-US",
        "voice": "en-US-AriaNeural",
        "available_voices": [
            "en-US-AriaNeural",
            "en-US-GuyNeural",
            "en-GB-SoniaNeural",
            "en-GB-RyanNeural",
        ],
    },
    "zh": {
        "label": "中文",
        "translation_code": "zh-CN",
        "speech_code": "zh-CN",
        "voice": "zh-CN-XiaoxiaoNeural",
        "available_voices": [
            "zh-CN-XiaoxiaoNeural",
            "zh-CN-YunxiNeural",
        ],
    },
}


def get_language(code: str) -> dict:
    """
    Resolve a language entry from a short or BCP-47 code.

    "en-US", "en" and "EN" all map to the English entry. Unknown codes fall
    back to English.
    """
    prefix = (code or "en").split("-")[0].lower()
    return LANG_CONFIG.get(prefix, LANG_CONFIG["en"])
