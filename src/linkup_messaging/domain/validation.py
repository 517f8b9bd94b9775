"""Value checks shared by request models and services."""

import unicodedata

# Joiners, variation selectors and keycap marks that compose
# multi-codepoint emoji.
_EMOJI_COMPONENTS = {0x200D, 0xFE0E, 0xFE0F, 0x20E3}
# Emoji outside the "other symbol" category: ‼ ⁉ 〰 〽
_EMOJI_PUNCTUATION = {0x203C, 0x2049, 0x3030, 0x303D}
_KEYCAP_BASES = set("0123456789#*")
_KEYCAP = "⃣"
_MAX_EMOJI_LENGTH = 10


def _is_emoji_codepoint(char: str) -> bool:
    code = ord(char)
    if code in _EMOJI_COMPONENTS or code in _EMOJI_PUNCTUATION:
        return True
    if 0x1F3FB <= code <= 0x1F3FF:  # skin tones
        return True
    if 0xE0020 <= code <= 0xE007F:  # tag sequences (subdivision flags)
        return True
    if 0x1F1E6 <= code <= 0x1F1FF:  # regional indicators
        return True
    return unicodedata.category(char) == "So"


def is_valid_emoji(value: str) -> bool:
    """True when ``value`` is a short, non-empty run of emoji code points.

    Digits, ``#`` and ``*`` only count as part of a keycap sequence.
    """
    if not value or len(value) > _MAX_EMOJI_LENGTH:
        return False
    keycap = _KEYCAP in value
    return all(
        _is_emoji_codepoint(char) or (keycap and char in _KEYCAP_BASES) for char in value
    )


def is_https_url(value: str) -> bool:
    return isinstance(value, str) and value.startswith("https://") and len(value) > len("https://")
