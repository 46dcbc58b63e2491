"""Split text into reveal units for the typewriter and word-bounce modes."""
from __future__ import annotations

import re
import unicodedata
from typing import List

_WHITESPACE_RE = re.compile(r"\s+")
_BREAK_CHARS = frozenset("、。！？!?,.，．；;：:…")

DEFAULT_CHUNK_SIZE = 3


def is_dense_char(ch: str) -> bool:
    """True for scripts written without spaces between words (CJK, kana, Thai...)."""
    if not ch or ch.isspace():
        return False
    code = ord(ch)
    if (
        0x3040 <= code <= 0x30FF  # hiragana, katakana
        or 0x3400 <= code <= 0x4DBF  # CJK extension A
        or 0x4E00 <= code <= 0x9FFF  # CJK unified
        or 0xF900 <= code <= 0xFAFF  # CJK compatibility
        or 0xFF66 <= code <= 0xFF9F  # halfwidth katakana
        or 0x0E00 <= code <= 0x0E7F  # Thai
        or 0x0E80 <= code <= 0x0EFF  # Lao
        or 0x1000 <= code <= 0x109F  # Myanmar
        or 0x1780 <= code <= 0x17FF  # Khmer
        or 0x20000 <= code <= 0x2FA1F  # CJK supplementary planes
    ):
        return True
    # Fullwidth/ideographic punctuation travels with dense text
    return unicodedata.east_asian_width(ch) in {"W", "F"} and unicodedata.category(ch).startswith("P")


def is_dense_script(text: str) -> bool:
    """Decide whether ``text`` should be revealed character by character.

    Text counts as dense when at least half of its non-space characters belong
    to a dense script. Mixed text such as ``"AIで効率化"`` therefore reveals per
    character, while English with the odd kanji reveals per token.
    """
    letters = [ch for ch in (text or "") if not ch.isspace()]
    if not letters:
        return False
    dense = sum(1 for ch in letters if is_dense_char(ch))
    return dense * 2 >= len(letters)


def split_characters(text: str) -> List[str]:
    """Every non-whitespace character, in order."""
    trimmed = (text or "").strip()
    return [ch for ch in trimmed if not ch.isspace()]


def split_tokens(text: str) -> List[str]:
    """Whitespace-delimited tokens."""
    trimmed = (text or "").strip()
    if not trimmed:
        return []
    return [token for token in _WHITESPACE_RE.split(trimmed) if token]


def split_reveal_units(text: str) -> List[str]:
    """Atomic units for the typewriter: characters for dense scripts, tokens otherwise."""
    if is_dense_script(text):
        return split_characters(text)
    return split_tokens(text)


def split_word_chunks(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """Word-like chunks for the bounce animation.

    Text containing spaces splits on whitespace. Dense text without spaces is
    grouped into runs of ``chunk_size`` characters, closing a chunk early after
    punctuation so that a chunk never straddles a clause boundary.
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    trimmed = (text or "").strip()
    if not trimmed:
        return []
    if _WHITESPACE_RE.search(trimmed) or not is_dense_script(trimmed):
        return split_tokens(trimmed)

    chunks: List[str] = []
    current = ""
    for ch in trimmed:
        if ch.isspace():
            continue
        if ch in _BREAK_CHARS and not current and chunks:
            # Leading punctuation joins the previous chunk
            chunks[-1] += ch
            continue
        current += ch
        if ch in _BREAK_CHARS or len(current) >= chunk_size:
            chunks.append(current)
            current = ""
    if current:
        chunks.append(current)
    return chunks
