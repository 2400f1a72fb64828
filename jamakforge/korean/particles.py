"""Korean particle (josa) selection driven by final-consonant (batchim) analysis."""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterator, List, NamedTuple, Optional, Tuple

HANGUL_BASE = 0xAC00
HANGUL_LAST = 0xD7A3
JONGSEONG_COUNT = 28

# Digits read with a closing consonant: 일 삼 육 칠 팔
DIGIT_HAS_FINAL = {
    "0": False,
    "1": True,
    "2": False,
    "3": True,
    "4": False,
    "5": False,
    "6": True,
    "7": True,
    "8": True,
    "9": False,
}

CLOSING_MARKS = "'\"’”)]}」』》〉"
TRAILING_PUNCT = ".,!?;:…。，！？、" + CLOSING_MARKS


class ParticleCategory(str, Enum):
    SUBJECT = "subject"
    TOPIC = "topic"
    OBJECT = "object"
    DIRECTION = "direction"
    CONJUNCTIVE = "conjunctive"
    SOURCE = "source"
    POSSESSIVE = "possessive"
    ADDITIVE = "additive"
    EXCLUSIVE = "exclusive"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ParticleCategory"]:
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        for member in cls:
            if member.value == lowered:
                return member
        return _CATEGORY_ALIASES.get(lowered)


_CATEGORY_ALIASES = {
    "and": ParticleCategory.CONJUNCTIVE,
    "from": ParticleCategory.SOURCE,
    "possession": ParticleCategory.POSSESSIVE,
    "also": ParticleCategory.ADDITIVE,
    "only": ParticleCategory.EXCLUSIVE,
}

# (with batchim, without batchim)
PARTICLES: dict[ParticleCategory, Tuple[str, str]] = {
    ParticleCategory.SUBJECT: ("이", "가"),
    ParticleCategory.TOPIC: ("은", "는"),
    ParticleCategory.OBJECT: ("을", "를"),
    ParticleCategory.DIRECTION: ("으로", "로"),
    ParticleCategory.CONJUNCTIVE: ("과", "와"),
    ParticleCategory.SOURCE: ("으로부터", "로부터"),
    ParticleCategory.POSSESSIVE: ("의", "의"),
    ParticleCategory.ADDITIVE: ("도", "도"),
    ParticleCategory.EXCLUSIVE: ("만", "만"),
}

INVARIANT_CATEGORIES = frozenset(
    {ParticleCategory.POSSESSIVE, ParticleCategory.ADDITIVE, ParticleCategory.EXCLUSIVE}
)

# Longest variant first so 으로부터 wins over 로부터, 으로 and 로.
_SUFFIX_TABLE: List[Tuple[str, ParticleCategory]] = sorted(
    (
        (variant, category)
        for category, variants in PARTICLES.items()
        if category not in INVARIANT_CATEGORIES
        for variant in set(variants)
    ),
    key=lambda item: (-len(item[0]), item[0]),
)

# Particles commonly written detached from their word ("React 는"); 이 is left out
# because a standalone 이 is far more often the demonstrative.
DETACHED_PARTICLES = frozenset(
    {"은", "는", "을", "를", "가", "와", "과", "로", "으로", "의", "에", "에서", "에게", "한테", "도", "만", "부터", "까지"}
)

# Words whose last syllable only looks like a particle.
LEXICAL_EXCEPTIONS = frozenset(
    {
        "나이", "아이", "오이", "차이", "사이",
        "가을", "마을", "노을", "고을",
        "사과", "효과", "초과", "부과", "투과", "교과",
        "있는", "없는", "않는", "먹는", "읽는", "입는", "찾는", "받는", "듣는", "묻는", "믿는",
        "웃는", "닫는", "걷는", "씻는", "갖는", "맞는", "넘는", "남는", "늦는", "앉는", "잡는",
        "인가", "은가", "는가", "던가",
        "새로", "서로",
    }
)

# After a Hangul stem only these endings are reliably particles; 가, 이, 는,
# 로 and 과 close too many ordinary words (전문가, 나이, 있는, 경로, 치과).
HANGUL_STEM_CATEGORIES = frozenset({ParticleCategory.OBJECT, ParticleCategory.SOURCE})

_TOKEN_RE = re.compile(r"\S+")


def _is_hangul_syllable(char: str) -> bool:
    return HANGUL_BASE <= ord(char) <= HANGUL_LAST


def _has_final(char: str) -> bool:
    if _is_hangul_syllable(char):
        return (ord(char) - HANGUL_BASE) % JONGSEONG_COUNT != 0
    if char in DIGIT_HAS_FINAL:
        return DIGIT_HAS_FINAL[char]
    return False


def has_final_consonant(word: str) -> bool:
    """Return ``True`` when the last character of ``word`` closes with a consonant.

    Hangul syllables are decoded arithmetically, digits use
    ``DIGIT_HAS_FINAL``, and everything else (Latin letters, punctuation, empty input) is
    treated as ending in a vowel.
    """

    if not word:
        return False
    return _has_final(word[-1])


def select_particle(word: str, category: ParticleCategory | str) -> str:
    """Return the particle variant of ``category`` that attaches to ``word``."""

    category = ParticleCategory(category)
    with_final, without_final = PARTICLES[category]
    if category in INVARIANT_CATEGORIES:
        return with_final
    return with_final if has_final_consonant(word) else without_final


def attach_particle(word: str, category: ParticleCategory | str) -> str:
    """Return ``word`` followed by the matching particle, e.g. ``React`` -> ``React를``."""

    return f"{word}{select_particle(word, category)}"


class ParticleMatch(NamedTuple):
    """A ``<stem><particle>`` token located in a larger text."""

    start: int
    end: int
    stem: str
    particle: str
    category: ParticleCategory


def _split_trailing_punct(token: str) -> Tuple[str, str]:
    core = token.rstrip(TRAILING_PUNCT)
    return core, token[len(core):]


def _match_particle(core: str) -> Optional[Tuple[str, str, ParticleCategory]]:
    if core in LEXICAL_EXCEPTIONS:
        return None
    for variant, category in _SUFFIX_TABLE:
        if not core.endswith(variant) or len(core) == len(variant):
            continue
        stem = core[: -len(variant)]
        if not stem[-1].isalnum():
            return None
        return stem, variant, category
    return None


def iter_particles(text: str) -> Iterator[ParticleMatch]:
    """Yield every attached-particle token of ``text`` in order."""

    for token in _TOKEN_RE.finditer(text):
        core, _ = _split_trailing_punct(token.group())
        found = _match_particle(core)
        if found is None:
            continue
        stem, particle, category = found
        yield ParticleMatch(token.start(), token.start() + len(core), stem, particle, category)


def find_particle_spans(text: str) -> List[Tuple[int, int]]:
    """Return ``(start, end)`` spans a line break must not fall inside.

    Covers attached particles (``개발이``) and detached ones written after a
    space (``React 는``), where the span runs from the word to the particle.
    """

    spans = [(match.start, match.end) for match in iter_particles(text)]
    tokens = list(_TOKEN_RE.finditer(text))
    for previous, token in zip(tokens, tokens[1:]):
        core, _ = _split_trailing_punct(token.group())
        prev_core, prev_tail = _split_trailing_punct(previous.group())
        if core in DETACHED_PARTICLES and prev_core and not prev_tail:
            spans.append((previous.start(), token.start() + len(core)))
    return sorted(spans)


def is_correctable(match: ParticleMatch) -> bool:
    """Return ``True`` when ``match`` is certainly a particle and may be rewritten.

    Particles after Latin letters or digits (``React은``, ``3가``) always
    qualify. After a Hangul syllable only the object and source particles do.
    """

    if not _is_hangul_syllable(match.stem[-1]):
        return True
    return match.category in HANGUL_STEM_CATEGORIES


def process_text(text: str) -> str:
    """Rewrite every ``<word><particle>`` token to the grammatical variant.

    Only particles already present are touched; the pass is idempotent.
    Tokens that may be plain nouns (``전문가``, ``경로``) are left as written.
    """

    pieces: List[str] = []
    cursor = 0
    for match in iter_particles(text):
        if not is_correctable(match):
            continue
        corrected = select_particle(match.stem, match.category)
        if corrected == match.particle:
            continue
        particle_start = match.end - len(match.particle)
        pieces.append(text[cursor:particle_start])
        pieces.append(corrected)
        cursor = match.end
    if not pieces:
        return text
    pieces.append(text[cursor:])
    return "".join(pieces)


__all__ = [
    "DIGIT_HAS_FINAL",
    "PARTICLES",
    "ParticleCategory",
    "ParticleMatch",
    "attach_particle",
    "find_particle_spans",
    "has_final_consonant",
    "is_correctable",
    "iter_particles",
    "process_text",
    "select_particle",
]
