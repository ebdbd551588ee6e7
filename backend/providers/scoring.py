"""Language normalization and priority scoring for subtitle candidates.

Catalogs label languages inconsistently ("简体", "chs&eng", "English",
"zh-TW"). normalize_language maps those labels to a small set of codes;
score_by_language turns a code into a weight from the user's ordered
priority list. The final candidate score is that weight plus the
provider's own relevance.
"""

import logging

logger = logging.getLogger(__name__)

# Checked in order: bilingual labels also contain simplified/English markers
_LANGUAGE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("bilingual", ("双语", "bilingual", "chs&eng", "zh-en", "简英", "中英")),
    ("zh-cn", ("简", "zh-cn", "chs", "simplified")),
    ("zh-tw", ("繁", "zh-tw", "cht", "traditional")),
    ("en", ("english", "en")),
)

UNKNOWN_LANGUAGE = "unknown"
UNKNOWN_SCORE = 1.0
UNLISTED_SCORE = 3.0
PRIORITY_STEP = 10.0


def normalize_language(raw: str) -> tuple[str, str]:
    """Map a raw catalog language label to (code, display text).

    The display text is the raw label unchanged. An empty label yields
    ("unknown", ""); an unrecognized one yields its lower-cased, trimmed form.
    """
    value = (raw or "").strip().lower()
    if not value:
        return UNKNOWN_LANGUAGE, ""
    for code, terms in _LANGUAGE_RULES:
        if any(term in value for term in terms):
            return code, raw
    return value, raw


def score_by_language(priority, code: str) -> float:
    """Weight a language code against an ordered priority list.

    The first listed language scores len*10, the next (len-1)*10 and so on.
    Unknown or empty codes score 1; any other unlisted code scores 3, so a
    labeled but unwanted language still outranks an unlabeled one.
    """
    wanted = (code or "").strip().lower()
    priority = list(priority or [])
    for index, item in enumerate(priority):
        if (item or "").strip().lower() == wanted:
            return float(len(priority) - index) * PRIORITY_STEP
    if wanted in ("", UNKNOWN_LANGUAGE):
        return UNKNOWN_SCORE
    return UNLISTED_SCORE


def rank_candidates(candidates: list, priority) -> list:
    """Re-score candidates against a priority list and sort best first.

    Each candidate's score becomes language weight + relevance. The sort is
    stable, so equal scores keep their incoming order.
    """
    for cand in candidates:
        cand.score = score_by_language(priority, cand.language) + cand.relevance
    return sorted(candidates, key=lambda c: c.score, reverse=True)
