from __future__ import annotations

import random
import string

from lithsync.keys import (
    Concern,
    ScopedKey,
    build_key,
    clean_word,
    day_keys,
    parse_key,
    sentence_words,
)


def test_build_key_shape():
    assert build_key(Concern.SESSION_STATE, "u1", "2024-05-01") == "sessionState_u1_2024-05-01"
    assert build_key(Concern.COMPLETION_STATUS, "u1", "2024-05-01") == "completionStatus_u1_2024-05-01"


def test_build_key_is_injective_over_random_tuples():
    random.seed(3)
    alphabet = string.ascii_letters + string.digits + "_-"
    seen: dict[str, tuple] = {}
    concerns = list(Concern)
    for _ in range(2000):
        tup = (
            random.choice(concerns),
            "".join(random.choice(alphabet) for _ in range(random.randint(1, 8))),
            f"2024-{random.randint(1, 12):02d}-{random.randint(1, 28):02d}",
        )
        key = build_key(*tup)
        assert seen.setdefault(key, tup) == tup


def test_parse_key_roundtrip_with_underscored_user_id():
    key = build_key(Concern.QUIZ_PROGRESS, "user_with_underscores", "2024-05-01")
    assert parse_key(key) == ScopedKey(Concern.QUIZ_PROGRESS, "user_with_underscores", "2024-05-01")


def test_parse_key_ignores_foreign_keys():
    assert parse_key("user") is None
    assert parse_key("settings_theme") is None
    assert parse_key("sessionState_u1_yesterday!") is None
    assert parse_key("unknown_u1_2024-05-01") is None


def test_day_keys_cover_every_concern():
    keys = day_keys("u1", "2024-05-01")
    assert len(keys) == len(Concern)
    assert {parse_key(k).concern for k in keys} == set(Concern)


def test_clean_word_strips_punctuation_and_case():
    assert clean_word("Labas,") == "labas"
    assert clean_word("(rytas!)") == "rytas"
    assert clean_word("...") == ""
    # Inner punctuation is part of the word
    assert clean_word("ne-ne") == "ne-ne"


def test_clean_word_is_idempotent():
    random.seed(5)
    alphabet = "aąbcčeęėiįyšųūžAĄ.,!?;:()'\"-"
    for _ in range(500):
        w = "".join(random.choice(alphabet) for _ in range(random.randint(0, 10)))
        once = clean_word(w)
        assert clean_word(once) == once


def test_sentence_words_drop_empty_tokens():
    assert sentence_words("Labas rytas, drauge!") == ["labas", "rytas", "drauge"]
    assert sentence_words("Ar  tu  čia ?") == ["ar", "tu", "čia"]
    assert sentence_words("") == []
