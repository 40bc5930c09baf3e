import itertools

import pytest

from readalong.config import AlignmentSettings
from readalong.core.matcher import Matcher
from readalong.core.models import MatchResult, TimedWord
from readalong.core.text_utils import normalize_word
from readalong.core.tokenizer import tokenize_html

from conftest import timed


def _matcher(text, words, **overrides):
    doc = tokenize_html(f"<p>{text}</p>")
    timings = timed(*[(w, i * 0.3, i * 0.3 + 0.25) for i, w in enumerate(words)])
    return doc, timings, Matcher(doc.tokens, timings, AlignmentSettings(**overrides))


def test_exact_word_with_matching_context(four_word_doc, four_word_timings):
    matcher = Matcher(four_word_doc.tokens, four_word_timings)

    result = matcher.match(four_word_timings[0], 0, search_center=0)

    assert result.token_index == 0
    assert result.word_score == 1.0
    assert result.context_score == pytest.approx(1.0)
    assert result.probability == pytest.approx(1.0)


def test_misspelled_transcript_word_accepted_through_context():
    _, timings, matcher = _matcher(
        "jumps over the lazy dog", ["jumps", "over", "teh", "lazy", "dog"]
    )

    result = matcher.match(timings[2], 2, search_center=2)

    assert result.token_index == 2
    assert result.word_score == 0.0
    assert result.context_score > 0.5
    assert result.probability == pytest.approx(0.6)


def test_repeated_word_disambiguated_by_context():
    _, timings, matcher = _matcher("red fish blue fish", ["red", "fish", "blue", "fish"])

    result = matcher.match(timings[3], 3, search_center=3)

    assert result.token_index == 3
    assert result.probability == pytest.approx(1.0)


def test_ties_go_to_lowest_index():
    _, timings, matcher = _matcher("la la la la", ["la"])

    result = matcher.match(timings[0], 0, search_center=2)

    assert result.token_index == 0
    assert result.probability == pytest.approx(0.4)


def test_unknown_word_without_context_is_rejected():
    _, timings, matcher = _matcher("alpha beta gamma", ["zeta"])
    assert matcher.match(timings[0], 0, search_center=1) == MatchResult.no_match()


def test_context_only_match_below_threshold_is_rejected():
    # Only one of four neighbours agrees, so context alone cannot clear 0.3
    _, timings, matcher = _matcher(
        "one two three four five", ["one", "nine", "zzz", "yyy", "xxx"]
    )
    result = matcher.match(timings[2], 2, search_center=2)
    assert not result.matched


def test_search_is_limited_to_window():
    words = [f"word{i}" for i in range(30)]
    _, timings, matcher = _matcher(" ".join(words), ["word25"])

    assert not matcher.match(timings[0], 0, search_center=0).matched
    assert matcher.match(timings[0], 0, search_center=20).token_index == 25
    assert matcher.match(timings[0], 0, search_center=0, window_size=25).token_index == 25


def test_window_override_also_sizes_context():
    _, timings, matcher = _matcher("zz aa bb cc", ["aa", "bb", "cc", "dd"])

    wide = matcher.match(timings[1], 1, search_center=2)
    narrow = matcher.match(timings[1], 1, search_center=2, window_size=1)

    assert wide.token_index == narrow.token_index == 2
    assert wide.context_score == pytest.approx(0.4)
    assert narrow.context_score == pytest.approx(1.0)


def test_skip_tokens_are_never_matched():
    doc, timings, matcher = _matcher("wait — now", ["wait", "now"])

    assert doc.tokens[1].is_skip
    results = [matcher.match(t, i, search_center=1) for i, t in enumerate(timings)]
    assert [r.token_index for r in results] == [0, 2]


def test_empty_token_list_returns_no_match(four_word_timings):
    matcher = Matcher([], four_word_timings)
    assert not matcher.match(four_word_timings[0], 0, 0).matched


def test_probabilities_are_bounded(story_doc):
    timings = [
        TimedWord(t.raw_text, i * 0.3, i * 0.3 + 0.2)
        for i, t in enumerate(story_doc.tokens)
        if not t.is_skip
    ]
    matcher = Matcher(story_doc.tokens, timings)

    for timing_index, token in itertools.product(range(len(timings)), story_doc.tokens):
        if token.is_skip:
            continue
        scored = matcher.score_candidate(
            normalize_word(timings[timing_index].word),
            matcher.audio_context(timing_index),
            token,
        )
        assert 0.0 <= scored.word_score <= 1.0
        assert 0.0 <= scored.context_score <= 1.0
        assert 0.0 <= scored.probability <= 1.0


def test_context_windows_exclude_center_and_are_cached(four_word_doc, four_word_timings):
    matcher = Matcher(four_word_doc.tokens, four_word_timings)

    assert matcher.audio_context(1) == ["the", "brown", "fox"]
    assert matcher.text_context(3, size=1) == ["brown"]
    assert matcher.audio_context(1) is matcher.audio_context(1)


def test_forward_exact_search(four_word_doc, four_word_timings):
    matcher = Matcher(four_word_doc.tokens, four_word_timings)

    assert matcher.forward_exact_search("Brown!", 0) == 2
    assert matcher.forward_exact_search("the", 1) == -1
    assert matcher.forward_exact_search("", 0) == -1
