import logging

from readalong.core.models import EngineState

from conftest import FOUR_WORD_HTML, timed

TEH_HTML = "<p>jumps over the lazy dog</p>"
TEH_TIMINGS = timed(
    ("jumps", 0.0, 0.2),
    ("over", 0.2, 0.4),
    ("teh", 0.4, 0.6),
    ("lazy", 0.6, 0.8),
    ("dog", 0.8, 1.0),
)


def _is_prefix(machine):
    return machine.highlighted_indices == set(range(machine.last_highlighted_index))


def test_tick_highlights_all_due_words(four_word_machine):
    _, machine = four_word_machine

    machine.tick(0.85)

    assert machine.highlighted_indices == {0, 1, 2, 3}
    assert machine.last_highlighted_index == 4


def test_highlight_class_is_written_to_document(four_word_machine):
    document, machine = four_word_machine

    machine.tick(0.3)

    assert [document.is_highlighted(i) for i in range(4)] == [True, True, False, False]


def test_highlights_grow_monotonically_as_prefix(four_word_machine):
    _, machine = four_word_machine
    previous = set()

    for step in range(21):
        machine.tick(step * 0.05)
        current = machine.highlighted_indices
        assert previous <= current
        assert _is_prefix(machine)
        previous = current

    assert previous == {0, 1, 2, 3}


def test_repeated_tick_is_idempotent(four_word_machine):
    document, machine = four_word_machine

    machine.tick(0.5)
    first_set = machine.highlighted_indices
    first_markup = document.render()
    machine.tick(0.5)

    assert machine.highlighted_indices == first_set
    assert document.render() == first_markup


def test_tick_ignores_invalid_times(four_word_machine):
    _, machine = four_word_machine

    machine.tick(float("nan"))
    machine.tick(-1.0)

    assert machine.highlighted_indices == set()


def test_misspelled_word_highlighted_through_context(make_machine):
    _, machine = make_machine(TEH_HTML, TEH_TIMINGS)

    machine.tick(0.5)

    assert machine.highlighted_indices == {0, 1, 2}


def test_probability_gate_rejects_weak_matches(make_machine):
    _, machine = make_machine(TEH_HTML, TEH_TIMINGS, min_highlight_probability=0.7)

    machine.tick(0.5)

    assert machine.highlighted_indices == {0, 1}


def test_forward_exact_fallback_recovers_rejected_word(make_machine):
    html = "<p>alpha beta gamma delta</p>"
    timings = timed(("gamma", 0.0, 0.3))

    _, skipping = make_machine(html, timings, min_highlight_probability=0.5)
    skipping.tick(0.1)
    assert skipping.highlighted_indices == set()

    _, forward = make_machine(
        html, timings, min_highlight_probability=0.5, fallback_policy="forward_exact"
    )
    forward.tick(0.1)
    assert forward.highlighted_indices == {0, 1, 2}


def test_silence_gap_fills_estimated_words(make_machine):
    _, machine = make_machine(
        "<p>one two three four five six</p>",
        timed(("one", 0.0, 0.2), ("six", 1.0, 1.2)),
    )

    machine.tick(0.0)

    # 0.8s of silence at 3 words/s covers three of the four words in between
    assert machine.highlighted_indices == {0, 1, 2, 3}


def test_gap_between_consecutive_words_includes_skip_tokens(make_machine, four_word_timings):
    document, machine = make_machine(
        "<p>the quick — brown fox</p>", four_word_timings
    )
    assert document.tokens[2].is_skip

    machine.tick(0.85)

    assert machine.highlighted_indices == {0, 1, 2, 3, 4}


def test_initial_words_are_estimated_before_first_timing(make_machine):
    _, machine = make_machine(
        "<p>one two three four five six seven</p>",
        timed(("five", 2.0, 2.3), ("six", 2.3, 2.6), ("seven", 2.6, 2.9)),
    )

    machine.handle_initial_words(1.0)
    assert machine.highlighted_indices == set()

    machine.handle_initial_words(1.96)
    assert machine.highlighted_indices == {0, 1, 2, 3}
    assert not machine.cursor.initial_phase_done

    machine.handle_initial_words(2.0)
    assert machine.cursor.initial_phase_done


def test_end_guard_completes_document(four_word_machine):
    _, machine = four_word_machine

    machine.tick(0.1)
    machine.tick(0.95, duration=1.0)

    assert machine.highlighted_indices == {0, 1, 2, 3}
    assert machine.state == EngineState.COMPLETED


def test_handle_audio_end_highlights_everything(make_machine):
    document, machine = make_machine(
        "<p>Wait — there is more!</p>", timed(("wait", 0.0, 0.3))
    )

    machine.tick(0.1)
    added = machine.handle_audio_end(1.0)

    assert added == len(document.tokens) - 1
    assert machine.highlighted_indices == set(range(len(document.tokens)))
    assert document.is_highlighted(1)
    assert machine.state == EngineState.COMPLETED


def test_zero_timed_words(make_machine):
    document, machine = make_machine(FOUR_WORD_HTML, [])

    machine.tick(0.5)
    machine.tick(2.0)
    assert machine.highlighted_indices == set()

    machine.handle_audio_end(2.0)
    assert machine.highlighted_indices == {0, 1, 2, 3}


def test_empty_document_is_noop(make_machine, four_word_timings):
    _, machine = make_machine("", four_word_timings)

    machine.tick(0.85, duration=1.0)

    assert machine.highlighted_indices == set()
    assert machine.handle_seek(0.5) == -1


def test_listeners_receive_each_new_token(four_word_machine):
    _, machine = four_word_machine
    seen = []
    machine.add_listener(lambda token: seen.append(token.index))

    machine.tick(0.3)
    machine.tick(0.3)
    machine.tick(0.85)

    assert seen == [0, 1, 2, 3]
    assert machine.current_token.raw_text == "fox"


def test_failing_listener_does_not_stop_highlighting(four_word_machine, caplog):
    _, machine = four_word_machine

    def broken(_token):
        raise RuntimeError("boom")

    machine.add_listener(broken)
    caplog.set_level(logging.ERROR)

    machine.tick(0.85)

    assert machine.highlighted_indices == {0, 1, 2, 3}
    assert "Word highlight listener failed" in caplog.text


def test_rerendered_document_is_rehydrated_during_tick(four_word_machine):
    document, machine = four_word_machine

    machine.tick(0.3)
    document.replace_markup(document.render())
    machine.tick(0.85)

    assert document.render().count("word highlight") == 4


def test_rerender_without_highlight_classes_is_repainted(four_word_machine):
    document, machine = four_word_machine
    unhighlighted = document.render()

    machine.tick(0.3)
    assert machine.highlighted_indices == {0, 1}
    document.replace_markup(unhighlighted)
    machine.tick(0.3)

    assert [document.is_highlighted(i) for i in range(4)] == [True, True, False, False]


def test_direct_highlight_after_rerender_repaints_prefix(four_word_machine):
    document, machine = four_word_machine
    unhighlighted = document.render()

    machine.tick(0.3)
    document.replace_markup(unhighlighted)
    added = machine.highlight_range(2, 2, "(manual)")

    assert added == 1
    assert [document.is_highlighted(i) for i in range(4)] == [True, True, True, False]


def test_start_pause_and_destroy(four_word_machine, clock):
    document, machine = four_word_machine

    machine.start(clock.get_current_time, clock.get_duration)
    assert machine.state == EngineState.TRACKING
    assert machine.is_running

    clock.play()
    clock.advance(0.3)
    assert machine.scheduler.fire() == 1
    assert machine.highlighted_indices == {0, 1}

    machine.pause()
    clock.advance(0.55)
    assert machine.scheduler.fire() == 0
    assert machine.state == EngineState.IDLE
    assert machine.highlighted_indices == {0, 1}

    machine.destroy()
    machine.destroy()
    assert machine.highlighted_indices == set()
    assert not any(document.is_highlighted(i) for i in range(4))
