"""Property-based tests for update-output noise filtering.

Verifies that filtering removes every noise line and leaves the remaining
lines untouched and in their original order, across randomized output.
"""

from hypothesis import given, settings, strategies as st

from lockbump.updater.log_filter import filter_noise_lines, split_lines

NOISE = "crates.io index"
NOISE_LINE = "    Updating crates.io index\n"

line_text = st.text(
    alphabet=st.characters(blacklist_characters="\n\x00"),
    max_size=60,
).filter(lambda text: NOISE not in text)

output_lines = st.lists(
    st.one_of(line_text.map(lambda text: text + "\n"), st.just(NOISE_LINE)),
    max_size=30,
)


@settings(max_examples=200)
@given(lines=output_lines)
def test_filtered_log_never_contains_noise(lines):
    filtered, _ = filter_noise_lines("".join(lines), NOISE)
    assert NOISE not in filtered


@settings(max_examples=200)
@given(lines=output_lines)
def test_other_lines_preserved_in_order(lines):
    filtered, dropped = filter_noise_lines("".join(lines), NOISE)
    expected = [line for line in lines if line != NOISE_LINE]
    assert filtered == "".join(expected)
    assert dropped == len(lines) - len(expected)


@settings(max_examples=200)
@given(text=st.text(alphabet=st.characters(blacklist_characters="\x00"), max_size=200))
def test_split_lines_round_trips(text):
    assert "".join(split_lines(text)) == text


def test_trailing_fragment_without_newline_is_kept():
    filtered, dropped = filter_noise_lines(
        "    Updating crates.io index\n    Locking 1 package\n  Updating a v1 -> v2",
        NOISE,
    )
    assert filtered == "    Locking 1 package\n  Updating a v1 -> v2"
    assert dropped == 1


def test_noise_matched_anywhere_in_line():
    filtered, dropped = filter_noise_lines(
        "warning: fetching crates.io index took long\nok\n", NOISE
    )
    assert filtered == "ok\n"
    assert dropped == 1


def test_carriage_returns_do_not_split_lines():
    filtered, dropped = filter_noise_lines(
        "progress\r    Updating crates.io index\nkept\r\n", NOISE
    )
    assert filtered == "kept\r\n"
    assert dropped == 1


def test_empty_output():
    assert filter_noise_lines("", NOISE) == ("", 0)
