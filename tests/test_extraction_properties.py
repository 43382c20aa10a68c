from hypothesis import given, settings
from hypothesis import strategies as st

from Blockwright.extraction import extract
from Blockwright.sanitizer import MAX_CHAT_CHARS, sanitize_reply
from Blockwright.schemas import Action
from Blockwright.validation import validate_step

# Bias generated text toward the characters the parsers care about
structured_text = st.text(
    alphabet=st.sampled_from(list('{}[]":,;()=/`\n abcxyz0123456789-.')) | st.characters(),
    max_size=200,
)
modes = st.sampled_from(["plan", "actions", "directive"])


@settings(max_examples=200, deadline=None)
@given(structured_text, modes)
def test_extract_never_raises(text: str, mode: str):
    out = extract(text, mode)  # type: ignore[arg-type]
    if mode == "plan":
        assert out is None or out.steps
    else:
        assert isinstance(out, list)


@settings(max_examples=200, deadline=None)
@given(structured_text, modes)
def test_extract_is_deterministic(text: str, mode: str):
    assert extract(text, mode) == extract(text, mode)  # type: ignore[arg-type]


@settings(max_examples=200, deadline=None)
@given(st.text(max_size=1000))
def test_sanitize_is_bounded(text: str):
    out = sanitize_reply(text)
    assert len(out) <= MAX_CHAT_CHARS


params = st.dictionaries(
    st.sampled_from(["x", "y", "z", "command", "items"]),
    st.one_of(
        st.none(),
        st.booleans(),
        st.integers(),
        st.floats(allow_nan=True, allow_infinity=True),
        st.text(max_size=5),
    ),
)


@given(st.text(max_size=12), params)
def test_validate_never_raises(name: str, p: dict):
    result = validate_step(Action(name=name, params=p), (0.0, 0.0, 0.0))
    assert result.ok in (True, False)
