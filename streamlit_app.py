# ruff: noqa: I001
import streamlit as st
from madlib import DictionaryFormatError, TokenKind, fill_story, parse_dictionary

st.set_page_config(page_title="Madlibs", page_icon="📝", layout="centered")

st.title("Madlibs 📝")
st.caption("Fill the [blanks] in a story with words from a dictionary, read once, in order.")

with st.sidebar:
    st.header("Options")
    spacing_from_resolved = st.checkbox("Spacing from substituted word", value=False)
    story_file = st.file_uploader("Story file", type=["txt"])
    dict_file = st.file_uploader("Dictionary file", type=["txt"])

default_story = story_file.getvalue().decode("utf-8") if story_file else "The [adjective] [noun] [verb] over the [noun]."
default_dict = dict_file.getvalue().decode("utf-8") if dict_file else "adjective quick\nnoun fox\nverb jumps\nnoun dog\n"

col1, col2 = st.columns(2)
with col1:
    story_text = st.text_area("Story", value=default_story, height=240)
with col2:
    dict_text = st.text_area("Dictionary (key value per pair)", value=default_dict, height=240)

if st.button("Fill Story"):
    try:
        entries = parse_dictionary(dict_text)
    except DictionaryFormatError as e:
        st.error(str(e))
        st.stop()
    result = fill_story(story_text, entries, spacing_from_resolved=spacing_from_resolved)
    st.code(result.text, language=None)

    c1, c2, c3 = st.columns(3)
    c1.metric("Filled", result.count(TokenKind.RESOLVED_VALUE))
    c2.metric("Unfilled", result.count(TokenKind.UNRESOLVED_PLACEHOLDER))
    c3.metric("Entries unused", result.entries_left)

    rows = [
        {"token": t.original, "written as": t.text, "outcome": t.kind.value if t.kind is not TokenKind.PLAIN_WORD else "unknown key"}
        for t in result.tokens
        if t.key is not None
    ]
    if rows:
        st.subheader("Placeholders")
        st.table(rows)

    st.divider()
    st.download_button("Download story.txt", data=result.text, file_name="story.txt", mime="text/plain")
