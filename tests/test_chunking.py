import pytest

from podcast_rag.chunking import Chunker, extract_speaker_label, split_sections
from podcast_rag.config import RetrievalConfig
from podcast_rag.models import Speaker
from podcast_rag.topics import Topic, TopicTagger


INTERVIEW = (
    "Host: Welcome back to the show. Today we are talking about restaurants and food costs.\n"
    "\n"
    "Maria Lopez: Thanks for having me. I opened my first restaurant kitchen in 2015 and learned a lot.\n"
    "[00:05:12] Host: What was the hardest part of the first year for you?\n"
    "ok\n"
)


@pytest.fixture
def chunker():
    return Chunker(RetrievalConfig(), TopicTagger())


class TestSmartChunking:
    def test_splits_on_paragraphs_and_speaker_lines(self, chunker):
        units = chunker.chunk(INTERVIEW, "ep1")
        assert len(units) == 3
        assert [u.speaker for u in units] == [Speaker.HOST, Speaker.GUEST, Speaker.HOST]
        assert units[1].speaker_name == "Maria Lopez"
        assert units[1].text.startswith("Maria Lopez:")

    def test_timestamp_is_recorded_and_stripped(self, chunker):
        units = chunker.chunk(INTERVIEW, "ep1")
        assert units[2].timestamp == "00:05:12"
        assert "[00:05:12]" not in units[2].text
        assert units[0].timestamp is None

    def test_ids_and_sequence_indices(self, chunker):
        units = chunker.chunk(INTERVIEW, "ep1")
        assert [u.sequence_index for u in units] == [0, 1, 2]
        assert units[0].id == "ep1::chunk::00000"
        assert len({u.id for u in units}) == len(units)

    def test_context_comes_from_neighbours(self, chunker):
        units = chunker.chunk(INTERVIEW, "ep1")
        assert units[0].context_before is None
        assert units[0].context_after == units[1].body[:100]
        assert units[1].context_before == units[0].body[-100:]
        assert "Maria Lopez:" not in units[0].context_after
        assert units[2].context_after is None

    def test_units_are_topic_tagged(self, chunker):
        units = chunker.chunk(INTERVIEW, "ep1")
        assert Topic.RESTAURANT in units[0].topics

    def test_long_section_is_packed_by_sentence(self, chunker):
        sentences = " ".join(
            f"Sentence number {i} talks about scaling a restaurant business carefully." for i in range(30)
        )
        units = chunker.chunk("Guest: " + sentences, "ep2")
        assert len(units) > 1
        assert all(50 <= len(u.text) <= 600 for u in units)
        assert all(u.speaker is Speaker.GUEST for u in units)
        assert [u.sequence_index for u in units] == list(range(len(units)))

    def test_run_on_sentence_is_wrapped(self, chunker):
        run_on = " ".join(["word"] * 400)  # no sentence punctuation at all
        units = chunker.chunk(run_on, "ep3")
        assert units
        assert all(len(u.text) <= 800 for u in units)

    def test_noise_fragments_are_dropped(self, chunker):
        text = (
            "Hi.\n\n"
            "Host: Short.\n\n"
            "This paragraph is long enough to survive the minimum length filter easily.\n"
        )
        units = chunker.chunk(text, "ep4")
        assert len(units) == 1
        assert units[0].speaker is Speaker.UNKNOWN

    @pytest.mark.parametrize(
        "text",
        [
            INTERVIEW,
            "Tiny.\n\nAlso tiny.",
            "A: b\n\n" + "Guest: " + "Enough words to make a proper sentence here. " * 40,
        ],
    )
    def test_never_emits_short_units(self, chunker, text):
        for unit in chunker.chunk(text, "doc"):
            assert len(unit.text) >= 50

    def test_units_follow_input_order(self, chunker):
        paragraphs = [f"Paragraph {i} covers a separate idea about building a startup team." for i in range(6)]
        raw = "\n\n".join(paragraphs)
        units = chunker.chunk(raw, "ordered")
        positions = [raw.find(u.text[:30]) for u in units]
        assert positions == sorted(positions)
        assert -1 not in positions

    def test_empty_text_yields_nothing(self, chunker):
        assert chunker.chunk("", "empty") == []
        assert chunker.chunk("   \n\n  ", "empty") == []


class TestFixedChunking:
    def test_fixed_width_windows(self):
        chunker = Chunker(RetrievalConfig(chunking_mode="fixed"))
        units = chunker.chunk("x" * 1030, "ep1")
        # 500 + 500 + 30; the 30-char remainder is noise
        assert [len(u.text) for u in units] == [500, 500]
        assert all(u.speaker is Speaker.UNKNOWN for u in units)
        assert all(u.timestamp is None for u in units)

    def test_fixed_mode_ignores_speaker_labels(self):
        chunker = Chunker(RetrievalConfig(chunking_mode="fixed"))
        units = chunker.chunk("Host: " + "talking about money " * 10, "ep1")
        assert len(units) == 1
        assert units[0].speaker is Speaker.UNKNOWN

    def test_unknown_mode_is_rejected(self):
        with pytest.raises(ValueError):
            Chunker(RetrievalConfig(chunking_mode="bogus")).chunk("text", "ep1")


class TestSpeakers:
    def test_host_alias_exact_and_typo(self):
        chunker = Chunker(RetrievalConfig(host_aliases=["Interviewer"]))
        assert chunker.resolve_speaker("Interviewer") == (Speaker.HOST, "Interviewer")
        assert chunker.resolve_speaker("interviewer")[0] is Speaker.HOST
        assert chunker.resolve_speaker("Interviewr")[0] is Speaker.HOST

    def test_other_names_are_guests(self):
        chunker = Chunker(RetrievalConfig(host_aliases=["Interviewer"]))
        assert chunker.resolve_speaker("Maria") == (Speaker.GUEST, "Maria")
        assert chunker.resolve_speaker(None) == (Speaker.UNKNOWN, None)

    def test_extract_speaker_label(self):
        assert extract_speaker_label("Robert Reese: hello there") == "Robert Reese"
        assert extract_speaker_label("speaker_1: hello") == "speaker_1"
        assert extract_speaker_label("[01:02] Host: hi") == "Host"
        assert extract_speaker_label("no label here") is None

    def test_split_sections_joins_continuation_lines(self):
        sections = split_sections("Host: first line\ncontinued here\nGuest: answer")
        assert sections == ["Host: first line continued here", "Guest: answer"]


class TestSpeakerLabelsInBody:
    def test_label_does_not_drive_topics(self, chunker):
        [unit] = chunker.chunk("Startup: Raising money is hard. You need a strong pitch.", "ep1")
        assert unit.text.startswith("Startup:")
        assert unit.body == "Raising money is hard. You need a strong pitch."
        assert unit.topics == frozenset({Topic.INVESTING})

    def test_minimum_length_counts_the_label(self, chunker):
        [unit] = chunker.chunk("Startup: Raising money is hard. You need a strong pitch.", "ep1")
        assert len(unit.body) < 50 <= len(unit.text)

    def test_unlabelled_body_is_the_text(self, chunker):
        units = chunker.chunk("A paragraph without any label that talks about gaming studios.", "ep2")
        assert units[0].body == units[0].text
