from caption_core.config import ParseOptions
from caption_core.markup import CuePayload, MarkupTokenizer, tokenize
from caption_core.models import ClassSpan, FormatSpan, TimestampSpan, VoiceSpan


def test_voice_span():
    payload = tokenize("<v Roger>Hello</v>")
    assert len(payload.children) == 1
    node = payload.children[0]
    assert isinstance(node, VoiceSpan)
    assert node.voice == "Roger"
    assert node.children == ["Hello"]


def test_voice_tag_with_class():
    node = tokenize("<v.loud Mary Jane>Hi</v>").children[0]
    assert isinstance(node, VoiceSpan)
    assert node.voice == "Mary Jane"


def test_class_span_keeps_real_class_tokens():
    node = tokenize("<c.yellow.bg_blue.>Text</c>").children[0]
    assert isinstance(node, ClassSpan)
    assert node.classes == frozenset({"yellow", "bg_blue"})


def test_unrecognised_tag_dropped_when_sanitising():
    payload = tokenize("<script>alert(1)</script>")
    assert payload.children == ["alert(1)"]
    assert not any(isinstance(n, FormatSpan) for n in payload.children)


def test_unrecognised_tag_kept_without_sanitising():
    payload = MarkupTokenizer(ParseOptions(sanitise_markup=False)).tokenize("<font>x</font>")
    node = payload.children[0]
    assert isinstance(node, FormatSpan)
    assert payload.render() == "<font>x</font>"


def test_text_is_escaped_and_newlines_become_breaks():
    payload = tokenize("Fish & chips\n\n5 > 3")
    assert payload.render() == "Fish &amp; chips<br />5 &gt; 3"


def test_ignore_whitespace_keeps_newlines():
    payload = MarkupTokenizer(ParseOptions(ignore_whitespace=True)).tokenize("a\nb")
    assert payload.render() == "a\nb"


def test_whitespace_only_text_between_tags_is_dropped():
    payload = tokenize("<b>a</b> \n <i>b</i>")
    assert [type(n) for n in payload.children] == [FormatSpan, FormatSpan]


def test_closer_pops_to_nearest_matching_frame():
    # </b> closes both the <i> and the <b>; "tail" lands at the root
    payload = tokenize("<b>bold <i>both</b>tail")
    bold = payload.children[0]
    assert bold.tag == "b"
    assert bold.children[0] == "bold "
    assert bold.children[1].tag == "i"
    assert payload.children[1] == "tail"


def test_unmatched_closer_is_ignored():
    payload = tokenize("<b>a</u>b</b>")
    bold = payload.children[0]
    assert bold.children == ["a", "b"]
    assert len(payload.children) == 1


def test_timestamp_span_marks_tree_time_dependent():
    payload = tokenize("Never <00:00:02.000>gonna")
    assert payload.is_time_dependent
    node = payload.children[1]
    assert isinstance(node, TimestampSpan)
    assert node.time_seconds == 2.0


def test_karaoke_reveal_follows_time():
    payload = tokenize("Never <00:00:02.000>gonna")
    assert payload.render(1.0) == "Never "
    assert "gonna" in payload.render(2.0)
    assert "gonna" in payload.render()


def test_empty_spans_render_nothing():
    assert tokenize("a<b></b>").render() == "a"


def test_voice_render():
    html = tokenize("<v Roger Bingham>Hi</v>").render()
    assert html == ('<q data-voice="Roger Bingham" class="voice speaker-roger-bingham" '
                    'title="Roger Bingham">Hi</q>')


def test_class_render_is_sorted():
    html = tokenize("<c.zeta.alpha>x</c>").render()
    assert html == '<span class="webvtt-class-span alpha zeta">x</span>'


def test_render_is_cached_without_timestamps(monkeypatch):
    payload = tokenize("<b>Hello</b> world")
    first = payload.render()

    calls = []
    original = CuePayload._render_layer

    def counting(self, nodes, at_time):
        calls.append(at_time)
        return original(self, nodes, at_time)

    monkeypatch.setattr(CuePayload, "_render_layer", counting)
    assert payload.render(5.0) == first
    assert payload.render() == first
    assert calls == []


def test_time_dependent_render_is_not_cached(monkeypatch):
    payload = tokenize("a <00:00:01.000>b")
    payload.render(0.0)

    calls = []
    original = CuePayload._render_layer

    def counting(self, nodes, at_time):
        calls.append(at_time)
        return original(self, nodes, at_time)

    monkeypatch.setattr(CuePayload, "_render_layer", counting)
    payload.render(2.0)
    assert calls


def test_plain_text_strips_markup():
    payload = tokenize("<v Roger>Fish & <b>chips</b>\nnow</v>")
    assert payload.plain_text() == "Fish & chips\nnow"
