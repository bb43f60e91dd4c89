import pytest

from caption_core.errors import InvalidModeError
from caption_core.ingest import CaptionParser
from caption_core.models import Cue
from caption_core.tracks import CueStore, ReadyState, Track, TrackMode, validate_text_kind


def _cue(cue_id, start, end):
    return Cue(id=cue_id, start_time=start, end_time=end, payload=cue_id)


# --- CUE STORE ---
def test_store_keeps_order_on_insert():
    track = Track()
    for cue in (_cue("c", 5, 6), _cue("a", 1, 9), _cue("b", 1, 2)):
        track.add_cue(cue)
    assert [c.id for c in track.cues] == ["b", "a", "c"]
    assert len(track.cues) == 3
    assert track.cues[0].track is track


def test_store_rejects_non_cues():
    with pytest.raises(TypeError):
        CueStore().append("not a cue")


def test_store_rejects_duplicates_and_foreign_cues():
    one, two = Track(), Track()
    cue = _cue("x", 0, 1)
    one.add_cue(cue)
    with pytest.raises(ValueError):
        one.add_cue(cue)
    with pytest.raises(ValueError):
        two.add_cue(cue)


def test_store_lookup_and_remove():
    track = Track()
    cue = _cue("7", 0, 1)
    track.add_cue(cue)
    assert track.get_cue_by_id(7) is cue
    assert track.get_cue_by_id("missing") is None

    track.remove_cue(cue)
    assert len(track.cues) == 0
    assert cue.track is None
    with pytest.raises(ValueError):
        track.remove_cue(cue)


def test_store_is_not_a_list():
    assert not isinstance(Track().cues, list)


# --- KINDS ---
@pytest.mark.parametrize("kind", ["subtitles", "karaoke", "lyrics", "tickertext", "METADATA"])
def test_text_kinds_are_accepted(kind):
    assert validate_text_kind(kind) == kind.lower()


@pytest.mark.parametrize("kind", ["signlanguage", "audiodescription", "banana"])
def test_other_kinds_are_rejected(kind):
    with pytest.raises(ValueError):
        Track(kind=kind)


# --- MODE ---
@pytest.mark.parametrize("value", [3, -1, "showing", None, True])
def test_invalid_mode_raises(value):
    with pytest.raises(InvalidModeError) as exc:
        Track().set_mode(value)
    assert "Illegal mode value" in str(exc.value)


def test_enabling_a_track_with_source_requests_a_load():
    track = Track(src="captions.vtt")
    requested = []
    dirty = []
    track.on_load_requested = requested.append
    track.on_dirty = lambda: dirty.append(True)

    track.set_mode(TrackMode.HIDDEN)

    assert len(requested) == 1
    assert requested[0].source == "captions.vtt"
    assert track.ready_state == ReadyState.LOADING
    assert dirty == [True]

    # Already loading: no second request
    track.set_mode(TrackMode.SHOWING)
    assert len(requested) == 1


def test_same_mode_is_a_no_op():
    track = Track()
    dirty = []
    track.on_dirty = lambda: dirty.append(True)
    track.set_mode(TrackMode.DISABLED)
    assert dirty == []


def test_disabling_clears_cues_and_resets_ready_state(sample_vtt):
    track = Track()
    track.set_mode(TrackMode.SHOWING)
    track.load_text(sample_vtt, CaptionParser())
    assert len(track.cues) == 3

    track.set_mode(TrackMode.DISABLED)
    assert len(track.cues) == 0
    assert track.ready_state == ReadyState.NOT_LOADED


# --- LOADING ---
def test_load_text_commits_and_fires_on_load(sample_vtt):
    track = Track()
    loaded = []
    track.on_load = lambda: loaded.append(True)
    assert track.load_text(sample_vtt, CaptionParser())
    assert track.ready_state == ReadyState.LOADED
    assert loaded == [True]
    assert all(c.track is track for c in track.cues)


def test_stale_token_is_discarded(sample_vtt):
    track = Track(src="old.vtt")
    parser = CaptionParser()
    old = track.begin_load()
    new = track.begin_load("new.vtt")

    assert not track.commit_load(old, sample_vtt, parser)
    assert len(track.cues) == 0
    assert track.ready_state == ReadyState.LOADING

    assert track.commit_load(new, sample_vtt, parser)
    assert len(track.cues) == 3


def test_disable_invalidates_in_flight_load(sample_vtt):
    track = Track(src="captions.vtt")
    tokens = []
    track.on_load_requested = tokens.append
    track.set_mode(TrackMode.SHOWING)
    track.set_mode(TrackMode.DISABLED)
    assert not track.commit_load(tokens[0], sample_vtt, CaptionParser())
    assert len(track.cues) == 0


def test_fail_load_sets_error_and_fires_hook():
    track = Track(src="gone.vtt")
    errors = []
    track.on_error = errors.append
    token = track.begin_load()
    err = OSError("404")
    assert track.fail_load(token, err)
    assert track.ready_state == ReadyState.ERROR
    assert errors == [err]


def test_empty_document_fails_the_load():
    track = Track()
    errors = []
    track.on_error = errors.append
    assert not track.load_text("", CaptionParser())
    assert track.ready_state == ReadyState.ERROR
    assert len(errors) == 1


def test_metadata_tracks_keep_raw_payloads():
    track = Track(kind="metadata")
    track.load_text('1\n00:00:01.000 --> 00:00:02.000\n{"json": "<b>yes</b>"}', CaptionParser())
    assert track.cues[0].payload == '{"json": "<b>yes</b>"}'


def test_reload_replaces_cues(sample_vtt):
    track = Track()
    parser = CaptionParser()
    track.load_text(sample_vtt, parser)
    track.load_text("1\n00:00:01.000 --> 00:00:02.000\nOnly", parser)
    assert [c.render() for c in track.cues] == ["Only"]


@pytest.mark.parametrize("mode, enabled", [
    (TrackMode.DISABLED, False),
    (TrackMode.HIDDEN, True),
    (TrackMode.SHOWING, True),
])
def test_is_enabled(mode, enabled):
    track = Track()
    track.set_mode(mode)
    assert track.is_enabled is enabled
