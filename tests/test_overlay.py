import pytest

from caption_core.config import OverlayConfig
from caption_core.metrics import ContainerMetrics
from caption_core.models import Cue
from caption_core.overlay import CaptionOverlay, order_for_layout
from caption_core.tracks import ReadyState, Track, TrackMode

HD = ContainerMetrics(width=1280, height=720)


@pytest.fixture
def overlay(measurer):
    return CaptionOverlay(OverlayConfig(), measurer)


def _showing(overlay, text, **kwargs):
    track = overlay.add_text_track(**kwargs)
    track.set_mode(TrackMode.SHOWING)
    assert overlay.load_track_text(track, text)
    return track


def test_first_update_lays_out_then_goes_quiet(overlay, sample_vtt):
    _showing(overlay, sample_vtt)

    geometry = overlay.update(1.5, HD)
    assert [g.cue.id for g in geometry] == ["1"]
    assert overlay.update(1.6, HD) is None
    assert overlay.update(1.7, HD) is None


def test_composite_order_is_latest_start_first(overlay, sample_vtt):
    _showing(overlay, sample_vtt)
    overlay.update(1.5, HD)

    geometry = overlay.update(2.5, HD)
    assert [g.cue.id for g in geometry] == ["2", "1"]
    # The later cue claims the bottom row, the earlier one moves up
    assert geometry[0].y > geometry[1].y


def test_cue_exit_triggers_layout(overlay, sample_vtt):
    _showing(overlay, sample_vtt)
    overlay.update(2.5, HD)
    geometry = overlay.update(3.5, HD)
    assert [g.cue.id for g in geometry] == ["1"]

    assert overlay.update(4.5, HD) == []


def test_mark_dirty_forces_a_pass(overlay, sample_vtt):
    _showing(overlay, sample_vtt)
    overlay.update(1.5, HD)
    overlay.mark_dirty()
    assert overlay.update(1.6, HD) is not None
    assert overlay.update(1.7, HD) is None


def test_metrics_change_forces_a_pass(overlay, sample_vtt):
    _showing(overlay, sample_vtt)
    overlay.update(1.5, HD)
    geometry = overlay.update(1.6, ContainerMetrics(width=640, height=360))
    assert geometry is not None
    assert geometry[0].width == 640


def test_mode_change_marks_dirty(overlay, sample_vtt):
    track = _showing(overlay, sample_vtt)
    overlay.update(1.5, HD)
    track.set_mode(TrackMode.HIDDEN)
    assert overlay.dirty
    # Hidden: still tracked, no longer laid out
    assert overlay.update(1.6, HD) == []
    assert [c.id for c in track.active_cues] == ["1"]


def test_karaoke_reveal_counts_as_a_change(overlay):
    _showing(overlay, "1\n00:00:00.000 --> 00:00:10.000\nNever <00:00:02.000>gonna")
    first = overlay.update(1.0, HD)
    assert "gonna" not in first[0].html
    assert overlay.update(1.5, HD) is None

    later = overlay.update(2.5, HD)
    assert later is not None
    assert "gonna" in later[0].html


def test_media_kinds_are_refused(overlay):
    with pytest.raises(ValueError):
        overlay.add_text_track(kind="audiodescription")
    assert overlay.tracks == []


def test_remove_track_drops_its_cues(overlay, sample_vtt):
    track = _showing(overlay, sample_vtt)
    overlay.update(1.5, HD)
    overlay.remove_track(track)
    assert overlay.update(1.6, HD) == []


def test_tracks_are_laid_out_in_track_order(overlay):
    first = _showing(overlay, "1\n00:00:00.000 --> 00:00:10.000\nFirst", id="a")
    second = _showing(overlay, "1\n00:00:05.000 --> 00:00:10.000\nSecond", id="b")
    geometry = overlay.update(6, HD)
    assert [g.cue.track for g in geometry] == [first, second]


def test_order_for_layout_skips_unloaded_and_hidden_tracks():
    showing, hidden, loading = Track(), Track(), Track()
    for track, mode, ready in ((showing, TrackMode.SHOWING, ReadyState.LOADED),
                               (hidden, TrackMode.HIDDEN, ReadyState.LOADED),
                               (loading, TrackMode.SHOWING, ReadyState.LOADING)):
        track.set_mode(mode)
        track.ready_state = ready
        track.active_cues = (Cue(id="x", start_time=0, end_time=1),)

    assert [c.track for c in order_for_layout([showing, hidden, loading])] == [None]
    assert order_for_layout([showing])[0] is showing.active_cues[0]
