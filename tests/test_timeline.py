import pytest

from timeline import build_timeline


@pytest.mark.parametrize("fps,seconds", [(30, 30), (24, 30), (30, 10), (1, 2)])
def test_exactly_one_section_per_frame(fps, seconds):
    timeline = build_timeline(fps, seconds)

    for frame in range(timeline.total_frames):
        active = [s for s in timeline.sections if s.contains(frame)]
        assert len(active) == 1
        assert timeline.section_at(frame) is active[0]


@pytest.mark.parametrize("fps,seconds", [(30, 30), (30, 10)])
def test_sections_cover_all_frames_without_gaps(fps, seconds):
    timeline = build_timeline(fps, seconds)

    assert timeline.sections[0].start == 0
    assert timeline.sections[-1].end == timeline.total_frames
    for previous, current in zip(timeline.sections, timeline.sections[1:]):
        assert previous.end == current.start
    assert sum(s.frames for s in timeline.sections) == timeline.total_frames


def test_default_schedule():
    timeline = build_timeline()

    assert timeline.total_frames == 900
    assert [(s.name, s.start, s.end) for s in timeline.sections] == [
        ("hook", 0, 90),
        ("problem", 90, 240),
        ("solution", 240, 480),
        ("benefits", 480, 780),
        ("callToAction", 780, 900),
    ]


def test_frames_outside_the_video_are_rejected():
    timeline = build_timeline()
    with pytest.raises(ValueError):
        timeline.section_at(900)
    with pytest.raises(ValueError):
        timeline.section_at(-1)


def test_props_match_sections():
    props = build_timeline().to_props()
    assert props["durationInFrames"] == 900
    assert props["sections"][1] == {"name": "problem", "startFrame": 90, "endFrame": 240}
