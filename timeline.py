"""
Section schedule for the ProductShowcase composition.

The composition shows exactly one section at a time. Boundaries are computed
here and handed to the renderer as props, so the partition is owned by the
backend rather than hardcoded in the template.
"""

from dataclasses import dataclass
from typing import List, Tuple

from config import VIDEO_DURATION_SECONDS, VIDEO_FPS

# (name, seconds); the last section takes whatever time is left.
SECTION_SECONDS: Tuple[Tuple[str, int], ...] = (
    ("hook", 3),
    ("problem", 5),
    ("solution", 8),
    ("benefits", 10),
)
FINAL_SECTION = "callToAction"


@dataclass(frozen=True)
class Section:
    name: str
    start: int  # first frame, inclusive
    end: int  # exclusive

    def contains(self, frame: int) -> bool:
        return self.start <= frame < self.end

    @property
    def frames(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Timeline:
    fps: int
    total_frames: int
    sections: Tuple[Section, ...]

    @property
    def duration_seconds(self) -> float:
        return self.total_frames / self.fps

    def section_at(self, frame: int) -> Section:
        if not 0 <= frame < self.total_frames:
            raise ValueError(f"Frame {frame} is outside [0, {self.total_frames})")
        for section in self.sections:
            if section.contains(frame):
                return section
        raise ValueError(f"No section covers frame {frame}")

    def to_props(self) -> dict:
        return {
            "fps": self.fps,
            "durationInFrames": self.total_frames,
            "sections": [
                {"name": s.name, "startFrame": s.start, "endFrame": s.end} for s in self.sections
            ],
        }


def build_timeline(fps: int = VIDEO_FPS, duration_seconds: int = VIDEO_DURATION_SECONDS) -> Timeline:
    """
    Lays the fixed sections end to end. When the video is shorter than the
    fixed sections, later sections are clipped (possibly to zero frames) so
    the ranges still cover [0, total_frames) without gaps or overlap.
    """
    if fps <= 0 or duration_seconds <= 0:
        raise ValueError("fps and duration must be positive")

    total = fps * duration_seconds
    sections: List[Section] = []
    cursor = 0
    for name, seconds in SECTION_SECONDS:
        end = min(cursor + fps * seconds, total)
        sections.append(Section(name, cursor, end))
        cursor = end
    sections.append(Section(FINAL_SECTION, cursor, total))
    return Timeline(fps=fps, total_frames=total, sections=tuple(sections))
