"""Where a video lesson's bytes come from.

Lessons created before the media pipeline carry a direct `video_url`.
Newer lessons reference a Media, and only its transcoded manifest is served.
"""

from dataclasses import dataclass

from src.courses.models import Lesson
from src.media.models import Media, MediaStatus


@dataclass(frozen=True)
class VideoSource:
    manifest_key: str | None = None
    legacy_url: str | None = None
    media: Media | None = None

    @property
    def is_legacy(self) -> bool:
        return self.manifest_key is None


def resolve_video_source(lesson: Lesson, media: Media | None) -> VideoSource | None:
    """Manifest of a READY media, or the legacy URL when the lesson has no media.

    A lesson that references media never falls back to its legacy URL, so
    media that is still processing or has failed yields None.
    """
    if media is not None:
        if media.status == MediaStatus.READY and media.manifest_key:
            return VideoSource(manifest_key=media.manifest_key, media=media)
        return None
    if lesson.video_url:
        return VideoSource(legacy_url=lesson.video_url)
    return None
