"""Small pure rules of the media pipeline and completion tracking."""

from uuid import uuid4

import pytest

from src.courses.models import EnrollmentStatus, Lesson, LessonKind
from src.exceptions import ValidationError
from src.media.models import Media, MediaStatus
from src.media.service import GB, MB, sanitize_file_name, validate_upload
from src.playback.service import completion_rate, resolve_playlist_key
from src.playback.video_source import resolve_video_source
from src.progress.service import compute_completion_percentage, next_enrollment_status


@pytest.mark.parametrize(
    ("total", "completed", "expected"),
    [(5, 3, 60.0), (5, 5, 100.0), (3, 1, 33.33), (3, 2, 66.67), (0, 0, 0.0), (2, 7, 100.0)],
)
def test_completion_percentage(total: int, completed: int, expected: float) -> None:
    assert compute_completion_percentage(total, completed) == expected


def test_enrollment_status_follows_percentage() -> None:
    assert next_enrollment_status(EnrollmentStatus.ACTIVE, 100) == EnrollmentStatus.COMPLETED
    assert next_enrollment_status(EnrollmentStatus.COMPLETED, 80) == EnrollmentStatus.ACTIVE
    assert next_enrollment_status(EnrollmentStatus.ACTIVE, 99.99) == EnrollmentStatus.ACTIVE


def test_inactive_enrollments_keep_their_status() -> None:
    assert next_enrollment_status(EnrollmentStatus.SUSPENDED, 100) == EnrollmentStatus.SUSPENDED
    assert next_enrollment_status(EnrollmentStatus.CANCELLED, 100) == EnrollmentStatus.CANCELLED


def test_completion_rate_is_capped() -> None:
    assert completion_rate(300, 600) == 50.0
    assert completion_rate(700, 600) == 100.0
    assert completion_rate(10, None) is None
    assert completion_rate(10, 0) is None


def test_upload_limits_per_category() -> None:
    assert validate_upload("video/mp4", 5 * GB) == "video"
    assert validate_upload("application/pdf", 100 * MB) == "document"
    with pytest.raises(ValidationError):
        validate_upload("video/mp4", 5 * GB + 1)
    with pytest.raises(ValidationError):
        validate_upload("image/png", 50 * MB + 1)
    with pytest.raises(ValidationError):
        validate_upload("application/x-msdownload", 10)
    with pytest.raises(ValidationError):
        validate_upload("video/mp4", 0)


def test_file_names_are_reduced_to_a_safe_basename() -> None:
    assert sanitize_file_name("../../etc/passwd") == "passwd"
    assert sanitize_file_name("C:\\videos\\My Talk (final).mp4") == "My Talk _final_.mp4"
    with pytest.raises(ValidationError):
        sanitize_file_name("../")


def _video_lesson(video_url: str | None = None) -> Lesson:
    return Lesson(id=uuid4(), title="Video", kind=LessonKind.VIDEO, video_url=video_url)


def _media(status: MediaStatus, manifest_key: str | None = None) -> Media:
    return Media(id=uuid4(), mime_type="video/mp4", status=status, manifest_key=manifest_key)


def test_ready_manifest_wins_over_legacy_url() -> None:
    source = resolve_video_source(_video_lesson("https://cdn.test/old.mp4"), _media(MediaStatus.READY, "m/hls.m3u8"))
    assert source is not None
    assert source.manifest_key == "m/hls.m3u8"
    assert not source.is_legacy


def test_legacy_url_only_for_lessons_without_media() -> None:
    source = resolve_video_source(_video_lesson("https://cdn.test/old.mp4"), None)
    assert source is not None
    assert source.is_legacy
    assert source.legacy_url == "https://cdn.test/old.mp4"


@pytest.mark.parametrize("status", [MediaStatus.UPLOADED, MediaStatus.PROCESSING, MediaStatus.FAILED])
def test_unready_media_never_falls_back_to_legacy_url(status: MediaStatus) -> None:
    assert resolve_video_source(_video_lesson("https://cdn.test/old.mp4"), _media(status)) is None


def test_no_source_without_ready_media_or_url() -> None:
    assert resolve_video_source(_video_lesson(), _media(MediaStatus.FAILED)) is None
    assert resolve_video_source(_video_lesson(), None) is None


def test_playlist_paths_resolve_under_the_manifest_directory() -> None:
    manifest = "media/abc/hls/master.m3u8"

    assert resolve_playlist_key(manifest, None) == manifest
    assert resolve_playlist_key(manifest, "720p/index.m3u8") == "media/abc/hls/720p/index.m3u8"
    assert resolve_playlist_key(manifest, "720p/../480p/index.m3u8") == "media/abc/hls/480p/index.m3u8"


@pytest.mark.parametrize("path", ["../secret.m3u8", "../../../other/master.m3u8", "/etc/master.m3u8", "720p/seg.ts"])
def test_playlist_paths_cannot_leave_the_manifest_directory(path: str) -> None:
    with pytest.raises(ValidationError):
        resolve_playlist_key("media/abc/hls/master.m3u8", path)
