import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from tubely.media import (
    MediaError,
    aspect_ratio_directory,
    classify_aspect_ratio,
    get_video_aspect_ratio,
    parse_probe_output,
    process_video_for_faster_start,
)


@pytest.mark.parametrize(
    "width, height, ratio",
    [
        (1920, 1080, "16:9"),
        (1280, 720, "16:9"),
        (1080, 1920, "9:16"),
        (720, 1280, "9:16"),
        (1000, 1000, "other"),
    ],
)
def test_classify_aspect_ratio(width, height, ratio):
    assert classify_aspect_ratio(width, height) == ratio


def test_classify_is_symmetric():
    for width, height in [(1920, 1080), (640, 360), (300, 200)]:
        forward = classify_aspect_ratio(width, height)
        backward = classify_aspect_ratio(height, width)
        swapped = {"16:9": "9:16", "9:16": "16:9", "other": "other"}
        assert swapped[forward] == backward


@pytest.mark.parametrize(
    "ratio, directory",
    [("16:9", "landscape"), ("9:16", "portrait"), ("other", "other"), ("4:3", "other")],
)
def test_aspect_ratio_directory(ratio, directory):
    assert aspect_ratio_directory(ratio) == directory


def test_parse_probe_output_uses_first_stream():
    output = json.dumps(
        {"streams": [{"width": 1080, "height": 1920}, {"width": 1920, "height": 1080}]}
    )
    assert parse_probe_output(output) == "9:16"
    assert parse_probe_output(output.encode()) == "9:16"


def test_parse_probe_output_no_streams():
    with pytest.raises(MediaError, match="no video streams found"):
        parse_probe_output(json.dumps({"streams": []}))
    with pytest.raises(MediaError, match="no video streams found"):
        parse_probe_output("{}")


def test_parse_probe_output_invalid_json():
    with pytest.raises(MediaError, match="could not parse ffprobe output"):
        parse_probe_output("not json")


def test_parse_probe_output_bad_width():
    with pytest.raises(MediaError, match="could not parse ffprobe output"):
        parse_probe_output(json.dumps({"streams": [{"width": "wide", "height": 1}]}))


def test_get_video_aspect_ratio_runs_ffprobe(tmp_path):
    video = tmp_path / "clip.mp4"
    stdout = json.dumps({"streams": [{"width": 1920, "height": 1080}]}).encode()
    with patch("tubely.media.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess([], 0, stdout=stdout)
        assert get_video_aspect_ratio(video) == "16:9"
    cmd = run.call_args.args[0]
    assert cmd[0] == "ffprobe"
    assert cmd[-1] == str(video)
    assert "-show_streams" in cmd


def test_get_video_aspect_ratio_failure(tmp_path):
    with patch("tubely.media.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess([], 1, stdout=b"")
        with pytest.raises(MediaError, match="ffprobe error"):
            get_video_aspect_ratio(tmp_path / "clip.mp4")


def test_get_video_aspect_ratio_missing_program(tmp_path):
    with patch("tubely.media.subprocess.run", side_effect=FileNotFoundError("ffprobe")):
        with pytest.raises(MediaError, match="ffprobe error"):
            get_video_aspect_ratio(tmp_path / "clip.mp4")


def _fake_ffmpeg(content):
    def run(cmd, **kwargs):
        Path(cmd[-1]).write_bytes(content)
        return subprocess.CompletedProcess(cmd, 0, stdout=None, stderr=b"")

    return run


def test_process_video_for_faster_start(tmp_path):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"original")
    with patch("tubely.media.subprocess.run", side_effect=_fake_ffmpeg(b"moov")) as run:
        result = process_video_for_faster_start(source)
    assert result == f"{source}.processing"
    assert Path(result).read_bytes() == b"moov"
    cmd = run.call_args.args[0]
    assert cmd[0] == "ffmpeg"
    assert "faststart" in cmd


def test_process_video_empty_output(tmp_path):
    source = tmp_path / "clip.mp4"
    with patch("tubely.media.subprocess.run", side_effect=_fake_ffmpeg(b"")):
        with pytest.raises(MediaError, match="processed file is empty"):
            process_video_for_faster_start(source)


def test_process_video_ffmpeg_fails(tmp_path):
    source = tmp_path / "clip.mp4"
    with patch("tubely.media.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess([], 1, stderr=b"bad input")
        with pytest.raises(MediaError, match="bad input"):
            process_video_for_faster_start(source)


def test_process_video_missing_output(tmp_path):
    source = tmp_path / "clip.mp4"
    with patch("tubely.media.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess([], 0, stderr=b"")
        with pytest.raises(MediaError, match="could not stat processed file"):
            process_video_for_faster_start(source)