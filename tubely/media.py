"""Inspecting and preparing video files with ffprobe and ffmpeg."""

from __future__ import annotations

import json
import os
import subprocess
from typing import Any

_FFPROBE_ARGS = ("ffprobe", "-v", "error", "-print_format", "json", "-show_streams")


class MediaError(Exception):
    """Raised when a video cannot be inspected or processed."""


def classify_aspect_ratio(width: int, height: int) -> str:
    """Return "16:9", "9:16" or "other" for the given frame size."""
    if width == 16 * height // 9:
        return "16:9"
    if height == 16 * width // 9:
        return "9:16"
    return "other"


def aspect_ratio_directory(aspect_ratio: str) -> str:
    """Return the storage directory used for videos of an aspect ratio."""
    return {"16:9": "landscape", "9:16": "portrait"}.get(aspect_ratio, "other")


def _dimension(stream: Any, key: str) -> int:
    if stream is None:
        return 0
    if not isinstance(stream, dict):
        raise MediaError("could not parse ffprobe output: stream is not an object")
    value = stream.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise MediaError(f"could not parse ffprobe output: {key} is not an integer")
    return value


def parse_probe_output(output: str | bytes) -> str:
    """Return the aspect ratio of the first stream in ffprobe's JSON output."""
    try:
        data = json.loads(output)
    except ValueError as exc:
        raise MediaError(f"could not parse ffprobe output: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MediaError("could not parse ffprobe output: not a JSON object")
    streams = data.get("streams") or []
    if not isinstance(streams, list):
        raise MediaError("could not parse ffprobe output: streams is not a list")
    if not streams:
        raise MediaError("no video streams found")
    first = streams[0]
    return classify_aspect_ratio(_dimension(first, "width"), _dimension(first, "height"))


def get_video_aspect_ratio(file_path: str | os.PathLike) -> str:
    """Run ffprobe on a file and return its aspect ratio."""
    cmd = [*_FFPROBE_ARGS, str(file_path)]
    try:
        result = subprocess.run(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.DEVNULL, check=False
        )
    except OSError as exc:
        raise MediaError(f"ffprobe error: {exc}") from exc
    if result.returncode != 0:
        raise MediaError(f"ffprobe error: exit status {result.returncode}")
    return parse_probe_output(result.stdout)


def process_video_for_faster_start(input_file_path: str | os.PathLike) -> str:
    """Move the moov atom to the front of an MP4 and return the new file's path."""
    processed_path = f"{input_file_path}.processing"
    cmd = [
        "ffmpeg",
        "-i",
        str(input_file_path),
        "-movflags",
        "faststart",
        "-codec",
        "copy",
        "-f",
        "mp4",
        processed_path,
    ]
    try:
        result = subprocess.run(
            cmd, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE, check=False
        )
    except OSError as exc:
        raise MediaError(f"error processing video: , {exc}") from exc
    if result.returncode != 0:
        stderr = (result.stderr or b"").decode("utf-8", errors="replace")
        raise MediaError(
            f"error processing video: {stderr}, exit status {result.returncode}"
        )

    try:
        size = os.stat(processed_path).st_size
    except OSError as exc:
        raise MediaError(f"could not stat processed file: {exc}") from exc
    if size == 0:
        raise MediaError("processed file is empty")
    return processed_path