import json
import stat
import threading

import pytest

from eraser.images import Image
from eraser.pipes import (
    ERASE_COMPLETE_MESSAGE,
    read_collect_scan_pipe,
    read_image_pipe,
    write_complete_message,
    write_scan_erase_pipe,
)

IMAGES = [
    Image("sha256:aaa", ["repo/a:1"], ["sha256:da"]),
    Image("sha256:bbb"),
]


def test_read_collect_scan_pipe_from_file(tmp_path):
    path = tmp_path / "collectScan"
    path.write_text(json.dumps([image.to_dict() for image in IMAGES]))
    assert read_collect_scan_pipe(path, timeout=1, poll_interval=0.01) == IMAGES


def test_read_image_pipe_null_is_empty(tmp_path):
    path = tmp_path / "collectScan"
    path.write_text("null")
    assert read_image_pipe(path, timeout=1, poll_interval=0.01) == []


def test_read_image_pipe_times_out(tmp_path):
    with pytest.raises(TimeoutError):
        read_image_pipe(tmp_path / "missing", timeout=0.05, poll_interval=0.01)


def test_read_image_pipe_waits_for_file(tmp_path):
    path = tmp_path / "late"
    payload = json.dumps([image.to_dict() for image in IMAGES])
    timer = threading.Timer(0.05, path.write_text, args=(payload,))
    timer.start()
    try:
        assert read_image_pipe(path, timeout=5, poll_interval=0.01) == IMAGES
    finally:
        timer.cancel()


def test_read_image_pipe_rejects_object(tmp_path):
    path = tmp_path / "collectScan"
    path.write_text(json.dumps({"image_id": "x"}))
    with pytest.raises(ValueError):
        read_image_pipe(path, timeout=1, poll_interval=0.01)


def test_write_scan_erase_pipe_round_trip(tmp_path):
    path = tmp_path / "scanErase"
    writer = threading.Thread(target=write_scan_erase_pipe, args=(IMAGES, path))
    writer.start()
    received = read_image_pipe(path, timeout=5, poll_interval=0.01)
    writer.join(5)
    assert received == IMAGES
    assert stat.S_ISFIFO(path.stat().st_mode)


def test_write_scan_erase_pipe_existing_path(tmp_path):
    path = tmp_path / "scanErase"
    path.write_text("")
    with pytest.raises(FileExistsError):
        write_scan_erase_pipe(IMAGES, path)


def test_write_complete_message(tmp_path):
    path = tmp_path / "eraseComplete"
    path.write_text("")
    write_complete_message(path)
    assert path.read_text() == ERASE_COMPLETE_MESSAGE


def test_write_complete_message_missing_pipe(tmp_path):
    with pytest.raises(FileNotFoundError):
        write_complete_message(tmp_path / "missing")