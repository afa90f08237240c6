import json
import os
import stat
import threading

import pytest

from eraser.images import Image
from eraser.pipes import read_image_pipe
from eraser.scanner_template import ImageProvider


@pytest.fixture
def provider(tmp_path):
    return ImageProvider(
        timeout=5,
        poll_interval=0.01,
        collect_scan_path=tmp_path / "collectScan",
        scan_erase_path=tmp_path / "scanErase",
        erase_complete_scan_path=tmp_path / "eraseCompleteScan",
    )


def test_receive_images_reads_collected_images(provider):
    payload = [
        {"image_id": "sha256:aaa", "names": ["docker.io/library/alpine:3.7.3"]},
        {"image_id": "sha256:bbb", "digests": ["sha256:ccc"]},
    ]
    with open(provider.collect_scan_path, "w") as f:
        json.dump(payload, f)

    images = provider.receive_images()

    assert images == [
        Image("sha256:aaa", names=["docker.io/library/alpine:3.7.3"]),
        Image("sha256:bbb", digests=["sha256:ccc"]),
    ]


def test_receive_images_creates_writable_completion_pipe(provider):
    with open(provider.collect_scan_path, "w") as f:
        f.write("[]")

    assert provider.receive_images() == []
    mode = os.stat(provider.erase_complete_scan_path).st_mode
    assert stat.S_ISFIFO(mode)
    assert stat.S_IMODE(mode) == 0o666


def test_receive_images_fails_when_completion_pipe_exists(provider):
    with open(provider.erase_complete_scan_path, "w") as f:
        f.write("")
    with pytest.raises(FileExistsError):
        provider.receive_images()


def test_receive_images_times_out_without_collector(provider):
    provider.timeout = 0.05
    with pytest.raises(TimeoutError):
        provider.receive_images()


def _send_and_read(provider, non_compliant, failed):
    result = {}

    def run():
        result["sent"] = provider.send_images(non_compliant, failed)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    received = read_image_pipe(provider.scan_erase_path, timeout=5, poll_interval=0.01)
    thread.join(5)
    return result.get("sent"), received


def test_send_images_includes_failed_images_by_default(provider):
    vulnerable = [Image("sha256:aaa", names=["alpine:3.7.3"])]
    failed = [Image("sha256:bbb")]

    sent, received = _send_and_read(provider, vulnerable, failed)

    assert received == vulnerable + failed
    assert sent == vulnerable + failed


def test_send_images_can_leave_out_failed_images(provider):
    provider.delete_scan_failed_images = False
    vulnerable = [Image("sha256:aaa")]
    failed = [Image("sha256:bbb")]

    sent, received = _send_and_read(provider, vulnerable, failed)

    assert received == vulnerable
    assert sent == vulnerable


def test_send_images_fails_when_pipe_exists(provider):
    with open(provider.scan_erase_path, "w") as f:
        f.write("")
    with pytest.raises(FileExistsError):
        provider.send_images([Image("sha256:aaa")], [])


def test_finish_accepts_completion_message(provider):
    with open(provider.erase_complete_scan_path, "w") as f:
        f.write("complete")
    assert provider.finish() is True


def test_finish_rejects_garbage(provider):
    with open(provider.erase_complete_scan_path, "w") as f:
        f.write("garbage")
    assert provider.finish() is False


def test_finish_without_pipe_raises(provider):
    with pytest.raises(FileNotFoundError):
        provider.finish()