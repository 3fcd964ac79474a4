import asyncio
import sys
from pathlib import Path

import pytest

from tubely import media as media_module
from tubely.media import Dimensions, MediaError, MediaTools, classify, parse_dimensions, scratch_files


def test_classify_common_shapes():
    assert classify(1920, 1080) == "landscape"
    assert classify(1080, 1920) == "portrait"
    assert classify(1000, 1000) == "other"


def test_classify_band_edges():
    assert classify(167, 100) == "landscape"
    assert classify(187, 100) == "landscape"
    assert classify(150, 100) == "other"
    assert classify(1920, 0) == "other"


def test_parse_dimensions_reads_first_stream():
    raw = '{"programs": [], "streams": [{"width": 1280, "height": 720}, {"width": 1, "height": 1}]}'
    assert parse_dimensions(raw) == Dimensions(1280, 720)


@pytest.mark.parametrize("raw", ["", "not json", '{"streams": []}', '{"streams": [{"width": 1280}]}'])
def test_parse_dimensions_rejects_incomplete_output(raw):
    with pytest.raises(MediaError):
        parse_dimensions(raw)


@pytest.mark.asyncio
async def test_probe_builds_ffprobe_command(monkeypatch):
    seen = {}

    async def fake_run(cmd, timeout):
        seen["cmd"] = cmd
        return 0, '{"streams": [{"width": 1080, "height": 1920}]}', ""

    monkeypatch.setattr(media_module, "_run", fake_run)
    tools = MediaTools(ffprobe="/usr/bin/ffprobe")
    assert await tools.get_video_aspect_ratio(Path("/tmp/x.mp4")) == "portrait"
    cmd = seen["cmd"]
    assert cmd[0] == "/usr/bin/ffprobe"
    assert cmd[cmd.index("-select_streams") + 1] == "v:0"
    assert cmd[cmd.index("-show_entries") + 1] == "stream=width,height"
    assert cmd[-1] == "/tmp/x.mp4"


@pytest.mark.asyncio
async def test_probe_failure_surfaces_stderr(monkeypatch):
    async def fake_run(cmd, timeout):
        return 1, "", "moov atom not found"

    monkeypatch.setattr(media_module, "_run", fake_run)
    with pytest.raises(MediaError, match="moov atom not found"):
        await MediaTools().probe(Path("/tmp/x.mp4"))


@pytest.mark.asyncio
async def test_remux_writes_processed_sibling(monkeypatch):
    seen = {}

    async def fake_run(cmd, timeout):
        seen["cmd"] = cmd
        return 0, "", ""

    monkeypatch.setattr(media_module, "_run", fake_run)
    out = await MediaTools().remux(Path("/tmp/abc.mp4"))
    assert out == Path("/tmp/abc.mp4.processed")
    cmd = seen["cmd"]
    assert cmd[cmd.index("-movflags") + 1] == "faststart"
    assert cmd[cmd.index("-codec") + 1] == "copy"
    assert cmd[cmd.index("-map_metadata") + 1] == "0"
    assert cmd[cmd.index("-i") + 1] == "/tmp/abc.mp4"
    assert cmd[-1] == "/tmp/abc.mp4.processed"


@pytest.mark.asyncio
async def test_remux_failure_raises(monkeypatch):
    async def fake_run(cmd, timeout):
        return 1, "", "Invalid data found when processing input"

    monkeypatch.setattr(media_module, "_run", fake_run)
    with pytest.raises(MediaError, match="Invalid data"):
        await MediaTools().remux(Path("/tmp/abc.mp4"))


@pytest.mark.asyncio
async def test_run_kills_hung_process():
    with pytest.raises(MediaError, match="timed out"):
        await media_module._run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)


@pytest.mark.asyncio
async def test_run_collects_output():
    rc, out, err = await media_module._run(
        [sys.executable, "-c", "import sys; print('hi'); sys.stderr.write('warn'); sys.exit(3)"],
        timeout=30,
    )
    assert rc == 3
    assert out.strip() == "hi"
    assert err == "warn"


def test_scratch_files_removed_on_success(tmp_path):
    with scratch_files(tmp_path / "scratch", "v.mp4") as (src, processed):
        src.write_bytes(b"raw")
        processed.write_bytes(b"remuxed")
    assert list((tmp_path / "scratch").iterdir()) == []


def test_scratch_files_removed_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with scratch_files(tmp_path, "v.mp4") as (src, processed):
            src.write_bytes(b"raw")
            raise RuntimeError("ffmpeg died")
    assert not (tmp_path / "v.mp4").exists()
    assert not (tmp_path / "v.mp4.processed").exists()


@pytest.mark.asyncio
async def test_run_reports_missing_binary():
    with pytest.raises(MediaError, match="ffprobe could not be started"):
        await media_module._run(["/nonexistent/ffprobe", "-v", "error"], timeout=5)


@pytest.mark.asyncio
async def test_cancelled_run_reaps_child(monkeypatch):
    started = []
    real_exec = asyncio.create_subprocess_exec

    async def recording_exec(*args, **kwargs):
        proc = await real_exec(*args, **kwargs)
        started.append(proc)
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", recording_exec)
    task = asyncio.create_task(
        media_module._run([sys.executable, "-c", "import time; time.sleep(30)"], timeout=60)
    )
    while not started:
        await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert started[0].returncode is not None
