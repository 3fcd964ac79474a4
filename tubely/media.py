# tubely/media.py
"""ffprobe / ffmpeg wrappers used by the upload pipeline.

Both tools are run with ``asyncio.create_subprocess_exec`` and bounded by a
timeout; a process that outlives it is killed.
"""
from __future__ import annotations

import asyncio
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Tuple

logger = logging.getLogger(__name__)

LANDSCAPE = "landscape"
PORTRAIT = "portrait"
OTHER = "other"

LANDSCAPE_RATIO = 1.77
PORTRAIT_RATIO = 0.5625
RATIO_TOLERANCE = 0.1

PROCESSED_SUFFIX = ".processed"


class MediaError(RuntimeError):
    pass


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int


def classify(width: int, height: int) -> str:
    if height <= 0 or width <= 0:
        return OTHER
    ratio = width / height
    # Inclusive bands; rounding absorbs float error right at the edges.
    if round(abs(ratio - LANDSCAPE_RATIO), 6) <= RATIO_TOLERANCE:
        return LANDSCAPE
    if round(abs(ratio - PORTRAIT_RATIO), 6) <= RATIO_TOLERANCE:
        return PORTRAIT
    return OTHER


def parse_dimensions(raw: str) -> Dimensions:
    try:
        st = json.loads(raw or "{}")["streams"][0]
        return Dimensions(width=int(st["width"]), height=int(st["height"]))
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise MediaError(f"Could not read stream dimensions from ffprobe output: {e!r}")


async def _run(cmd: List[str], timeout: float) -> Tuple[int, str, str]:
    tool = Path(cmd[0]).name
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"Could not start {cmd[0]}: {e}")
        raise MediaError(f"{tool} could not be started: {e}")
    try:
        out, err = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise MediaError(f"{tool} timed out after {timeout:.0f}s")
    except asyncio.CancelledError:
        await _kill(proc)
        raise
    return proc.returncode, out.decode("utf-8", "ignore"), err.decode("utf-8", "ignore")


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            # exited on its own right at the deadline
            pass
    await proc.wait()


class MediaTools:
    """Narrow seam over the external binaries; tests substitute their own."""

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe", timeout: float = 600.0) -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout = timeout

    async def probe(self, path: Path) -> Dimensions:
        rc, out, err = await _run(
            [
                self.ffprobe,
                "-v",
                "error",
                "-select_streams",
                "v:0",
                "-show_entries",
                "stream=width,height",
                "-of",
                "json",
                str(path),
            ],
            self.timeout,
        )
        if rc != 0:
            logger.error(f"ffprobe failed on {path} (rc={rc}): {err.strip()}")
            raise MediaError(f"ffprobe failed: {err.strip()}")
        return parse_dimensions(out)

    async def get_video_aspect_ratio(self, path: Path) -> str:
        dims = await self.probe(path)
        return classify(dims.width, dims.height)

    async def remux(self, path: Path) -> Path:
        out_path = Path(f"{path}{PROCESSED_SUFFIX}")
        rc, _, err = await _run(
            [
                self.ffmpeg,
                "-y",
                "-i",
                str(path),
                "-movflags",
                "faststart",
                "-map_metadata",
                "0",
                "-codec",
                "copy",
                "-f",
                "mp4",
                str(out_path),
            ],
            self.timeout,
        )
        if rc != 0:
            logger.error(f"ffmpeg fast-start failed on {path} (rc={rc}): {err.strip()}")
            raise MediaError(f"ffmpeg fast-start failed: {err.strip()}")
        return out_path


@contextmanager
def scratch_files(directory: Path, name: str) -> Iterator[Tuple[Path, Path]]:
    """Yield ``(src, processed)`` scratch paths; both are gone on exit."""
    directory.mkdir(parents=True, exist_ok=True)
    src = directory / name
    processed = Path(f"{src}{PROCESSED_SUFFIX}")
    try:
        yield src, processed
    finally:
        for p in (src, processed):
            try:
                p.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove scratch file {p}: {e}")
