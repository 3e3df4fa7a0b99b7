"""FFmpeg adapter: fast-start remuxing and aspect ratio probing.

Both tools run as asyncio subprocesses with a timeout. A timed out or
cancelled invocation kills the child process before the error propagates.
"""

import asyncio
import json
import logging
import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tubely.core.exceptions import ClientError, DependencyError
from tubely.core.metrics import time_media_tool
from tubely.core.tracing import create_span

logger = logging.getLogger(__name__)

FAST_START_SUFFIX = ".processing"
DEFAULT_TIMEOUT_SECONDS = 300.0

# Ratios in hundredths, rounded half up: 16/9 -> 1.78, 9/16 -> 0.56
LANDSCAPE_RATIO = 178
PORTRAIT_RATIO = 56


class AspectRatio(str, Enum):
    """Orientation classes used as storage key prefixes."""

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


class MediaProcessingError(ClientError):
    """Base error for media that the tools could not process."""

    status_code = 422


class FastStartError(MediaProcessingError):
    """Raised when the fast-start remux fails."""

    stage = "transcode"


class ProbeError(MediaProcessingError):
    """Raised when stream dimensions cannot be determined."""

    stage = "probe"


class MediaToolError(DependencyError):
    """Raised when a media tool cannot be run at all."""

    stage = "transcode"


class MediaToolTimeoutError(MediaToolError):
    """Raised when a media tool exceeds its timeout."""

    pass


@dataclass
class ToolResult:
    """Exit status and captured output of a tool invocation."""
    returncode: int
    stdout: bytes
    stderr: bytes

    def stderr_tail(self, limit: int = 500) -> str:
        return self.stderr.decode("utf-8", errors="replace")[-limit:].strip()


@dataclass
class ProcessedArtifact:
    """Fast-start output and its orientation class."""
    path: str
    aspect_ratio: AspectRatio

    @property
    def filename(self) -> str:
        """Published name: the staged name without the scratch suffix."""
        return os.path.basename(self.path).removesuffix(FAST_START_SUFFIX)


def classify_aspect_ratio(width: int, height: int) -> AspectRatio:
    """Classify stream dimensions as landscape, portrait or other.

    The ratio is compared at two decimal places, so 1920x1080 and 1280x720
    are both landscape.

    Raises:
        ProbeError: If height is not positive
    """
    if height <= 0 or width < 0:
        raise ProbeError(f"Invalid stream dimensions {width}x{height}")

    hundredths = math.floor(width / height * 100 + 0.5)
    if hundredths == LANDSCAPE_RATIO:
        return AspectRatio.LANDSCAPE
    if hundredths == PORTRAIT_RATIO:
        return AspectRatio.PORTRAIT
    return AspectRatio.OTHER


def parse_stream_dimensions(probe_output: bytes) -> tuple[int, int]:
    """Extract width and height of the first video stream from ffprobe JSON.

    Streams without a ``codec_type`` are treated as video.

    Raises:
        ProbeError: Unparsable output, no streams, or zero height
    """
    try:
        data = json.loads(probe_output or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProbeError(f"Unreadable ffprobe output: {e}") from e

    streams = (data.get("streams") or []) if isinstance(data, dict) else []
    video_streams = [
        s for s in streams
        if isinstance(s, dict) and s.get("codec_type", "video") == "video"
    ]
    if not video_streams:
        raise ProbeError("No valid streams in ffprobe output")

    stream = video_streams[0]
    try:
        width = int(stream.get("width") or 0)
        height = int(stream.get("height") or 0)
    except (TypeError, ValueError) as e:
        raise ProbeError(f"Invalid stream dimensions: {e}") from e

    if height == 0:
        raise ProbeError("No valid streams in ffprobe output")
    return width, height


class FFmpegProcessor:
    """Runs ffmpeg and ffprobe against staged uploads."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        timeout_seconds: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize processor.

        Args:
            ffmpeg_path: Path to ffmpeg binary
            ffprobe_path: Path to ffprobe binary
            timeout_seconds: Per-invocation timeout, None for no limit
        """
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds

    def build_fast_start_command(self, input_path: str, output_path: str) -> list[str]:
        """Remux (no re-encode) with the moov atom ahead of the sample data."""
        return [
            self.ffmpeg_path,
            "-y",
            "-i", input_path,
            "-c", "copy",
            "-movflags", "faststart",
            "-f", "mp4",
            output_path,
        ]

    def build_probe_command(self, input_path: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            input_path,
        ]

    async def _run(self, cmd: list[str]) -> ToolResult:
        """Run a tool to completion, killing it on timeout or cancellation."""
        tool = os.path.basename(cmd[0])
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MediaToolError(f"Could not run {tool}: {e}") from e

        with time_media_tool(tool):
            try:
                stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                await self._kill(process)
                logger.warning("Media tool timed out", extra={"tool": tool, "timeout": self.timeout_seconds})
                raise MediaToolTimeoutError(f"{tool} timed out after {self.timeout_seconds}s")
            except asyncio.CancelledError:
                await self._kill(process)
                raise

        return ToolResult(returncode=process.returncode, stdout=stdout, stderr=stderr)

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    async def process_for_fast_start(self, input_path: str) -> str:
        """Write a fast-start copy next to the input.

        Returns:
            str: Output path (input path + ``.processing``)

        Raises:
            FastStartError: ffmpeg exited non-zero
        """
        output_path = input_path + FAST_START_SUFFIX
        with create_span("media.fast_start", attributes={"media.input": input_path}):
            try:
                result = await self._run(self.build_fast_start_command(input_path, output_path))
            except BaseException:
                _remove_quietly(output_path)
                raise

            if result.returncode != 0:
                _remove_quietly(output_path)
                raise FastStartError(
                    f"Issue processing file for fast start: ffmpeg exited with "
                    f"{result.returncode}: {result.stderr_tail()}"
                )
        return output_path

    async def get_aspect_ratio(self, input_path: str) -> AspectRatio:
        """Probe a file and classify its orientation.

        Raises:
            ProbeError: ffprobe failed or reported no usable stream
        """
        with create_span("media.probe", attributes={"media.input": input_path}) as span:
            result = await self._run(self.build_probe_command(input_path))
            if result.returncode != 0:
                raise ProbeError(
                    f"Issue finding aspect ratio: ffprobe exited with "
                    f"{result.returncode}: {result.stderr_tail()}"
                )

            width, height = parse_stream_dimensions(result.stdout)
            aspect_ratio = classify_aspect_ratio(width, height)
            span.set_attribute("media.aspect_ratio", aspect_ratio.value)

        logger.debug(
            "Probed media dimensions",
            extra={"width": width, "height": height, "aspect_ratio": aspect_ratio.value},
        )
        return aspect_ratio

    async def process(self, staged_path: str) -> ProcessedArtifact:
        """Remux for fast start, then classify the original staged file."""
        output_path = await self.process_for_fast_start(staged_path)
        try:
            aspect_ratio = await self.get_aspect_ratio(staged_path)
        except BaseException:
            _remove_quietly(output_path)
            raise
        return ProcessedArtifact(path=output_path, aspect_ratio=aspect_ratio)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove media output", extra={"path": path, "error": str(e)})
