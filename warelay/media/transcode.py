"""
Media transcoding via ffmpeg.

Images are downscaled and re-encoded as JPEG, videos re-encoded with
libx264 so they fit WhatsApp's upload limits.
"""

from __future__ import annotations

import asyncio
import mimetypes
import uuid
from pathlib import Path

from loguru import logger

from warelay.bus.events import MediaPayload
from warelay.config.schema import MediaConfig
from warelay.errors import TranscodeError
from warelay.utils.helpers import RUNTIME_PATHS, ensure_dir, human_size


class MediaTransformer:
    """
    ffmpeg-backed transcoder.

    Every call works on private temp files that are removed afterwards,
    whatever the outcome.
    """

    def __init__(self, config: MediaConfig | None = None, tmp_dir: Path | None = None):
        self.config = config or MediaConfig()
        self.tmp_dir = tmp_dir or RUNTIME_PATHS.tmp

    # =========================
    # Public API
    # =========================

    async def compress_image(self, media: MediaPayload) -> MediaPayload:
        width = self.config.image_max_width
        args = [
            "-vf", f"scale='min({width},iw)':-2",
            "-frames:v", "1",
            "-q:v", str(self.config.image_quality),
        ]
        data = await self._transcode(media.data, _input_suffix(media, ".jpg"), ".jpg", args)
        return MediaPayload(
            data=data,
            mimetype="image/jpeg",
            filename=_with_suffix(media.filename, ".jpg"),
        )

    async def compress_video(self, media: MediaPayload) -> MediaPayload:
        args = [
            "-vcodec", "libx264",
            "-crf", str(self.config.video_crf),
            "-preset", self.config.video_preset,
            "-movflags", "+faststart",
        ]
        data = await self._transcode(media.data, _input_suffix(media, ".mp4"), ".mp4", args)
        return MediaPayload(
            data=data,
            mimetype="video/mp4",
            filename=_with_suffix(media.filename, ".mp4"),
        )

    # =========================
    # ffmpeg plumbing
    # =========================

    async def _transcode(
        self,
        data: bytes,
        in_suffix: str,
        out_suffix: str,
        args: list[str],
    ) -> bytes:
        if not data:
            raise TranscodeError("Empty input payload")

        ensure_dir(self.tmp_dir)
        job = uuid.uuid4().hex
        input_path = self.tmp_dir / f"{job}-input{in_suffix}"
        output_path = self.tmp_dir / f"{job}-output{out_suffix}"

        try:
            input_path.write_bytes(data)
            await self._run_ffmpeg(["-y", "-i", str(input_path), *args, str(output_path)])

            if not output_path.exists():
                raise TranscodeError("ffmpeg produced no output")

            result = output_path.read_bytes()
            if not result:
                raise TranscodeError("ffmpeg produced an empty file")

            logger.debug(
                "Transcoded media | {} -> {}",
                human_size(len(data)),
                human_size(len(result)),
            )
            return result

        finally:
            input_path.unlink(missing_ok=True)
            output_path.unlink(missing_ok=True)

    async def _run_ffmpeg(self, args: list[str]) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self.config.ffmpeg_path,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeError(f"Cannot start ffmpeg: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise TranscodeError(
                f"ffmpeg timed out after {self.config.timeout} seconds"
            ) from e

        if process.returncode != 0:
            err = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise TranscodeError(
                f"ffmpeg exited with {process.returncode}: {err[-500:]}"
            )


def _with_suffix(filename: str | None, suffix: str) -> str | None:
    if not filename:
        return None
    return str(Path(filename).with_suffix(suffix))


def _input_suffix(media: MediaPayload, default: str) -> str:
    return mimetypes.guess_extension(media.mimetype or "") or default
