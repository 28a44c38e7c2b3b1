from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path

from demoreel.config import Settings, TranscodeSettings
from demoreel.errors import CleanupFailure, ConcatenationFailure, ProcessTimeout, TranscodeFailure
from demoreel.models import PostProcessResult, TranscodeResult
from demoreel.process import resolve_executable, run_process

logger = logging.getLogger(__name__)

MANIFEST_NAME = "filelist.txt"
COMBINED_SUFFIX = "-combined"


async def process_rendered_segments(demo_name: str, settings: Settings) -> PostProcessResult:
    """Turn the renderer's raw segments into one combined video.

    Steps gate each other: discover raw segments, transcode them all in
    parallel, stop if any conversion failed (leaving every file in place),
    order the converted files by their numeric ordinal, concatenate them via
    a manifest, then delete the manifest and all intermediates.
    """

    movies_dir = settings.movies_dir.expanduser().resolve()
    basename = settings.render.output_basename
    output_extension = settings.transcode.output_extension
    combined_path = movies_dir / f"{demo_name}{COMBINED_SUFFIX}{output_extension}"

    raw_segments = discover_raw_segments(movies_dir, basename, settings.render.raw_extension)
    if not raw_segments:
        logger.info("No raw segments found in %s; nothing to process.", movies_dir)
        return PostProcessResult(status="nothing_to_process")

    logger.info("Found %d raw segments in %s", len(raw_segments), movies_dir)

    results = await transcode_segments(raw_segments, settings)
    failures = [result for result in results if not result.succeeded]
    if failures:
        for failure in failures:
            logger.error("Conversion failed for %s: %s", failure.source.name, failure.error)
        raise TranscodeFailure([failure.source for failure in failures], total=len(results))

    logger.info("All %d conversions completed.", len(results))

    converted_names = sort_by_ordinal(
        [
            path.name
            for path in movies_dir.iterdir()
            if path.is_file()
            and path.name.startswith(basename)
            and path.name.endswith(output_extension)
            and not path.stem.endswith(COMBINED_SUFFIX)
        ],
        basename=basename,
        extension=output_extension,
    )

    manifest_path = write_manifest(movies_dir, converted_names)
    await concatenate(manifest_path, combined_path, settings)
    logger.info("Combined video written to %s", combined_path)

    cleanup_failures = cleanup(
        [manifest_path, *raw_segments, *(movies_dir / name for name in converted_names)]
    )

    return PostProcessResult(
        status="completed",
        output_path=combined_path,
        segment_count=len(converted_names),
        cleanup_failures=[str(failure) for failure in cleanup_failures],
    )


def discover_raw_segments(directory: Path, basename: str, raw_extension: str) -> list[Path]:
    if not directory.is_dir():
        return []

    names = [
        path.name
        for path in directory.iterdir()
        if path.is_file() and path.name.startswith(basename) and path.name.endswith(raw_extension)
    ]
    return [directory / name for name in sort_by_ordinal(names, basename=basename, extension=raw_extension)]


def segment_ordinal(name: str, *, basename: str = "movie", extension: str = ".mp4") -> int:
    """Number embedded between basename and extension; 0 when there is none."""

    match = re.fullmatch(rf"{re.escape(basename)}(\d+){re.escape(extension)}", name)
    if match is None:
        return 0
    return int(match.group(1))


def sort_by_ordinal(names: Iterable[str], *, basename: str = "movie", extension: str = ".mp4") -> list[str]:
    return sorted(
        names,
        key=lambda name: (segment_ordinal(name, basename=basename, extension=extension), name),
    )


def write_manifest(directory: Path, names: Sequence[str]) -> Path:
    """Write an ffmpeg concat-demuxer list; names resolve relative to the list file."""

    manifest_path = directory / MANIFEST_NAME
    lines = [f"file '{_escape_manifest_name(name)}'" for name in names]
    manifest_path.write_text("\n".join(lines), encoding="utf-8")
    return manifest_path


def _escape_manifest_name(name: str) -> str:
    return name.replace("'", "'\\''")


def build_transcode_command(source: Path, target: Path, settings: Settings) -> list[str]:
    return [
        resolve_executable(settings.tools.ffmpeg_path),
        "-y",
        "-i",
        str(source),
        *_encoding_args(settings.transcode),
        str(target),
    ]


def build_concat_command(manifest_path: Path, output_path: Path, settings: Settings) -> list[str]:
    if settings.transcode.concat_mode == "reencode":
        codec_args = _encoding_args(settings.transcode)
    else:
        # inputs share one encoding, so the streams can be copied as-is
        codec_args = ["-c", "copy", "-movflags", "+faststart"]

    return [
        resolve_executable(settings.tools.ffmpeg_path),
        "-y",
        "-f",
        "concat",
        "-safe",
        "0",
        "-i",
        str(manifest_path),
        *codec_args,
        str(output_path),
    ]


def _encoding_args(transcode: TranscodeSettings) -> list[str]:
    return [
        "-c:v",
        transcode.video_codec,
        "-profile:v",
        transcode.profile,
        "-level",
        transcode.level,
        "-pix_fmt",
        transcode.pixel_format,
        "-preset",
        transcode.preset,
        "-crf",
        str(transcode.crf),
        "-movflags",
        "+faststart",
        "-c:a",
        transcode.audio_codec,
        "-b:a",
        transcode.audio_bitrate,
        "-ar",
        str(transcode.audio_sample_rate),
    ]


async def transcode_segments(segments: Sequence[Path], settings: Settings) -> list[TranscodeResult]:
    """Convert every raw segment concurrently; one failure never cancels the rest."""

    limit = settings.transcode.max_parallel
    semaphore = asyncio.Semaphore(limit) if limit > 0 else None

    async def _bounded(source: Path) -> TranscodeResult:
        if semaphore is None:
            return await transcode_segment(source, settings)
        async with semaphore:
            return await transcode_segment(source, settings)

    return list(await asyncio.gather(*(_bounded(source) for source in segments)))


async def transcode_segment(source: Path, settings: Settings) -> TranscodeResult:
    target = source.with_suffix(settings.transcode.output_extension)
    command = build_transcode_command(source, target, settings)
    logger.info("Converting %s to %s...", source.name, target.name)

    try:
        result = await run_process(command, timeout_seconds=settings.timeouts.transcode_seconds)
    except ProcessTimeout as exc:
        return TranscodeResult(
            source=source,
            target=target,
            returncode=None,
            stderr=exc.stderr,
            error=f"{exc} Command: {' '.join(exc.argv)}. Last output: {_tail(exc.stderr)}",
        )
    except OSError as exc:
        return TranscodeResult(
            source=source,
            target=target,
            returncode=None,
            error=f"ffmpeg could not be started ({exc})",
        )

    if result.returncode != 0:
        return TranscodeResult(
            source=source,
            target=target,
            returncode=result.returncode,
            stderr=result.stderr,
            error=f"ffmpeg exited with code {result.returncode}: {_tail(result.stderr)}",
        )

    logger.info("Completed: %s -> %s", source.name, target.name)
    return TranscodeResult(source=source, target=target, returncode=0, stderr=result.stderr)


async def concatenate(manifest_path: Path, output_path: Path, settings: Settings) -> None:
    command = build_concat_command(manifest_path, output_path, settings)
    logger.info("Concatenating segments listed in %s", manifest_path)

    try:
        result = await run_process(command, timeout_seconds=settings.timeouts.concat_seconds)
    except ProcessTimeout as exc:
        raise ConcatenationFailure(manifest_path, str(exc)) from exc
    except OSError as exc:
        raise ConcatenationFailure(manifest_path, f"ffmpeg could not be started ({exc})") from exc

    if result.returncode != 0:
        raise ConcatenationFailure(
            manifest_path,
            f"ffmpeg exited with code {result.returncode}",
            stderr=result.stderr,
        )


def cleanup(paths: Iterable[Path]) -> list[CleanupFailure]:
    """Delete each path independently; failures are logged and returned."""

    failures: list[CleanupFailure] = []
    for path in paths:
        try:
            path.unlink()
        except OSError as exc:
            failure = CleanupFailure(path, exc)
            logger.warning("%s", failure)
            failures.append(failure)
    return failures


def _tail(text: str, lines: int = 5) -> str:
    stripped = text.strip()
    if not stripped:
        return "no error output"
    return " | ".join(stripped.splitlines()[-lines:])
