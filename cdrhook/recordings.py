# =====================================================================
# Recording Collection and Audio Processing Functions
# =====================================================================

import subprocess
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from cdrhook.config import logger
from cdrhook.errors import TranscodeError

SOURCE_SUFFIX = ".wav"
DELIVERY_SUFFIX = ".mp3"


@dataclass(frozen=True)
class RecordingArtifact:
    """A source recording and the MP3 made from it; both are scratch files."""

    source: Path
    output: Path

    @property
    def name(self) -> str:
        return self.output.name

    @property
    def paths(self) -> List[Path]:
        return [self.source, self.output]


def find_recordings(call_uuid: str, recordings_dir: Path) -> List[Path]:
    """
    List the source recordings FreeSWITCH wrote for a call.

    Recording files are named after the call UUID; there can be several
    per call, e.g. one per leg.
    """
    matches = [
        path
        for path in sorted(Path(recordings_dir).iterdir())
        if call_uuid in path.name
        and path.suffix.lower() == SOURCE_SUFFIX
        and path.is_file()
    ]
    logger.debug(f"Found {len(matches)} recording(s) for call {call_uuid}")
    return matches


def convert_audio_to_mp3(source: Path, ffmpeg_path: str = "ffmpeg") -> Path:
    """
    Convert a WAV recording to MP3 next to the original file.
    """
    output = source.with_suffix(DELIVERY_SUFFIX)

    logger.info(f"Converting {source} to {output}")
    try:
        subprocess.run(
            [
                ffmpeg_path,
                "-i",
                str(source),
                "-codec:a",
                "libmp3lame",
                "-loglevel",
                "error",
                str(output),
                "-y",  # Overwrite if exists
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise TranscodeError(
            f"ffmpeg failed converting {source}: {e.stderr.strip() if e.stderr else e}"
        ) from e
    except OSError as e:
        raise TranscodeError(f"Could not run {ffmpeg_path}: {e}") from e

    return output


def collect_recordings(
    call_uuid: str,
    recordings_dir: Path,
    grace_period: float = 2.0,
    ffmpeg_path: str = "ffmpeg",
) -> List[RecordingArtifact]:
    """
    Find and transcode every recording of a call.

    Waits grace_period seconds first, since FreeSWITCH may still be
    flushing recordings when the hangup event arrives. All files are
    converted in parallel; if any conversion fails the whole call fails.
    """
    time.sleep(grace_period)

    sources = find_recordings(call_uuid, recordings_dir)
    if not sources:
        return []

    with ThreadPoolExecutor(max_workers=len(sources)) as pool:
        outputs = list(pool.map(lambda src: convert_audio_to_mp3(src, ffmpeg_path), sources))

    return [RecordingArtifact(source=src, output=out) for src, out in zip(sources, outputs)]


def delete_files(paths: Iterable[Path]) -> int:
    """
    Remove scratch files, one at a time.

    Missing files are ignored and a failure on one file does not stop
    the rest. Returns the number of files removed.
    """
    removed = 0
    for path in paths:
        try:
            Path(path).unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Could not delete {path}: {e}")
    logger.debug(f"Deleted {removed} scratch file(s)")
    return removed
