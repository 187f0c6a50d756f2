"""Subtitle file I/O for translation jobs.

Reads any format pysubs2 understands into ordered SubtitleItem units and
writes translated units back out. Output is written to a temp file in the
target directory and moved into place with os.replace(), so a reader never
sees a partially written subtitle.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass, field

import pysubs2

from config import is_language_tag
from error_handler import OutputPathConflictError

logger = logging.getLogger(__name__)

# HTML-like tags some SRT files keep after parsing (<font>, <b>)
_HTML_TAG_RE = re.compile(r"<[^>]+>")

_DEFAULT_FORMAT = "srt"


@dataclass
class SubtitleItem:
    """One timed subtitle unit."""

    position: int
    start: int  # milliseconds
    end: int  # milliseconds
    lines: list[str] = field(default_factory=list)
    translated_lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(line.strip() for line in self.lines if line.strip())

    def output_lines(self) -> list[str]:
        return self.translated_lines or self.lines


def _format_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower().lstrip(".")
    return ext if ext in ("srt", "ass", "ssa", "vtt") else _DEFAULT_FORMAT


def read_subtitles(path: str) -> list[SubtitleItem]:
    """Load a subtitle file into ordered units.

    Comment events are skipped; override and HTML tags are stripped and
    hard line breaks become separate lines.

    Raises:
        FileNotFoundError: If path does not exist.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Subtitle file not found: {path}")

    subs = pysubs2.load(path)
    items = []
    for event in subs.events:
        if event.is_comment:
            continue
        lines = [_HTML_TAG_RE.sub("", line).strip() for line in event.plaintext.splitlines()]
        items.append(SubtitleItem(
            position=len(items) + 1,
            start=event.start,
            end=event.end,
            lines=[line for line in lines if line],
        ))

    logger.debug("Loaded %d subtitle units from %s", len(items), path)
    return items


def write_subtitles(path: str, items: list[SubtitleItem]) -> str:
    """Write units to path atomically. Returns path."""
    subs = pysubs2.SSAFile()
    for item in items:
        subs.events.append(pysubs2.SSAEvent(
            start=item.start,
            end=item.end,
            text="\\N".join(item.output_lines()),
        ))

    content = subs.to_string(_format_for(path))
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=".lingarr-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.info("Wrote %d subtitle units to %s", len(items), path)
    return path


def create_file_path(source_path: str, target_language: str) -> str:
    """Derive the output path: movie.srt / movie.en.srt -> movie.fr.srt.

    Raises:
        OutputPathConflictError: If the derived path is the source itself
            (movie.en.srt translated to en).
    """
    base, ext = os.path.splitext(source_path)
    stem, lang = os.path.splitext(base)
    if lang and is_language_tag(lang.lstrip(".")):
        base = stem
    output_path = f"{base}.{target_language}{ext or '.' + _DEFAULT_FORMAT}"
    if os.path.abspath(output_path) == os.path.abspath(source_path):
        raise OutputPathConflictError(
            f"Output for '{target_language}' would overwrite {source_path}",
            context={"subtitle_to_translate": source_path, "target_language": target_language},
        )
    return output_path
