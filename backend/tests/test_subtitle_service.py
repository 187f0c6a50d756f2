"""Tests for subtitle reading, atomic writing and output path derivation."""

import os
from unittest.mock import patch

import pytest

from error_handler import OutputPathConflictError
from subtitle_service import SubtitleItem, create_file_path, read_subtitles, write_subtitles


def test_read_srt_units(create_test_subtitle):
    path = create_test_subtitle(lines=["Hello World", "<i>How are you</i>"])

    items = read_subtitles(path)

    assert [item.position for item in items] == [1, 2]
    assert items[0].start == 1000
    assert items[0].end == 3000
    assert items[0].lines == ["Hello World"]
    assert items[1].lines == ["How are you"]


def test_multiline_unit_joined_for_translation(tmp_path):
    path = tmp_path / "multi.srt"
    path.write_text("1\n00:00:01,000 --> 00:00:03,000\nFirst line\nSecond line\n\n", encoding="utf-8")

    items = read_subtitles(str(path))

    assert items[0].lines == ["First line", "Second line"]
    assert items[0].text == "First line Second line"


def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_subtitles(str(tmp_path / "missing.srt"))


def test_output_lines_prefer_translation():
    item = SubtitleItem(position=1, start=0, end=1000, lines=["Hello"])
    assert item.output_lines() == ["Hello"]

    item.translated_lines = ["Bonjour"]
    assert item.output_lines() == ["Bonjour"]


def test_write_then_read_back(tmp_path):
    items = [
        SubtitleItem(1, 1000, 3000, ["Hello"], ["Bonjour"]),
        SubtitleItem(2, 4000, 6000, ["Line one", "Line two"], ["Ligne un", "Ligne deux"]),
        SubtitleItem(3, 7000, 8000, ["untranslated"]),
    ]
    target = tmp_path / "out" / "movie.fr.srt"

    assert write_subtitles(str(target), items) == str(target)

    written = read_subtitles(str(target))
    assert [item.lines for item in written] == [["Bonjour"], ["Ligne un", "Ligne deux"], ["untranslated"]]
    assert [(item.start, item.end) for item in written] == [(1000, 3000), (4000, 6000), (7000, 8000)]
    assert [name for name in os.listdir(target.parent)] == ["movie.fr.srt"]


def test_failed_write_leaves_no_file(tmp_path):
    target = tmp_path / "movie.fr.srt"
    items = [SubtitleItem(1, 0, 1000, ["Hello"], ["Bonjour"])]

    with patch("subtitle_service.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            write_subtitles(str(target), items)

    assert not target.exists()
    assert os.listdir(tmp_path) == []


def test_overwrite_existing_output(tmp_path):
    target = tmp_path / "movie.fr.srt"
    target.write_text("stale", encoding="utf-8")

    write_subtitles(str(target), [SubtitleItem(1, 0, 1000, ["Hello"], ["Bonjour"])])

    assert "Bonjour" in target.read_text(encoding="utf-8")


@pytest.mark.parametrize("source, target_language, expected", [
    ("/media/movie.srt", "fr", "/media/movie.fr.srt"),
    ("/media/movie.en.srt", "fr", "/media/movie.fr.srt"),
    ("/media/movie.eng.ass", "de", "/media/movie.de.ass"),
    ("/tv/show.S01E01.srt", "es", "/tv/show.S01E01.es.srt"),
    ("/media/movie.forced.srt", "fr", "/media/movie.forced.fr.srt"),
    ("/media/movie", "fr", "/media/movie.fr.srt"),
])
def test_create_file_path(source, target_language, expected):
    assert create_file_path(source, target_language) == expected


@pytest.mark.parametrize("source, target_language", [
    ("/media/movie.en.srt", "en"),
    ("/media/movie.fr.ass", "fr"),
])
def test_create_file_path_refuses_to_overwrite_source(source, target_language):
    with pytest.raises(OutputPathConflictError) as exc_info:
        create_file_path(source, target_language)

    assert exc_info.value.code == "REQ_004"
