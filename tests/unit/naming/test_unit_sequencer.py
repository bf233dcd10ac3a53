# tests/unit/naming/test_unit_sequencer.py
"""Tests for naming/sequencer.py: number scoring, ordering, output names."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from epubzip.core.errors import SequencingError
from epubzip.core.models import InputFile, OutputMapping
from epubzip.naming.sequencer import (
    OVERSIZED_NUMBER,
    NameSequencer,
    assign_output_names,
    extract_numbers,
    output_digits,
    rank_files,
    remove_extension,
    score_number,
    select_primary_number,
    string_hash,
    validate_name_mapping,
)


def _mapping(files: list[InputFile]) -> dict[str, str]:
    """original name -> output name."""
    return {m.original_name: m.output_name for m in NameSequencer().process_file_names(files)}


class TestRemoveExtension:
    def test_simple(self):
        assert remove_extension("book.epub") == "book"

    def test_only_last_extension(self):
        assert remove_extension("archive.tar.gz") == "archive.tar"

    def test_no_extension(self):
        assert remove_extension("noext") == "noext"

    def test_dot_in_directory_ignored(self):
        assert remove_extension("dir.v2/file") == "dir.v2/file"


class TestExtractNumbers:
    def test_tokens_left_to_right(self):
        tokens = extract_numbers("abc12def003")
        assert [t.value for t in tokens] == [12, 3]
        assert tokens[0].start_index == 3
        assert tokens[0].length == 2
        assert tokens[1].original_string == "003"
        assert tokens[1].start_index == 8

    def test_no_digits(self):
        assert extract_numbers("cover") == []

    def test_non_ascii_digits_ignored(self):
        assert extract_numbers("第１巻") == []

    def test_huge_run_clamped(self):
        tokens = extract_numbers("vol" + "9" * 5000)
        assert tokens[0].value == OVERSIZED_NUMBER
        assert tokens[0].length == 5000

    def test_leading_zeros_do_not_count_toward_clamp(self):
        tokens = extract_numbers("0" * 5000 + "7")
        assert tokens[0].value == 7


class TestScoring:
    def test_edge_number_outscores_middle(self):
        stripped = "Vol 3 - Part 12"
        tokens = extract_numbers(stripped)
        assert score_number(tokens[0], stripped) == 65
        assert score_number(tokens[1], stripped) == 110
        assert select_primary_number(tokens, stripped) == 12

    def test_year_loses_to_short_trailing_number(self):
        stripped = "Series 2019 Book 4"
        tokens = extract_numbers(stripped)
        assert score_number(tokens[0], stripped) == 15
        assert select_primary_number(tokens, stripped) == 4

    def test_leftmost_wins_ties(self):
        stripped = "1_2"
        tokens = extract_numbers(stripped)
        assert score_number(tokens[0], stripped) == score_number(tokens[1], stripped)
        assert select_primary_number(tokens, stripped) == 1

    def test_single_number_taken_as_is(self):
        assert select_primary_number(extract_numbers("x2019y"), "x2019y") == 2019

    def test_no_numbers_falls_back_to_hash(self):
        assert select_primary_number([], "cover") == string_hash("cover")


class TestStringHash:
    def test_empty(self):
        assert string_hash("") == 0

    def test_small_values(self):
        assert string_hash("a") == 97
        assert string_hash("ab") == 97 * 31 + 98
        assert string_hash("cover") == 94852023

    def test_wraps_to_signed_32_bit(self):
        # Rolling hash overflows to -862545276 before abs()
        assert string_hash("Hello World") == 862545276

    def test_non_negative_and_deterministic(self):
        for text in ["", "序章", "a" * 200, "🙂 emoji"]:
            value = string_hash(text)
            assert value >= 0
            assert value == string_hash(text)


class TestOutputDigits:
    @pytest.mark.parametrize("total, digits", [(1, 3), (999, 3), (1000, 4), (10000, 5)])
    def test_width(self, total, digits):
        assert output_digits(total) == digits


class TestRankFiles:
    def test_ties_broken_by_name_then_index(self):
        files = [
            InputFile(name="b 1.epub"),
            InputFile(name="A 1.epub"),
            InputFile(name="A 1.epub"),
        ]
        ranked = rank_files(files)
        assert [r.original_index for r in ranked] == [1, 2, 0]

    def test_numbers_recorded(self):
        ranked = rank_files([InputFile(name="ch07.epub")])
        assert ranked[0].stripped_name == "ch07"
        assert ranked[0].primary_number == 7
        assert ranked[0].numbers[0].original_string == "07"


class TestNameSequencer:
    def test_natural_numeric_order(self, make_input_files):
        files = make_input_files(["ch10.epub", "ch2.epub", "ch1.epub"])
        assert _mapping(files) == {
            "ch1.epub": "001.zip",
            "ch2.epub": "002.zip",
            "ch10.epub": "003.zip",
        }

    def test_single_file_without_digits(self, make_input_files):
        assert _mapping(make_input_files(["cover.epub"])) == {"cover.epub": "001.zip"}

    def test_numbered_file_before_hashed_one(self, make_input_files):
        files = make_input_files(["cover.epub", "ch1.epub"])
        assert _mapping(files) == {"ch1.epub": "001.zip", "cover.epub": "002.zip"}

    def test_width_grows_with_batch(self):
        files = [InputFile(name=f"book{i}.epub") for i in range(1000, 0, -1)]
        mapping = _mapping(files)
        assert mapping["book1.epub"] == "0001.zip"
        assert mapping["book10.epub"] == "0010.zip"
        assert mapping["book1000.epub"] == "1000.zip"
        assert len(set(mapping.values())) == 1000

    def test_sequence_numbers_are_one_to_n(self, make_input_files):
        files = make_input_files(["c.epub", "b 3.epub", "a 2.epub", "x.epub"])
        mappings = NameSequencer().process_file_names(files)
        assert sorted(m.sequence_number for m in mappings) == [1, 2, 3, 4]
        assert validate_name_mapping(mappings).is_valid

    def test_idempotent(self, make_input_files):
        files = make_input_files(["Vol 3.epub", "Vol 1.epub", "extra.epub", "Vol 2.epub"])
        sequencer = NameSequencer()
        first = sequencer.process_file_names(files)
        second = sequencer.process_file_names(files)
        assert first == second

    def test_permutation_invariant_for_distinct_numbers(self, make_input_files):
        files = make_input_files(["v5.epub", "v1.epub", "v3.epub", "v2.epub", "v4.epub"])
        forward = _mapping(files)
        backward = _mapping(list(reversed(files)))
        assert forward == backward

    def test_duplicate_names_keep_input_order(self):
        first = InputFile(name="same.epub", size=1)
        second = InputFile(name="same.epub", size=2)
        mappings = NameSequencer().process_file_names([first, second])
        by_id = {m.file_id: m.output_name for m in mappings}
        assert by_id[first.id] == "001.zip"
        assert by_id[second.id] == "002.zip"

    def test_empty_batch(self):
        assert NameSequencer().process_file_names([]) == []

    def test_odd_names_never_raise(self, make_input_files):
        files = make_input_files(
            ["", ".epub", "第１巻.epub", "🙂.epub", "...", "a" * 500, "9" * 5000 + ".epub", "v2.epub"]
        )
        mappings = NameSequencer().process_file_names(files)
        assert len(mappings) == 8
        assert mappings[-1].original_name == "9" * 5000 + ".epub"
        assert validate_name_mapping(mappings).is_valid

    def test_sorted_files_remembered(self, make_input_files):
        sequencer = NameSequencer()
        sequencer.process_file_names(make_input_files(["b2.epub", "a1.epub"]))
        assert [r.file.name for r in sequencer.sorted_files] == ["a1.epub", "b2.epub"]
        sequencer.reset()
        assert sequencer.sorted_files == []

    def test_preview_does_not_touch_state(self, make_input_files):
        sequencer = NameSequencer()
        preview = sequencer.preview_sorting(make_input_files(["x1.epub"]))
        assert preview[0].output_name == "001.zip"
        assert sequencer.sorted_files == []

    def test_debug_info(self, make_input_files):
        info = NameSequencer().debug_info(make_input_files(["b 2.epub", "a 1.epub"]))
        assert set(info) == {"original_order", "extracted_numbers", "sorted_order", "name_mapping"}
        assert info["original_order"] == ["b 2.epub", "a 1.epub"]
        assert info["sorted_order"] == ["a 1.epub", "b 2.epub"]
        assert info["extracted_numbers"][0]["primary_number"] == 2

    def test_internal_failure_raises_sequencing_error(self, make_input_files):
        with patch("epubzip.naming.sequencer.rank_files", side_effect=RuntimeError("boom")):
            with pytest.raises(SequencingError, match="boom"):
                NameSequencer().process_file_names(make_input_files(["a.epub"]))


class TestValidateNameMapping:
    def _m(self, output: str, seq: int) -> OutputMapping:
        return OutputMapping(
            file_id=f"id{seq}", original_name="x", output_name=output,
            sequence_number=seq, primary_number=seq,
        )

    def test_valid(self):
        report = validate_name_mapping([self._m("001.zip", 1), self._m("002.zip", 2)])
        assert report.is_valid
        assert report.counters == {"total_files": 2, "unique_output_names": 2}

    def test_duplicates_and_gap(self):
        report = validate_name_mapping([self._m("001.zip", 1), self._m("001.zip", 1)])
        assert "duplicate_output" in report.issue_types()
        assert "duplicate_sequence" in report.issue_types()
        assert "sequence_gap" in report.issue_types()

    def test_assign_output_names_is_gapless(self):
        ranked = rank_files([InputFile(name=f"{i}.epub") for i in range(5)])
        assert validate_name_mapping(assign_output_names(ranked)).is_valid
