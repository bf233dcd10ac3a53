# src/naming/sequencer.py
"""Name sequencer: deterministic ordering and sequential output names.

Given a batch of input file names, picks one "primary number" per name
(the embedded number most likely to be a volume/chapter index), sorts the
batch by that number, and assigns zero-padded names ``001.zip``, ``002.zip``,
... in that order.

Ordering is a pure function of (name, original index): re-running on an
unchanged batch yields an identical mapping. No helper in this module raises
for any string input; names without digits fall back to a string hash.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Any

from epubzip.core.errors import SequencingError
from epubzip.core.models import (
    InputFile,
    NumberToken,
    OutputMapping,
    RankedFile,
    ValidationIssue,
    ValidationReport,
)
from epubzip.naming.natural import natural_sort_key

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = ".zip"
MIN_DIGITS = 3

_NUMBER_RE = re.compile(r"[0-9]+")
_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_SEPARATORS = frozenset("-_ .()[]")

# Scoring weights. Changing any of them changes output order for
# ambiguous names.
EDGE_POSITION_SCORE = 50
NEAR_EDGE_POSITION_SCORE = 30
NEAR_EDGE_FRACTION = 0.2
SHORT_TOKEN_SCORE = 30
SHORT_TOKEN_STEP = 5
SMALL_VALUE_SCORE = 20
SMALL_VALUE_BUCKET = 50
SMALL_VALUE_LIMIT = 999
SEPARATOR_SCORE = 15

# int() refuses digit strings longer than sys.get_int_max_str_digits();
# runs beyond this length all map to one value above every shorter run.
MAX_NUMBER_DIGITS = 4000
OVERSIZED_NUMBER = 10 ** MAX_NUMBER_DIGITS


# ---------------------------------------------------------------------------
# Number extraction and scoring
# ---------------------------------------------------------------------------


def remove_extension(name: str) -> str:
    """Strip a trailing ``.ext`` (no slash or dot inside ext)."""
    return _EXTENSION_RE.sub("", name)


def parse_digits(digits: str) -> int:
    """Integer value of an ASCII digit run, clamped for absurdly long runs."""
    significant = digits.lstrip("0")
    if len(significant) > MAX_NUMBER_DIGITS:
        return OVERSIZED_NUMBER
    return int(significant or "0")


def extract_numbers(stripped_name: str) -> list[NumberToken]:
    """Every maximal run of ASCII digits, left to right."""
    return [
        NumberToken(
            value=parse_digits(match.group()),
            original_string=match.group(),
            start_index=match.start(),
            length=len(match.group()),
        )
        for match in _NUMBER_RE.finditer(stripped_name)
    ]


def score_number(token: NumberToken, stripped_name: str) -> int:
    """Score how likely *token* is the sequence number of *stripped_name*."""
    score = 0
    start, length, value = token.start_index, token.length, token.value
    name_length = len(stripped_name)
    end = start + length

    if start == 0 or end == name_length:
        score += EDGE_POSITION_SCORE
    elif (
        start < name_length * NEAR_EDGE_FRACTION
        or start > name_length * (1 - NEAR_EDGE_FRACTION)
    ):
        score += NEAR_EDGE_POSITION_SCORE

    if 1 <= length <= 3:
        score += SHORT_TOKEN_SCORE - (length - 1) * SHORT_TOKEN_STEP

    if value <= SMALL_VALUE_LIMIT:
        score += max(0, SMALL_VALUE_SCORE - value // SMALL_VALUE_BUCKET)

    before = stripped_name[start - 1] if start > 0 else ""
    after = stripped_name[end] if end < name_length else ""
    if before in _SEPARATORS or after in _SEPARATORS:
        score += SEPARATOR_SCORE

    return score


def string_hash(text: str) -> int:
    """Deterministic non-negative hash over UTF-16 code units.

    31-multiplier rolling hash wrapped to a signed 32-bit integer, then made
    non-negative. Only used to order names that contain no digits.
    """
    encoded = text.encode("utf-16-le", errors="surrogatepass")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def select_primary_number(tokens: Sequence[NumberToken], stripped_name: str) -> int:
    """Pick the ordering key: hash, the only number, or the best-scored one."""
    if not tokens:
        return string_hash(stripped_name)
    if len(tokens) == 1:
        return tokens[0].value

    best = tokens[0]
    best_score = score_number(best, stripped_name)
    for token in tokens[1:]:
        score = score_number(token, stripped_name)
        # Strictly greater: the leftmost token wins ties
        if score > best_score:
            best, best_score = token, score
    return best.value


# ---------------------------------------------------------------------------
# Ranking and naming
# ---------------------------------------------------------------------------


def rank_files(files: Sequence[InputFile]) -> list[RankedFile]:
    """Annotate *files* with ordering keys and sort them.

    Sort key: primary number, then natural order of the stripped name, then
    position in the input batch. The last component makes the order strict.
    """
    ranked: list[RankedFile] = []
    for index, file in enumerate(files):
        stripped = remove_extension(file.name)
        tokens = extract_numbers(stripped)
        ranked.append(
            RankedFile(
                file=file,
                stripped_name=stripped,
                numbers=tokens,
                primary_number=select_primary_number(tokens, stripped),
                original_index=index,
            )
        )
    ranked.sort(
        key=lambda r: (r.primary_number, natural_sort_key(r.stripped_name), r.original_index)
    )
    return ranked


def output_digits(total: int) -> int:
    """Zero-pad width: at least three digits, more when the batch needs it."""
    return max(MIN_DIGITS, len(str(total)))


def assign_output_names(ranked: Sequence[RankedFile]) -> list[OutputMapping]:
    """Give each ranked file its 1-based zero-padded ``NNN.zip`` name."""
    digits = output_digits(len(ranked))
    return [
        OutputMapping(
            file_id=item.file.id,
            original_name=item.file.name,
            output_name=f"{str(sequence).zfill(digits)}{OUTPUT_EXTENSION}",
            sequence_number=sequence,
            primary_number=item.primary_number,
        )
        for sequence, item in enumerate(ranked, start=1)
    ]


def validate_name_mapping(mappings: Sequence[OutputMapping]) -> ValidationReport:
    """Check that output names are unique and sequence numbers run 1..N."""
    issues: list[ValidationIssue] = []
    output_names: set[str] = set()
    sequence_numbers: set[int] = set()

    for position, mapping in enumerate(mappings, start=1):
        if mapping.output_name in output_names:
            issues.append(ValidationIssue(
                type="duplicate_output",
                message=f"Duplicate output name: {mapping.output_name}",
                file_id=mapping.file_id,
            ))
        output_names.add(mapping.output_name)

        if mapping.sequence_number in sequence_numbers:
            issues.append(ValidationIssue(
                type="duplicate_sequence",
                message=f"Duplicate sequence number: {mapping.sequence_number}",
                file_id=mapping.file_id,
            ))
        sequence_numbers.add(mapping.sequence_number)

        if mapping.sequence_number != position:
            issues.append(ValidationIssue(
                type="sequence_gap",
                message=(
                    f"Sequence gap: expected {position}, "
                    f"got {mapping.sequence_number}"
                ),
                file_id=mapping.file_id,
            ))

    return ValidationReport(
        issues=issues,
        counters={
            "total_files": len(mappings),
            "unique_output_names": len(output_names),
        },
    )


class NameSequencer:
    """Stateful wrapper remembering the last computed order.

    The state is informational (for previews and debugging); mappings are
    always recomputed from the input.
    """

    def __init__(self) -> None:
        self._sorted_files: list[RankedFile] = []

    @property
    def sorted_files(self) -> list[RankedFile]:
        return list(self._sorted_files)

    def process_file_names(self, files: Sequence[InputFile]) -> list[OutputMapping]:
        """Compute the output mapping for *files* and remember the order.

        Raises:
            SequencingError: On any internal failure. This is a bug, never
                an input problem.
        """
        try:
            ranked = rank_files(files)
            mappings = assign_output_names(ranked)
        except Exception as exc:
            logger.exception("Name sequencing failed for %d files", len(files))
            raise SequencingError(f"Name sequencing failed: {exc}") from exc

        self._sorted_files = ranked
        logger.debug(
            "Sequenced %d files: %s",
            len(mappings),
            ", ".join(f"{m.original_name}->{m.output_name}" for m in mappings),
        )
        return mappings

    def preview_sorting(self, files: Sequence[InputFile]) -> list[OutputMapping]:
        """Mapping for *files* without touching the remembered order."""
        return assign_output_names(rank_files(files))

    def debug_info(self, files: Sequence[InputFile]) -> dict[str, Any]:
        """Intermediate values of every step, for troubleshooting orderings."""
        ranked = rank_files(files)
        by_index = sorted(ranked, key=lambda r: r.original_index)
        return {
            "original_order": [f.name for f in files],
            "extracted_numbers": [
                {
                    "name": r.file.name,
                    "numbers": [t.model_dump() for t in r.numbers],
                    "primary_number": r.primary_number,
                }
                for r in by_index
            ],
            "sorted_order": [r.file.name for r in ranked],
            "name_mapping": [m.model_dump() for m in assign_output_names(ranked)],
        }

    def reset(self) -> None:
        self._sorted_files = []
