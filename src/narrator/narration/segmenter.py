"""
Sentence Segmenter for Incremental Narration.

Splits the accumulated generation text into playback segments at every
delimiter occurrence. The segmenter is stateless: it is re-run over the
whole buffer on every delta rather than patched incrementally, which keeps
it deterministic and trivially idempotent for spoken-length transcripts.

Architecture:
    full_text → TextSegmenter.segment() → (segment, ..., trailing partial)

The last element of the result is always the unterminated remainder (an
empty string when the text ends on a delimiter). Callers must treat it as
provisional while generation may still extend it.

Usage:
    segmenter = TextSegmenter(terminators=["。"], separators=["、"])
    segmenter.segment("こんにちは。元気")  # ("こんにちは", "元気")
"""

import re
from typing import Iterable, Optional, Sequence, Tuple


class TextSegmenter:
    """
    Pure delimiter splitter over two delimiter classes.

    Terminators end a sentence; separators end a clause. Both split, so
    segments may be shorter than full sentences. Pass an empty separator
    list to split on sentence terminators only.

    Attributes:
        terminators: Strong sentence-ending delimiters
        separators: Clause-separating delimiters
    """

    DEFAULT_TERMINATORS = ("。",)
    DEFAULT_SEPARATORS = ("、",)

    def __init__(
        self,
        terminators: Optional[Sequence[str]] = None,
        separators: Optional[Sequence[str]] = None,
    ):
        self.terminators = tuple(
            self.DEFAULT_TERMINATORS if terminators is None else terminators
        )
        self.separators = tuple(
            self.DEFAULT_SEPARATORS if separators is None else separators
        )
        delimiters = [d for d in (*self.terminators, *self.separators) if d]
        if not delimiters:
            raise ValueError("At least one non-empty delimiter is required")
        self._delimiter_pattern = self._compile_pattern(delimiters)

    @staticmethod
    def _compile_pattern(delimiters: Iterable[str]) -> re.Pattern:
        """Compile regex pattern for delimiter matching."""
        # Sort by length (longest first) to match longer delimiters first
        sorted_delims = sorted(set(delimiters), key=len, reverse=True)
        escaped = [re.escape(d) for d in sorted_delims]
        return re.compile("|".join(escaped))

    def segment(self, full_text: str) -> Tuple[str, ...]:
        """
        Split text on every delimiter occurrence.

        Delimiters are dropped from the output. Adjacent delimiters produce
        empty segments, and the trailing element is the unterminated
        remainder, so the result always has at least one element.

        Args:
            full_text: All generated text received so far

        Returns:
            Ordered segments, trailing partial last
        """
        return tuple(self._delimiter_pattern.split(full_text))


_DEFAULT_SEGMENTER = TextSegmenter()


def segment(full_text: str) -> Tuple[str, ...]:
    """Split with the default terminator and separator policy."""
    return _DEFAULT_SEGMENTER.segment(full_text)


__all__ = ["TextSegmenter", "segment"]
