from __future__ import annotations

import json
from typing import Sequence

from common.schemas import CleanedSegment, RawSegment

CLEANUP_INSTRUCTIONS = """\
You are a meticulous transcript cleaner. You will be given a JSON object holding
an array of transcript segments, each with timestamps. Clean every segment so the
transcript is readable and error-free.

Rules:
1. Remove all filler words and discourse markers such as "um", "uh", "ah", "er",
   "like", "you know", "so", "well", "actually", "basically", "literally",
   "right", "okay", "alright" and similar words that add no meaning.
2. Correct every misspelled word.
3. Remove verbal repetitions ("I I think" becomes "I think").
4. Keep the meaning: never drop information the sentence needs.
5. Keep technical terms and proper nouns exactly as spoken.
6. Preserve the speaker's intent and style, and keep the text flowing naturally
   from one segment to the next.
7. Return exactly one output object per input segment, in the same order, with
   the same id, start and end values.
"""

OUTPUT_FORMAT = """\
Return ONLY a JSON array with this exact structure, no additional text:
[
  {
    "id": 1,
    "start": <start seconds>,
    "end": <end seconds>,
    "cleanedText": "cleaned text without fillers"
  }
]"""


def serialize_segments(segments: Sequence[RawSegment]) -> str:
    payload = {
        "segments": [
            {"id": i + 1, "start": seg.start, "end": seg.end, "text": seg.text}
            for i, seg in enumerate(segments)
        ]
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def build_cleanup_prompt(segments: Sequence[RawSegment]) -> str:
    return f"""\
{CLEANUP_INSTRUCTIONS}
INPUT JSON:
{serialize_segments(segments)}

{OUTPUT_FORMAT}"""


def format_transcript(segments: Sequence[RawSegment | CleanedSegment]) -> str:
    lines = []
    for i, seg in enumerate(segments, start=1):
        text = seg.text if isinstance(seg, RawSegment) else seg.cleaned_text
        lines.append(f"[{i}] {seg.start:.2f}s - {seg.end:.2f}s: {text}")
    return "\n".join(lines)
