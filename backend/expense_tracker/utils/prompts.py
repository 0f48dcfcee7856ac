"""Default prompt used for receipt text recognition.

Keeping the prompt in a central location makes it easier to iterate on
its content without touching the recognition gateway.
"""

from __future__ import annotations

from textwrap import dedent


def get_default_recognition_prompt() -> str:
    """Return the prompt that asks the vision model for a plain transcription.

    The line item classifier expects item names and prices on their own
    lines, in the order they are printed, so the prompt asks the model to
    keep the receipt's line structure and not to interpret or summarise.
    """
    return dedent(
        """
        You are an OCR engine. Transcribe all text printed on the receipt
        image exactly as it appears, top to bottom, one printed line per
        output line. Keep numbers, currency symbols and punctuation as
        printed. Do not add commentary, markdown, headings or a summary.
        If the image contains no readable text, return an empty response.
        """
    ).strip()
