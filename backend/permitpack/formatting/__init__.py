from permitpack.formatting.classifier import classified_from_blocks, classify, classify_text
from permitpack.formatting.docx_writer import render_cover_letter, write_docx
from permitpack.formatting.policy import DEFAULT_PROFILE, LetterProfile
from permitpack.formatting.renderer import STYLE_TABLE, plain_text, plain_text_lines, render

__all__ = [
    "DEFAULT_PROFILE",
    "LetterProfile",
    "STYLE_TABLE",
    "classified_from_blocks",
    "classify",
    "classify_text",
    "plain_text",
    "plain_text_lines",
    "render",
    "render_cover_letter",
    "write_docx",
]
