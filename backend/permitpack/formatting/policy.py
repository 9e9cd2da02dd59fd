from __future__ import annotations

from dataclasses import dataclass
import re

LETTERHEAD = "Intralog Permit Services"
SIGNATURE_PHRASE = "Permit Services Team"
FOOTER_PREFIX = "Generated by PainlessPermit"

FILE_EXTENSIONS = (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".png", ".jpg", ".jpeg")
INDENT = "    "

_BOLD_TAG_PATTERN = re.compile(r"</?b>", flags=re.IGNORECASE)
_NBSP_PATTERN = re.compile(r"&nbsp;", flags=re.IGNORECASE)
_EMPHASIS_PATTERN = re.compile(r"\*\*")
_RULE_PATTERN = re.compile(r"---")
_COPIES_PATTERN = re.compile(r"\s*\(\d+\s*copies?\)\s*", flags=re.IGNORECASE)
_FILE_EXTENSION_PATTERN = re.compile(
    r"\.(?:" + "|".join(ext.lstrip(".") for ext in FILE_EXTENSIONS) + r")\b",
    flags=re.IGNORECASE,
)
YEAR_PATTERN = re.compile(r"20\d\d")
ORDINAL_PATTERN = re.compile(r"^\d+\.\s")


@dataclass(frozen=True)
class LetterProfile:
    letterhead: str = LETTERHEAD
    signature_phrase: str = SIGNATURE_PHRASE
    footer_prefix: str = FOOTER_PREFIX


DEFAULT_PROFILE = LetterProfile()


@dataclass(frozen=True)
class CleanLine:
    text: str
    indented: bool


def _strip_markup(line: str) -> str:
    previous = None
    while line != previous:
        previous = line
        line = _BOLD_TAG_PATTERN.sub("", line)
        line = _NBSP_PATTERN.sub(" ", line)
        line = _EMPHASIS_PATTERN.sub("", line)
        line = _RULE_PATTERN.sub("", line)
    return line


def clean_line(raw: str) -> CleanLine:
    """Strip markup the generator leaves behind and note whether the line was indented.

    Removing one marker can join the pieces of another (``*---*`` becomes
    ``**``), so substitutions repeat until the text stops changing. The result
    is a fixed point: cleaning it again returns the same text.
    """
    line = _strip_markup(raw)
    text = line.strip()
    indented = bool(text) and line[:1].isspace()
    previous = None
    while text != previous:
        previous = text
        text = _strip_markup(_COPIES_PATTERN.sub("", text)).strip()
    return CleanLine(text=text, indented=indented)


def has_file_extension(text: str) -> bool:
    return bool(_FILE_EXTENSION_PATTERN.search(text))


def split_label_value(text: str) -> tuple[str, str]:
    head, sep, tail = text.partition(":")
    if not sep:
        return text, ""
    return head + sep, tail
