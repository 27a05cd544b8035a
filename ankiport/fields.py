# Copyright: Ankitects Pty Ltd and contributors
# License: GNU AGPL, version 3 or later; http://www.gnu.org/licenses/agpl.html

"""
Turn a note's raw field values into one front/back card.

Side selection is an ordered rule chain, evaluated top to bottom for each
field (first match wins):

    1. label looks like a back/answer field     -> back
    2. label looks like a front/question field  -> front
    3. field 0                                  -> front
    4. field 1                                  -> back
    5. any later field                          -> front if empty, else back

A field that lands on the front is then escalated to the back when the
front already has text and the field is back-labeled, longer than
ESCALATION_LENGTH characters, or not field 0.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

BACK_LABEL = re.compile(r"back|answer|背面|反面|答案", re.IGNORECASE)
FRONT_LABEL = re.compile(r"front|question|正面|问题|題目|题目", re.IGNORECASE)

# Tuned empirically; pinned by tests
ESCALATION_LENGTH = 120

FRONT_JOINER = "\n"
BACK_JOINER = "\n\n"

IMG_SRC = re.compile(
    r"""<img\b[^>]*?\bsrc\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))""",
    re.IGNORECASE | re.DOTALL,
)
STYLE_BLOCK = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
LINE_BREAK = re.compile(r"<br\s*/?\s*>", re.IGNORECASE)
BLOCK_END = re.compile(
    r"</(?:div|p|li|ul|ol|h[1-6]|tr|blockquote|pre)\s*>", re.IGNORECASE
)
TAG = re.compile(r"<[^>]*>")
SIZE_ARTIFACT = re.compile(
    r"""^(?:(?:width|height)\s*=\s*["'][^"']*["']\s*)+$""", re.IGNORECASE
)

ImageExtractor = Callable[[str], Optional[str]]


class Side(Enum):
    FRONT = "front"
    BACK = "back"


# -------------------------------------------------------------------------
# Per-field text and image extraction
# -------------------------------------------------------------------------


@dataclass
class ProcessedField:
    text: Optional[str] = None
    image: Optional[str] = None


def find_image_source(value: str) -> Optional[str]:
    match = IMG_SRC.search(value)
    if not match:
        return None
    src = next((g for g in match.groups() if g is not None), "")
    return src.strip() or None


def strip_html(value: str) -> str:
    """Reduce field HTML to plain text lines."""
    text = STYLE_BLOCK.sub("", value)
    text = LINE_BREAK.sub("\n", text)
    text = BLOCK_END.sub("\n", text)
    text = TAG.sub("", text)
    text = text.replace("&nbsp;", " ")
    text = html.unescape(text).replace("\u00a0", " ")
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = (" ".join(line.split()) for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def process_field(
    value: str, extract_image: Optional[ImageExtractor] = None
) -> ProcessedField:
    """Extract the plain text and (stored) image of one field."""
    result = ProcessedField()
    src = find_image_source(value)
    if src and extract_image is not None:
        result.image = extract_image(src)

    text = strip_html(value)
    if text and not SIZE_ARTIFACT.match(text):
        result.text = text
    return result


# -------------------------------------------------------------------------
# Side assignment
# -------------------------------------------------------------------------


@dataclass
class FieldContext:
    index: int
    label: str
    text: Optional[str]

    @property
    def back_labeled(self) -> bool:
        return bool(self.label) and BACK_LABEL.search(self.label) is not None

    @property
    def front_labeled(self) -> bool:
        return bool(self.label) and FRONT_LABEL.search(self.label) is not None

    @property
    def role_labeled(self) -> bool:
        return self.back_labeled or self.front_labeled


@dataclass
class SideAssignment:
    front_parts: list[str] = field(default_factory=list)
    back_parts: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)

    @property
    def front_text(self) -> Optional[str]:
        return FRONT_JOINER.join(self.front_parts) or None

    @property
    def back_text(self) -> Optional[str]:
        return BACK_JOINER.join(self.back_parts) or None

    @property
    def front_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @property
    def back_image(self) -> Optional[str]:
        return self.images[1] if len(self.images) > 1 else None

    @property
    def images_full(self) -> bool:
        return len(self.images) >= 2


Predicate = Callable[[FieldContext, SideAssignment], bool]

SIDE_RULES: list[tuple[str, Predicate, Side]] = [
    ("back label", lambda f, a: f.back_labeled, Side.BACK),
    ("front label", lambda f, a: f.front_labeled, Side.FRONT),
    ("first field", lambda f, a: f.index == 0, Side.FRONT),
    ("second field", lambda f, a: f.index == 1, Side.BACK),
    ("later field, empty front", lambda f, a: not a.front_parts, Side.FRONT),
    ("later field", lambda f, a: True, Side.BACK),
]


def initial_side(ctx: FieldContext, assignment: SideAssignment) -> Side:
    for _, predicate, side in SIDE_RULES:
        if predicate(ctx, assignment):
            return side
    return Side.BACK


def should_escalate(ctx: FieldContext, assignment: SideAssignment) -> bool:
    """Move a front field to the back to keep verbose extras off the front."""
    if not assignment.front_parts:
        return False
    return (
        ctx.back_labeled
        or len(ctx.text or "") > ESCALATION_LENGTH
        or ctx.index != 0
    )


def choose_side(ctx: FieldContext, assignment: SideAssignment) -> Side:
    side = initial_side(ctx, assignment)
    if side is Side.FRONT and should_escalate(ctx, assignment):
        return Side.BACK
    return side


def labeled_text(ctx: FieldContext) -> str:
    """Prefix fields with non-role names ("Example: ...") so their origin stays visible."""
    if ctx.label and not ctx.role_labeled:
        return f"{ctx.label}: {ctx.text}"
    return ctx.text or ""


def classify_fields(
    values: list[str],
    names: list[str],
    extract_image: Optional[ImageExtractor] = None,
) -> SideAssignment:
    """Assign each field of one note to the front or back of a card."""
    assignment = SideAssignment()
    for index, value in enumerate(values):
        value = value or ""
        if assignment.images_full and find_image_source(value):
            logger.debug("Dropping extra image in field %d", index)
            processed = process_field(value)
        else:
            processed = process_field(value, extract_image)
        if processed.image:
            assignment.images.append(processed.image)
        if not processed.text:
            continue

        label = names[index].strip() if index < len(names) else ""
        ctx = FieldContext(index=index, label=label, text=processed.text)
        if choose_side(ctx, assignment) is Side.FRONT:
            assignment.front_parts.append(labeled_text(ctx))
        else:
            assignment.back_parts.append(labeled_text(ctx))
    return assignment
