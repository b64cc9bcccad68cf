# image_recognition/core/pipeline/aggregator.py
"""
Tag Aggregator — provider labels → Field Tag Set

Merges the labels of every provider into the metadata fields they are mapped
to. Labels are normalized (trimmed, internal whitespace collapsed) and merged
with case-insensitive set semantics: the first occurrence keeps its casing and
its position. Confidence does not survive this step; DAM tag fields store text
only.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence

from image_recognition.schemas.models import FieldTagSet, Label

_WS = re.compile(r"\s+")

LabelLike = Label | str


def normalize_label(text: str) -> str:
    return _WS.sub(" ", text or "").strip()


def _text(item: LabelLike) -> str:
    return item.text if isinstance(item, Label) else str(item)


def merge_labels(existing: list[str], new: Iterable[LabelLike]) -> list[str]:
    """
    Append normalized labels from `new` to `existing` (in place) unless already
    present case-insensitively. Returns `existing` for chaining.
    """
    seen = {t.casefold() for t in existing}
    for item in new:
        text = normalize_label(_text(item))
        if not text:
            continue
        key = text.casefold()
        if key in seen:
            continue
        seen.add(key)
        existing.append(text)
    return existing


def aggregate(
    results: Sequence[tuple[str, Iterable[LabelLike]]],
    field_map: Mapping[str, str | None],
    *,
    combined_field: str | None = None,
) -> FieldTagSet:
    """
    Build the Field Tag Set for one cycle.

    Args:
        results:        (provider, labels) pairs in provider-declaration order.
        field_map:      provider -> target field; None (or a missing provider) discards
                        that provider's labels from per-provider fields.
        combined_field: Optional field receiving the merged labels of all providers.

    Returns:
        Mapping field -> ordered, deduplicated label texts. Fields that end up
        empty are not included.
    """
    out: FieldTagSet = {}
    for provider, labels in results:
        labels = list(labels)
        field = field_map.get(provider)
        if field:
            merge_labels(out.setdefault(field, []), labels)
        if combined_field:
            merge_labels(out.setdefault(combined_field, []), labels)
    return {k: v for k, v in out.items() if v}
