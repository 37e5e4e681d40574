"""
Tokenizer for brand columns.

A brand cell lists one competitor's equivalent SKUs for a part:

    "NAT-100;NAT-200;[DELETE]NAT-300"

Entries are separated by SKU_DELIMITER. An entry prefixed with
DELETE_MARKER asks for that cross reference to be removed. Cells with no
delimiter but with whitespace are the legacy space-separated format and
are split on whitespace instead.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from config.catalog import DELETE_MARKER, SKU_DELIMITER
from utils.text_utils import normalize_optional


@dataclass
class BrandCellTokens:
    """Parsed brand cell."""
    adds: list[str] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)
    legacy_format: bool = False
    duplicates: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.adds and not self.deletes


def _split_cell(text: str) -> tuple[list[str], bool]:
    if SKU_DELIMITER in text:
        return [t.strip() for t in text.split(SKU_DELIMITER)], False

    parts = text.split()
    if len(parts) <= 1:
        return parts, False

    # "[DELETE] NAT-100" in legacy cells: marker belongs to the next token
    tokens = []
    pending_marker = False
    for part in parts:
        if part.upper() == DELETE_MARKER:
            pending_marker = True
            continue
        tokens.append(DELETE_MARKER + part if pending_marker else part)
        pending_marker = False
    return tokens, True


def parse_brand_cell(value: Optional[str]) -> BrandCellTokens:
    """
    Split a brand cell into SKUs to keep/add and SKUs to delete.

    Each SKU appears once in the result. A SKU listed both plainly and
    with the delete marker is treated as a delete.

    Args:
        value: Raw cell value (None and "" give an empty result)

    Returns:
        BrandCellTokens
    """
    result = BrandCellTokens()
    text = normalize_optional(value)
    if text is None:
        return result

    tokens, result.legacy_format = _split_cell(text)

    seen_adds: set[str] = set()
    seen_deletes: set[str] = set()
    for token in tokens:
        if not token:
            continue
        if token.upper().startswith(DELETE_MARKER):
            sku = token[len(DELETE_MARKER):].strip()
            if not sku:
                continue
            if sku in seen_deletes:
                result.duplicates.append(sku)
                continue
            seen_deletes.add(sku)
            result.deletes.append(sku)
        else:
            if token in seen_adds:
                result.duplicates.append(token)
                continue
            seen_adds.add(token)
            result.adds.append(token)

    result.adds = [sku for sku in result.adds if sku not in seen_deletes]
    return result


def format_brand_cell(skus: Iterable[str]) -> Optional[str]:
    """Join SKUs back into a cell value, or None when there are none."""
    cleaned = [s for s in (normalize_optional(sku) for sku in skus) if s]
    return SKU_DELIMITER.join(cleaned) if cleaned else None
