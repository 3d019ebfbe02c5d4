"""Field extraction from normalised PRG fragments."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterator, Union

from prg_import.common.constants import LOCALITY_ADMIN_LEVEL
from prg_import.common.errors import ParseError, SourceIOError, ValidationError
from prg_import.common.models import RawAddressFields

POSTAL_CODE_FIELD = "kodPocztowy"
STREET_FIELD = "ulica"
HOUSE_NUMBER_FIELD = "numerPorzadkowy"
# Spelling matches the dataset schema.
ADMIN_UNIT_FIELD = "jednostkaAdmnistracyjna"
POSITION_PATH = "pozycja/Point/pos"

ExtractResult = Union[RawAddressFields, ValidationError]


def _text(element: ET.Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def split_position(value: str) -> tuple[str, str]:
    """Return ``(x, y)`` from a ``pos`` value ordered northing then easting."""
    parts = value.split()
    if len(parts) != 2:
        raise ValidationError(f"Expected two position components, got {value!r}")
    northing, easting = parts
    return easting, northing


def extract_fields(record: ET.Element, *, locality_admin_level: int = LOCALITY_ADMIN_LEVEL) -> RawAddressFields:
    admin_units = record.findall(ADMIN_UNIT_FIELD)
    locality = _text(admin_units[locality_admin_level]) if len(admin_units) > locality_admin_level else ""

    position = record.find(POSITION_PATH)
    if position is None:
        raise ValidationError("Record has no position", reason="MISSING_POSITION")
    raw_x, raw_y = split_position(_text(position))

    return RawAddressFields(
        postal_code=_text(record.find(POSTAL_CODE_FIELD)),
        locality=locality,
        street=_text(record.find(STREET_FIELD)),
        house_number=_text(record.find(HOUSE_NUMBER_FIELD)),
        raw_x=raw_x,
        raw_y=raw_y,
    )


def iter_record_fields(
    fragment: Path,
    record_element: str,
    *,
    locality_admin_level: int = LOCALITY_ADMIN_LEVEL,
) -> Iterator[ExtractResult]:
    """Yield one result per record in document order.

    A record with a missing or malformed position yields its ValidationError
    instead of fields. The whole fragment raises ParseError when it is not
    well-formed.
    """
    try:
        tree = ET.parse(fragment)
    except ET.ParseError as exc:
        raise ParseError(f"Fragment {fragment.name} is not well-formed: {exc}") from exc
    except OSError as exc:
        raise SourceIOError(f"Error reading fragment: [{fragment}]") from exc

    for record in tree.getroot().iter(record_element):
        try:
            yield extract_fields(record, locality_admin_level=locality_admin_level)
        except ValidationError as exc:
            yield exc
