"""VIN syntax and check-digit validation (ISO 3779 / 49 CFR 565)."""

from __future__ import annotations

import re

from manual_rag.utils.errors import InvalidVehicleError

_VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")

_TRANSLITERATION: dict[str, int] = {
    "A": 1, "B": 2, "C": 3, "D": 4, "E": 5, "F": 6, "G": 7, "H": 8,
    "J": 1, "K": 2, "L": 3, "M": 4, "N": 5, "P": 7, "R": 9,
    "S": 2, "T": 3, "U": 4, "V": 5, "W": 6, "X": 7, "Y": 8, "Z": 9,
}

_WEIGHTS = (8, 7, 6, 5, 4, 3, 2, 10, 0, 9, 8, 7, 6, 5, 4, 3, 2)


def normalize_vin(vin: str) -> str:
    return vin.strip().upper()


def compute_check_digit(vin: str) -> str:
    """Return the expected check digit (position 9) for a 17-character VIN."""
    total = 0
    for char, weight in zip(vin, _WEIGHTS):
        value = int(char) if char.isdigit() else _TRANSLITERATION[char]
        total += value * weight
    remainder = total % 11
    return "X" if remainder == 10 else str(remainder)


def validate_vin(vin: str) -> str:
    """Return the normalized VIN or raise :class:`InvalidVehicleError`.

    Letters I, O and Q are never valid VIN characters.
    """
    normalized = normalize_vin(vin)
    if len(normalized) != 17:
        raise InvalidVehicleError(f"VIN must be 17 characters, got {len(normalized)}")
    if not _VIN_RE.match(normalized):
        raise InvalidVehicleError("VIN contains invalid characters (I, O and Q are not allowed)")
    expected = compute_check_digit(normalized)
    if normalized[8] != expected:
        raise InvalidVehicleError(
            f"VIN check digit mismatch: expected {expected}, found {normalized[8]}"
        )
    return normalized
