"""
Utility functions for exact token amounts and SS58 addresses.
"""

import logging
import re
from typing import Optional

from scalecodec.utils.ss58 import ss58_decode, ss58_encode

from .exceptions import InvalidAmountFormat, TooManyDecimalPlaces
from .models import AddressClassification, AddressKind, AddressValidation

logger = logging.getLogger(__name__)

# Token precision: 1 token == 10**18 minor units
DECIMALS = 18
_SCALE = 10 ** DECIMALS

# Plain decimal only: no sign, no exponent, no bare leading/trailing dot
_AMOUNT_PATTERN = re.compile(r"^([0-9]+)(?:\.([0-9]+))?$")

PRIMARY_SS58_PREFIX = 6094
LEGACY_SS58_PREFIX = 42

_ADDRESS_FAMILIES = (
    (PRIMARY_SS58_PREFIX, AddressKind.PRIMARY, "Autonomys"),
    (LEGACY_SS58_PREFIX, AddressKind.LEGACY, "Substrate"),
)


def to_minor_units(amount: str) -> int:
    """
    Convert a decimal token string to an exact integer of minor units.

    Raises InvalidAmountFormat for anything that is not a plain decimal and
    TooManyDecimalPlaces when the fraction is longer than DECIMALS digits.
    Zero is a valid conversion; positivity is the caller's concern.
    """
    if not isinstance(amount, str):
        raise InvalidAmountFormat(amount)

    match = _AMOUNT_PATTERN.match(amount.strip())
    if not match:
        raise InvalidAmountFormat(amount)

    whole, fraction = match.group(1), match.group(2) or ""
    if len(fraction) > DECIMALS:
        raise TooManyDecimalPlaces(amount, DECIMALS)

    return int(whole) * _SCALE + int(fraction.ljust(DECIMALS, "0"))


def to_decimal_string(minor_units: int) -> str:
    """Convert minor units back to the canonical decimal token string."""
    if isinstance(minor_units, bool) or not isinstance(minor_units, int):
        raise TypeError(f"Amount must be an integer, got {type(minor_units).__name__}")
    if minor_units < 0:
        raise ValueError(f"Amount must not be negative: {minor_units}")

    whole, remainder = divmod(minor_units, _SCALE)
    if remainder == 0:
        return str(whole)

    fraction = str(remainder).rjust(DECIMALS, "0").rstrip("0")
    return f"{whole}.{fraction}"


def format_token_amount(minor_units: int, max_fraction_digits: int = 6) -> str:
    """Format minor units for display with thousands separators.

    The fraction is truncated, never rounded, so the displayed value never
    exceeds the real one.
    """
    whole, _, fraction = to_decimal_string(minor_units).partition(".")
    fraction = fraction[:max_fraction_digits].rstrip("0")
    whole = f"{int(whole):,}"
    return f"{whole}.{fraction}" if fraction else whole


def _match_family(address: str) -> Optional[tuple]:
    """Return the (prefix, kind, label) whose re-encoding reproduces address."""
    try:
        public_key = ss58_decode(address)
        for family in _ADDRESS_FAMILIES:
            if ss58_encode(public_key, ss58_format=family[0]) == address:
                return family
    except Exception as e:
        logger.debug(f"SS58 decode failed for {address!r}: {e}")
    return None


def validate_address(address: object) -> AddressValidation:
    """Validate an SS58 address against the accepted prefixes.

    Never raises for malformed input.
    """
    if address is None or not isinstance(address, str):
        return AddressValidation(
            is_valid=False, error="Address is required and must be a string")

    address = address.strip()
    if not address:
        return AddressValidation(is_valid=False, error="Address cannot be empty")

    family = _match_family(address)
    if family is None:
        return AddressValidation(is_valid=False, error="Invalid address format")

    return AddressValidation(is_valid=True, kind=family[1])


def is_valid_address(address: object) -> bool:
    """Check if a string is a valid Autonomys or Substrate address."""
    return validate_address(address).is_valid


def classify_address(address: str) -> Optional[AddressClassification]:
    """Report which accepted family an address belongs to, if any."""
    if not isinstance(address, str):
        return None

    family = _match_family(address.strip())
    if family is None:
        return None

    return AddressClassification(prefix=family[0], kind_label=family[2])
