"""
CSV validation and parsing for distribution input files.

Input files have no header and two columns per line: ``address,amount``.
Amounts are plain decimal token strings converted exactly to minor units.
"""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .exceptions import InvalidAmountFormat, TooManyDecimalPlaces, ValidationError
from .models import (
    AddressKind,
    AddressStats,
    DistributionRecord,
    DuplicateAddress,
    RecordStatus,
    ValidationResult,
)
from .utils import to_decimal_string, to_minor_units, validate_address

logger = logging.getLogger(__name__)

# Number of errors included in log output and console summaries
MAX_REPORTED_ERRORS = 10


@dataclass(frozen=True)
class ValidationThresholds:
    """Advisory limits (in minor units) that produce warnings, never errors."""
    existential_deposit: int = 10 ** 12      # 0.000001 tokens
    very_small_amount: int = 10 ** 6         # 0.000000000001 tokens
    large_amount: int = 1_000_000 * 10 ** 18  # 1,000,000 tokens


@dataclass
class _Row:
    """Outcome of checking one CSV row."""
    line_number: int
    record: Optional[DistributionRecord] = None
    kind: Optional[AddressKind] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class CSVValidator:
    """Validates and parses distribution CSV files."""

    def __init__(self, thresholds: Optional[ValidationThresholds] = None):
        self.thresholds = thresholds or ValidationThresholds()

    def validate_csv(self, file_path: Union[str, Path]) -> ValidationResult:
        """Run a read-only validation pass over the whole file."""
        logger.info(f"Starting CSV validation: {file_path}")

        errors: List[str] = []
        warnings: List[str] = []
        address_lines: Dict[str, List[int]] = {}
        total_amount = 0
        record_count = 0
        primary_count = 0
        legacy_count = 0

        for row in self._iter_rows(file_path):
            errors.extend(row.errors)
            warnings.extend(row.warnings)

            if row.kind == AddressKind.PRIMARY:
                primary_count += 1
            elif row.kind == AddressKind.LEGACY:
                legacy_count += 1

            if row.record is None:
                continue

            record_count += 1
            total_amount += row.record.amount

            seen_on = address_lines.setdefault(row.record.address, [])
            if seen_on:
                warnings.append(
                    f"Line {row.line_number}: Duplicate address found: "
                    f"{row.record.address} (first seen on line {seen_on[0]})")
            seen_on.append(row.line_number)

        duplicates = [
            DuplicateAddress(address=address, indices=lines)
            for address, lines in address_lines.items()
            if len(lines) > 1
        ]

        if record_count == 0:
            errors.append("No valid records found in CSV file")
        elif total_amount == 0:
            errors.append("Total distribution amount is zero")

        result = ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            duplicates=duplicates,
            total_amount=total_amount,
            record_count=record_count,
            address_stats=AddressStats(
                primary_count=primary_count, legacy_count=legacy_count),
        )

        if result.is_valid:
            logger.info(
                f"CSV validation passed: {record_count} records, total "
                f"{to_decimal_string(total_amount)} tokens, {len(warnings)} warnings")
        else:
            logger.error(
                f"CSV validation failed with {len(errors)} errors: "
                f"{errors[:MAX_REPORTED_ERRORS]}")

        return result

    def parse_validated_csv(self, file_path: Union[str, Path]) -> List[DistributionRecord]:
        """Return the individually valid rows as pending records."""
        logger.info(f"Parsing validated CSV file: {file_path}")

        records = [row.record for row in self._iter_rows(file_path)
                   if row.record is not None]

        logger.info(f"CSV parsing completed: {len(records)} records")
        return records

    def validate_record(self, address: str, amount: str) -> Tuple[bool, List[str]]:
        """Validate a single address/amount pair, e.g. for interactive fixes."""
        errors = []

        if not isinstance(address, str) or not address.strip():
            errors.append("Address is required")
        elif not validate_address(address).is_valid:
            errors.append("Invalid address format")

        if not isinstance(amount, str) or not amount.strip():
            errors.append("Amount is required")
        else:
            try:
                if to_minor_units(amount.strip()) == 0:
                    errors.append("Amount must be greater than zero")
            except InvalidAmountFormat:
                errors.append("Invalid amount format")

        return not errors, errors

    def _iter_rows(self, file_path: Union[str, Path]) -> Iterator[_Row]:
        path = Path(file_path)
        if not path.is_file():
            raise ValidationError("CSV file does not exist", [str(path)])

        try:
            with open(path, newline="", encoding="utf-8") as csvfile:
                reader = csv.reader(csvfile)
                for fields in reader:
                    if not any(value.strip() for value in fields):
                        continue
                    yield self._check_row(reader.line_num, fields)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"Error reading CSV file {path}: {e}")
            raise ValidationError("Failed to read CSV file", [str(e)]) from e

    def _check_row(self, line_number: int, fields: List[str]) -> _Row:
        row = _Row(line_number=line_number)
        address = fields[0].strip() if len(fields) > 0 else ""
        amount = fields[1].strip() if len(fields) > 1 else ""
        extra = [value for value in fields[2:] if value.strip()]

        if extra:
            row.errors.append(
                f"Line {line_number}: Expected 2 columns (address, amount), "
                f"found {len(fields)}")
            return row

        if not address:
            row.errors.append(f"Line {line_number}: Address is required")
            return row

        if not amount:
            row.errors.append(f"Line {line_number}: Amount is required")
            return row

        check = validate_address(address)
        if not check.is_valid:
            row.errors.append(
                f"Line {line_number}: Invalid SS58 address format: {address}")
            return row
        row.kind = check.kind

        try:
            minor_units = to_minor_units(amount)
        except TooManyDecimalPlaces:
            row.errors.append(
                f"Line {line_number}: Too many decimal places (max 18): {amount}")
            return row
        except InvalidAmountFormat:
            row.errors.append(
                f"Line {line_number}: Invalid amount format: {amount}")
            return row

        if minor_units == 0:
            row.errors.append(
                f"Line {line_number}: Amount must be greater than zero: {amount}")
            return row

        row.warnings.extend(self._amount_warnings(line_number, amount, minor_units))
        row.record = DistributionRecord(
            address=address,
            amount=minor_units,
            status=RecordStatus.PENDING,
            source_row_number=line_number,
        )
        return row

    def _amount_warnings(self, line_number: int, amount: str, minor_units: int) -> List[str]:
        warnings = []
        limits = self.thresholds

        if minor_units < limits.existential_deposit:
            warnings.append(
                f"Line {line_number}: Amount ({amount}) is below existential deposit "
                f"({to_decimal_string(limits.existential_deposit)}); the transfer may "
                f"still succeed if the recipient account already exists")

        if minor_units < limits.very_small_amount:
            warnings.append(
                f"Line {line_number}: Very small amount ({amount}) may cause precision issues")

        if minor_units > limits.large_amount:
            warnings.append(
                f"Line {line_number}: Large amount ({amount}) - please verify this is correct")

        return warnings
