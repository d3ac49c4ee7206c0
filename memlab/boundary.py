"""Bounds-checked containers and input validators in the spirit of memory protection."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Mapping, MutableSequence, Optional, Sequence

from memlab.errors import MemoryProtectionError

MAX_PARAM_KEY_LENGTH = 100
MAX_PARAM_VALUE_LENGTH = 1000


class SafeArray:
    """Fixed-size array that refuses out-of-range access."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("size must not be negative")
        self.size = size
        self.valid = True
        self.lower = 0
        self.upper = size - 1
        self._data: list[Any] = [None] * size

    def _check(self, index: int, action: str) -> None:
        if not self.valid:
            raise MemoryProtectionError(
                f"memory protection: {action} an invalid array"
            )
        if index < self.lower or index > self.upper:
            raise MemoryProtectionError(
                f"memory protection: index out of range "
                f"(index: {index}, range: {self.lower}-{self.upper})"
            )

    def get(self, index: int) -> Any:
        self._check(index, "read from")
        return self._data[index]

    def set(self, index: int, value: Any) -> None:
        self._check(index, "write to")
        self._data[index] = value


def _check_sequence_index(values: Optional[Sequence[Any]], index: int, action: str) -> None:
    if values is None:
        raise MemoryProtectionError(f"memory protection: {action} a missing sequence")
    if index < 0 or index >= len(values):
        raise MemoryProtectionError(
            f"memory protection: sequence index out of range "
            f"(index: {index}, length: {len(values)})"
        )


def safe_slice_access(values: Optional[Sequence[Any]], index: int) -> Any:
    """Return ``values[index]``, refusing negative or too-large indices."""
    _check_sequence_index(values, index, "read from")
    assert values is not None
    return values[index]


def safe_slice_write(values: Optional[MutableSequence[Any]], index: int, value: Any) -> None:
    """Store ``value`` at ``values[index]``, refusing out-of-range indices."""
    _check_sequence_index(values, index, "write to")
    assert values is not None
    values[index] = value


def safe_string_access(text: str, index: int) -> str:
    """Return the character at ``index`` without wrap-around."""
    if index < 0 or index >= len(text):
        raise MemoryProtectionError(
            f"memory protection: string index out of range "
            f"(index: {index}, length: {len(text)})"
        )
    return text[index]


def safe_substring(text: str, start: int, end: int) -> str:
    """Return ``text[start:end]`` after checking both ends are in range."""
    if start < 0 or start > len(text):
        raise MemoryProtectionError(
            f"memory protection: start index out of range "
            f"(start: {start}, length: {len(text)})"
        )
    if end < start or end > len(text):
        raise MemoryProtectionError(
            f"memory protection: end index out of range "
            f"(end: {end}, length: {len(text)})"
        )
    return text[start:end]


class UserInputValidator:
    """Checks input length and that every character is on an allow list."""

    def __init__(self, max_length: int, allowed_chars: str) -> None:
        self.max_length = max_length
        self.allowed_chars = frozenset(allowed_chars)

    def validate(self, text: str) -> None:
        if len(text) > self.max_length:
            raise ValueError(
                f"input too long: {len(text)} (max: {self.max_length})"
            )
        for position, char in enumerate(text):
            if char not in self.allowed_chars:
                raise ValueError(
                    f"character not allowed: {char!r} (position: {position})"
                )


@dataclass
class Product:
    id: int
    name: str
    price: float


class ProductManager:
    """A small product catalogue with checked lookups."""

    def __init__(self) -> None:
        self.products: list[Product] = [
            Product(1, "Laptop", 1500000),
            Product(2, "Mouse", 50000),
            Product(3, "Keyboard", 100000),
        ]

    def get_product(self, index: int) -> Product:
        if index < 0 or index >= len(self.products):
            raise IndexError(
                f"product not found: index {index} "
                f"(range: 0-{len(self.products) - 1})"
            )
        return self.products[index]

    def get_product_by_id(self, product_id: int) -> Product:
        for product in self.products:
            if product.id == product_id:
                return product
        raise LookupError(f"product not found: ID {product_id}")


class CSVParser:
    """Splits comma-separated text into rows, skipping blank lines."""

    def __init__(self, csv_data: str) -> None:
        self.rows: list[list[str]] = [
            line.split(",") for line in csv_data.split("\n") if line.strip()
        ]

    def get_cell(self, row: int, col: int) -> str:
        fields = self.get_row(row)
        if col < 0 or col >= len(fields):
            raise IndexError(
                f"column index out of range: {col} (range: 0-{len(fields) - 1})"
            )
        return fields[col]

    def get_row(self, row: int) -> list[str]:
        if row < 0 or row >= len(self.rows):
            raise IndexError(
                f"row index out of range: {row} (range: 0-{len(self.rows) - 1})"
            )
        return list(self.rows[row])


class APIRequestHandler:
    """Rejects requests whose body or parameters exceed configured limits."""

    def __init__(self, max_request_size: int, max_params: int) -> None:
        self.max_request_size = max_request_size
        self.max_params = max_params

    def process_request(self, request_data: bytes, params: Mapping[str, str]) -> str:
        if len(request_data) > self.max_request_size:
            raise ValueError(
                f"request too large: {len(request_data)} bytes "
                f"(max: {self.max_request_size})"
            )
        if len(params) > self.max_params:
            raise ValueError(
                f"too many parameters: {len(params)} (max: {self.max_params})"
            )
        for key, value in params.items():
            if len(key) > MAX_PARAM_KEY_LENGTH:
                raise ValueError(f"parameter key too long: {key}")
            if len(value) > MAX_PARAM_VALUE_LENGTH:
                raise ValueError(f"parameter value too long: {key}")
        return "request processed"


def main(argv: Sequence[str] | None = None) -> int:
    print("=== Boundary check examples (memory protection) ===")

    print("\n1. Safe array:")
    array = SafeArray(5)
    array.set(0, "first item")
    array.set(1, "second item")
    print(f"Value: {array.get(0)}")
    try:
        array.get(10)
    except MemoryProtectionError as err:
        print(f"Expected error: {err}")

    print("\n2. Safe sequence access:")
    numbers = [10, 20, 30, 40, 50]
    print(f"Value: {safe_slice_access(numbers, 2)}")
    try:
        safe_slice_access(numbers, -1)
    except MemoryProtectionError as err:
        print(f"Expected error: {err}")

    print("\n3. Input validation:")
    validator = UserInputValidator(10, "abcdefghijklmnopqrstuvwxyz0123456789")
    validator.validate("abc123")
    print("Valid input: abc123")
    for bad in ("verylonginput123", "abc@123"):
        try:
            validator.validate(bad)
        except ValueError as err:
            print(f"Expected error: {err}")

    print("\n4. Product manager:")
    manager = ProductManager()
    product = manager.get_product(1)
    print(f"Product: {product.name}, price: {product.price:.0f}")
    try:
        manager.get_product(10)
    except IndexError as err:
        print(f"Expected error: {err}")

    print("\n5. CSV parser:")
    csv_data = (
        "name,age,email\n"
        "Kim,30,kim@example.com\n"
        "Lee,25,lee@example.com\n"
        "Park,35,park@example.com"
    )
    parser = CSVParser(csv_data)
    print(f"Cell value: {parser.get_cell(1, 1)}")
    try:
        parser.get_cell(10, 1)
    except IndexError as err:
        print(f"Expected error: {err}")

    print("\n6. API request handling:")
    handler = APIRequestHandler(1024, 10)
    params = {"format": "json", "lang": "ko"}
    print(f"Result: {handler.process_request(b'{\"action\":\"get_user\",\"user_id\":\"123\"}', params)}")
    try:
        handler.process_request(bytes(2048), params)
    except ValueError as err:
        print(f"Expected error: {err}")

    print("\n7. Safe string access:")
    text = "Hello, World!"
    print(f"Character: {safe_string_access(text, 7)}")
    print(f"Substring: {safe_substring(text, 0, 5)}")
    try:
        safe_string_access(text, 100)
    except MemoryProtectionError as err:
        print(f"Expected error: {err}")
    return 0


if __name__ == "__main__":
    sys.exit(main())