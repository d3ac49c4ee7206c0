import pytest

from memlab.boundary import (
    APIRequestHandler,
    CSVParser,
    ProductManager,
    SafeArray,
    UserInputValidator,
    main,
    safe_slice_access,
    safe_slice_write,
    safe_string_access,
    safe_substring,
)
from memlab.errors import MemoryProtectionError

CSV_DATA = (
    "name,age,email\n"
    "Kim,30,kim@example.com\n"
    "Lee,25,lee@example.com\n"
    "\n"
    "Park,35,park@example.com"
)


def test_safe_array_round_trip():
    array = SafeArray(5)
    array.set(4, "last")
    assert array.get(4) == "last"
    assert array.get(0) is None


@pytest.mark.parametrize("index", [-1, 5, 10])
def test_safe_array_rejects_out_of_range(index):
    array = SafeArray(5)
    with pytest.raises(MemoryProtectionError):
        array.get(index)
    with pytest.raises(MemoryProtectionError):
        array.set(index, "x")


def test_safe_array_rejects_when_invalid():
    array = SafeArray(3)
    array.valid = False
    with pytest.raises(MemoryProtectionError, match="invalid array"):
        array.get(0)


def test_safe_slice_access():
    assert safe_slice_access([10, 20, 30, 40, 50], 2) == 30
    with pytest.raises(MemoryProtectionError):
        safe_slice_access([10, 20, 30, 40, 50], -1)
    with pytest.raises(MemoryProtectionError):
        safe_slice_access(None, 0)


def test_safe_slice_write():
    values = [1, 2, 3]
    safe_slice_write(values, 1, 9)
    assert values == [1, 9, 3]
    with pytest.raises(MemoryProtectionError):
        safe_slice_write(values, 3, 0)
    with pytest.raises(MemoryProtectionError):
        safe_slice_write(None, 0, 0)


def test_safe_string_access_and_substring():
    text = "Hello, World!"
    assert safe_string_access(text, 7) == "W"
    assert safe_substring(text, 0, 5) == "Hello"
    assert safe_substring(text, len(text), len(text)) == ""
    with pytest.raises(MemoryProtectionError):
        safe_string_access(text, 100)


@pytest.mark.parametrize("start,end", [(-1, 3), (20, 20), (5, 2), (0, 14)])
def test_safe_substring_rejects(start, end):
    with pytest.raises(MemoryProtectionError):
        safe_substring("Hello, World!", start, end)


def test_validator():
    validator = UserInputValidator(10, "abcdefghijklmnopqrstuvwxyz0123456789")
    assert validator.validate("abc123") is None
    with pytest.raises(ValueError, match="too long"):
        validator.validate("verylonginput123")
    with pytest.raises(ValueError, match="position: 3"):
        validator.validate("abc@123")


def test_product_manager():
    manager = ProductManager()
    assert manager.get_product(1).price == 50000
    assert manager.get_product_by_id(3).price == 100000
    assert manager.get_product_by_id(2) is manager.get_product(1)
    with pytest.raises(IndexError):
        manager.get_product(10)
    with pytest.raises(LookupError):
        manager.get_product_by_id(99)


def test_csv_parser():
    parser = CSVParser(CSV_DATA)
    assert parser.get_cell(1, 1) == "30"
    assert parser.get_row(3) == ["Park", "35", "park@example.com"]
    with pytest.raises(IndexError):
        parser.get_cell(10, 1)
    with pytest.raises(IndexError):
        parser.get_cell(0, 3)
    with pytest.raises(IndexError):
        parser.get_row(-1)


def test_csv_row_is_a_copy():
    parser = CSVParser(CSV_DATA)
    parser.get_row(0).append("extra")
    assert parser.get_row(0) == ["name", "age", "email"]


def test_api_request_handler():
    handler = APIRequestHandler(1024, 10)
    params = {"format": "json", "lang": "ko"}
    assert handler.process_request(b'{"action":"get_user"}', params) == "request processed"
    with pytest.raises(ValueError, match="too large"):
        handler.process_request(bytes(2048), params)
    with pytest.raises(ValueError, match="too many"):
        handler.process_request(b"", {str(i): "v" for i in range(11)})
    with pytest.raises(ValueError, match="key too long"):
        handler.process_request(b"", {"k" * 101: "v"})
    with pytest.raises(ValueError, match="value too long"):
        handler.process_request(b"", {"k": "v" * 1001})


def test_main_runs(capsys):
    assert main([]) == 0
    assert "Substring: Hello" in capsys.readouterr().out