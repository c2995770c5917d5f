from __future__ import annotations

import pytest

from s3explorer.common.validation import (
    InvalidInputError,
    is_valid_bucket_name,
    is_valid_object_key,
    require_bucket_name,
    require_object_key,
    sanitize_filename,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("my-bucket", True),
        ("logs.2024", True),
        ("abc", True),
        ("ab", False),
        ("MyBucket", False),
        ("-bucket", False),
        ("bucket-", False),
        ("my..bucket", False),
        ("a" * 64, False),
        ("", False),
        (None, False),
    ],
)
def test_bucket_names(name, expected):
    assert is_valid_bucket_name(name) is expected


def test_object_keys():
    assert is_valid_object_key("docs/readme.txt")
    assert is_valid_object_key("k" * 1024)
    assert not is_valid_object_key("k" * 1025)
    assert not is_valid_object_key("")
    assert not is_valid_object_key("docs/../secret")


def test_require_helpers_raise_invalid_input():
    with pytest.raises(InvalidInputError, match="Invalid bucket name"):
        require_bucket_name("Bad_Bucket")
    with pytest.raises(InvalidInputError, match="Invalid oldKey"):
        require_object_key("", label="oldKey")
    assert require_object_key("a.txt") == "a.txt"


def test_require_helpers_reject_missing_values():
    with pytest.raises(InvalidInputError, match="Invalid bucket name"):
        require_bucket_name(None)
    with pytest.raises(InvalidInputError, match="Invalid key"):
        require_object_key(None)
    assert require_bucket_name("my-bucket") == "my-bucket"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\photo 1.jpg", "photo_1.jpg"),
        ("résumé (final).doc", "r_sum___final_.doc"),
        ("dir/", ""),
    ],
)
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected
