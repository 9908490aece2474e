from __future__ import annotations

import pytest

from safe_outputs import limits
from safe_outputs.errors import LimitExceededError


def test_length_boundary() -> None:
    assert limits.check("a" * limits.MAX_LENGTH) is None

    violation = limits.check("a" * (limits.MAX_LENGTH + 1))

    assert violation is not None
    assert violation.code == "E006"
    assert "65536" in str(violation)
    assert "65537" in str(violation)
    assert violation.actual == limits.MAX_LENGTH + 1


def test_mention_boundary() -> None:
    ten = " ".join(f"@user{i}" for i in range(10))
    assert limits.check(ten) is None

    violation = limits.check(ten + " @user10")

    assert violation is not None
    assert violation.code == "E007"
    assert str(violation) == "E007: Comment contains 11 mentions, maximum is 10"


def test_link_boundary() -> None:
    fifty = " ".join(f"https://example.com/{i}" for i in range(50))
    assert limits.check(fifty) is None

    violation = limits.check(fifty + " http://example.com/50")

    assert violation is not None
    assert violation.code == "E008"
    assert str(violation) == "E008: Comment contains 51 links, maximum is 50"


def test_neutralized_mentions_and_emails_are_not_counted() -> None:
    text = " ".join(f"`@user{i}`" for i in range(20)) + " someone@example.com"
    assert limits.count_mentions(text) == 0


def test_length_is_checked_before_mentions() -> None:
    text = "@a " * 20 + "x" * limits.MAX_LENGTH
    violation = limits.check(text)
    assert violation is not None
    assert violation.code == "E006"


def test_enforce_raises_limit_error() -> None:
    with pytest.raises(LimitExceededError) as excinfo:
        limits.enforce("https://a.example " * 51)
    assert excinfo.value.code == "E008"
    assert excinfo.value.limit == 50
    assert limits.enforce("fine") == "fine"
