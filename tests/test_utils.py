from __future__ import annotations

import threading

import pytest

from identitykeeper.errors import InvalidInputError
from identitykeeper.models.enums import Role
from identitykeeper.models.user import User
from identitykeeper.utils.ids import IdGenerator
from identitykeeper.utils.security import hmac_sha256, random_string, verify_digest
from identitykeeper.utils.user_codec import USER_CODEC_VERSION, decode_user, encode_user
from identitykeeper.utils.validation import check_email, check_name, check_url, sanitize_name

_DEFAULT = "https://img.example.com/default.png"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_check_email_normalises() -> None:
    assert check_email("  Bob.Smith+tag@Mail.Example.ORG ") == "bob.smith+tag@mail.example.org"


@pytest.mark.parametrize("email", ["bob", "bob@", "@example.com", "bob@example", "bo b@example.com", None])
def test_check_email_rejects(email) -> None:
    with pytest.raises(InvalidInputError):
        check_email(email)


def test_check_email_respects_max_length() -> None:
    with pytest.raises(InvalidInputError):
        check_email("abcdef@example.com", max_length=10)


def test_check_name_trims_and_allows_unicode() -> None:
    assert check_name("  Zoë O'Brien  ") == "Zoë O'Brien"


@pytest.mark.parametrize("url", [None, "", "   "])
def test_check_url_defaults(url) -> None:
    assert check_url(url, _DEFAULT) == _DEFAULT


@pytest.mark.parametrize("url", ["https://cdn.example.com/a.png", "http://x.io/p?q=1", "/static/avatar.png"])
def test_check_url_accepts(url) -> None:
    assert check_url(url, _DEFAULT) == url


@pytest.mark.parametrize("url", ["ftp://x.io/a", "https://", "data:image/png;base64,AAA", "relative/path.png"])
def test_check_url_rejects(url) -> None:
    with pytest.raises(InvalidInputError):
        check_url(url, _DEFAULT)


def test_sanitize_name_truncates_and_falls_back() -> None:
    assert sanitize_name("a" * 150, fallback="x", max_length=100) == "a" * 100
    assert sanitize_name(None, fallback="acct-7") == "acct-7"
    assert sanitize_name("\x00\t<>", fallback="acct-7") == "acct-7"


# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------


def test_ids_are_fixed_width_hex_and_ordered() -> None:
    generator = IdGenerator()
    ids = [generator.next_id() for _ in range(500)]

    assert all(len(i) == 24 and int(i, 16) >= 0 for i in ids)
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def test_ids_stay_ordered_when_clock_goes_backwards() -> None:
    ticks = iter([1_000, 1_000, 999, 1_001])
    generator = IdGenerator(node="0000abcd", clock=lambda: next(ticks))

    ids = [generator.next_id() for _ in range(4)]

    assert ids == sorted(ids)
    assert len(set(ids)) == 4
    assert ids[0] == f"{1_000:012x}0000" + "0000abcd"


def test_ids_unique_across_threads() -> None:
    generator = IdGenerator()
    collected: list[str] = []
    lock = threading.Lock()

    def work() -> None:
        batch = [generator.next_id() for _ in range(200)]
        with lock:
            collected.extend(batch)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(collected)) == 800


def test_id_generator_rejects_bad_node() -> None:
    with pytest.raises(ValueError):
        IdGenerator(node="XYZ")


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


def test_hmac_digest_depends_on_salt() -> None:
    digest = hmac_sha256("password", "salt-a")

    assert len(digest) == 64
    assert digest == hmac_sha256("password", "salt-a")
    assert digest != hmac_sha256("password", "salt-b")
    assert verify_digest("password", "salt-a", digest)
    assert not verify_digest("Password", "salt-a", digest)


def test_random_string_is_alphanumeric_of_requested_length() -> None:
    value = random_string(64)

    assert len(value) == 64
    assert value.isalnum()
    assert random_string(64) != value
    with pytest.raises(ValueError):
        random_string(0)


# ---------------------------------------------------------------------------
# Cache codec
# ---------------------------------------------------------------------------


def test_codec_round_trip_keeps_enum_and_timestamps() -> None:
    user = User(
        id="0190abcd",
        email="c@example.com",
        name="Codec",
        image_url="/c.png",
        role=Role.EDITOR,
        locked_until=123,
        created_at=1,
        updated_at=2,
    )

    decoded = decode_user(encode_user(user))

    assert decoded == user
    assert decoded.role is Role.EDITOR


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "{not json",
        "[1, 2]",
        '{"v": 99, "user": {}}',
        f'{{"v": {USER_CODEC_VERSION}, "user": "nope"}}',
        f'{{"v": {USER_CODEC_VERSION}, "user": {{"id": "x"}}}}',
    ],
)
def test_codec_treats_unreadable_payloads_as_missing(raw) -> None:
    assert decode_user(raw) is None
