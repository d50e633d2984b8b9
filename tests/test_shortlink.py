"""Tests for short link minting."""

import pytest

from common.constants import SHORTLINK_ALPHABET, SHORTLINK_CODE_LENGTH, SHORTLINK_MAX_ATTEMPTS
from bundler import shortlink
from bundler.exceptions import BundlerException, LinkAlreadyExistsError
from bundler.repositories.short_link_repository import ShortLinkRepository


def test_generate_code_alphabet_and_length():
    code = shortlink.generate_code()
    assert len(code) == SHORTLINK_CODE_LENGTH
    assert set(code) <= set(SHORTLINK_ALPHABET)


def test_make_url(storage):
    assert shortlink.make_url("abc123") == "https://sb.test/d/abc123"


def test_collision_is_retried(make_user, make_group, monkeypatch):
    alice = make_user("alice")
    g1, g2 = make_group(alice), make_group(alice)
    codes = iter(["SAME", "SAME", "FRESH"])
    monkeypatch.setattr(shortlink, "generate_code", lambda: next(codes))

    assert shortlink.make_new_code(g1) == "SAME"
    assert shortlink.make_new_code(g2) == "FRESH"
    assert ShortLinkRepository.get_by_code("FRESH").group_id == g2


def test_exhausted_retries(make_user, make_group, monkeypatch):
    alice = make_user("alice")
    g1, g2 = make_group(alice), make_group(alice)
    monkeypatch.setattr(shortlink, "generate_code", lambda: "SAME")
    shortlink.make_new_code(g1)

    with pytest.raises(BundlerException) as exc_info:
        shortlink.make_new_code(g2)
    assert str(SHORTLINK_MAX_ATTEMPTS) in str(exc_info.value)


def test_one_link_per_group(make_user, make_group):
    alice = make_user("alice")
    group_id = make_group(alice)
    shortlink.make_new_code(group_id, "pin-hash")

    with pytest.raises(LinkAlreadyExistsError):
        shortlink.make_new_code(group_id)
    assert ShortLinkRepository.get_by_group(group_id).pin_hash == "pin-hash"
