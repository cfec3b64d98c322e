import random

import pytest
from Crypto.Hash import SHA1, SHA256, SHA384, SHA512

from vmv.algebra import (
    bytes_to_int, digest_for_length, generate_random, hash_values, int_to_bytes, mod_inv, product_mod,
)


def test_int_to_bytes_keeps_sign_bit():
    assert int_to_bytes(0) == b"\x00"
    assert int_to_bytes(127) == b"\x7f"
    assert int_to_bytes(128) == b"\x00\x80"
    assert int_to_bytes(256) == b"\x01\x00"
    assert bytes_to_int(int_to_bytes(0xCAFEBABE)) == 0xCAFEBABE


def test_int_to_bytes_rejects_negative():
    with pytest.raises(ValueError):
        int_to_bytes(-1)


def test_digest_for_length():
    assert digest_for_length(4) is SHA1
    assert digest_for_length(160) is SHA1
    assert digest_for_length(161) is SHA256
    assert digest_for_length(256) is SHA256
    assert digest_for_length(384) is SHA384
    assert digest_for_length(385) is SHA512


def test_hash_values_is_deterministic_and_ordered():
    assert hash_values(256, 1, 2, 3) == hash_values(256, 1, 2, 3)
    assert hash_values(256, 1, 2, 3) != hash_values(256, 3, 2, 1)

    expected = SHA256.new(b"\x01" + b"\x00\x80").digest()
    assert hash_values(256, 1, 128) == int.from_bytes(expected, "big")
    assert hash_values(160, 1).bit_length() <= 160


def test_generate_random_stays_in_range():
    rng = random.Random(1)
    values = {generate_random(rng, 11) for _ in range(500)}
    assert values == set(range(1, 10))


def test_generate_random_rejects_small_limit():
    with pytest.raises(ValueError):
        generate_random(random.Random(1), 2)


def test_mod_inv():
    assert (mod_inv(4, 23) * 4) % 23 == 1
    with pytest.raises(ValueError):
        mod_inv(23, 23)


def test_product_mod():
    assert product_mod([4, 16, 18], 23) == (4 * 16 * 18) % 23
    assert product_mod([], 23) == 1
