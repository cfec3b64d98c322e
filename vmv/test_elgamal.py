"""
ElGamal est homomorphique multiplicatif :
(g^k1 · g^k2, m1·y^k1 · m2·y^k2) = (g^(k1+k2), m1·m2 · y^(k1+k2))
est un chiffré de m1·m2.
"""

import random

import pytest

from vmv.elgamal import ElGamalEncryption
from vmv.exceptions import PreconditionError
from vmv.models import KeyPair


@pytest.fixture
def elgamal():
    return ElGamalEncryption(random.Random(7))


def test_round_trip(elgamal, parameters):
    key_pair = elgamal.create_keys(parameters)

    for exponent in (1, 2, 12345678, parameters.q - 1):
        message = pow(parameters.g, exponent, parameters.p)
        cipher_text, k = elgamal.encrypt(parameters, key_pair, message)

        assert cipher_text.alpha == pow(parameters.g, k, parameters.p)
        assert elgamal.decrypt(parameters, key_pair, cipher_text) == message


def test_round_trip_small_group(elgamal, small_parameters):
    key_pair = elgamal.create_keys(small_parameters)

    for message in range(1, 23):
        cipher_text, _ = elgamal.encrypt(small_parameters, key_pair, message)
        assert elgamal.decrypt(small_parameters, key_pair, cipher_text) == message


def test_multiplicative_homomorphism(elgamal, parameters):
    key_pair = elgamal.create_keys(parameters)
    m1 = 0x2661b673f687c5c3142f806d500d2ce57b1182c9b25bfe4fa09529424b
    m2 = 0x1c1c871caabca15828cf08ee3aa3199000b94ed15e743c3

    c1, _ = elgamal.encrypt(parameters, key_pair, m1)
    c2, _ = elgamal.encrypt(parameters, key_pair, m2)

    product = c1.multiply(c2, parameters.p)
    assert elgamal.decrypt(parameters, key_pair, product) == (m1 * m2) % parameters.p


@pytest.mark.parametrize("message", [0, 23, 24])
def test_message_outside_group(elgamal, small_parameters, message):
    key_pair = elgamal.create_keys(small_parameters)

    with pytest.raises(PreconditionError):
        elgamal.encrypt(small_parameters, key_pair, message)


def test_missing_keys(elgamal, small_parameters):
    cipher_text, _ = elgamal.encrypt(small_parameters, KeyPair(None, 4), 4)

    with pytest.raises(PreconditionError):
        elgamal.decrypt(small_parameters, KeyPair(None, 4), cipher_text)

    with pytest.raises(PreconditionError):
        elgamal.encrypt(small_parameters, KeyPair(1, None), 4)
