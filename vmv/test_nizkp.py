import random

import pytest

from vmv.exceptions import PreconditionError
from vmv.models import Proof, Statement
from vmv.nizkp import ChaumPedersenAlgorithm, SchnorrAlgorithm


@pytest.fixture
def schnorr():
    return SchnorrAlgorithm(random.Random(11))


@pytest.fixture
def chaum_pedersen():
    return ChaumPedersenAlgorithm(random.Random(13))


def test_schnorr(schnorr, parameters):
    x = 0x1234567890
    statement = Statement(parameters.g, pow(parameters.g, x, parameters.p))
    proof = schnorr.generate_proof(parameters, x, statement)

    assert schnorr.verify_proof(parameters, proof, statement)

    wrong = Statement(parameters.g, pow(parameters.g, x + 1, parameters.p))
    assert not schnorr.verify_proof(parameters, proof, wrong)


def test_schnorr_small_group(schnorr, small_parameters):
    for x in range(1, 11):
        statement = Statement(4, pow(4, x, 23))
        assert schnorr.verify_proof(small_parameters, schnorr.generate_proof(small_parameters, x, statement), statement)


def test_schnorr_single_statement(schnorr, small_parameters):
    statement = Statement(4, 16)

    with pytest.raises(PreconditionError):
        schnorr.generate_proof(small_parameters, 2, statement, statement)

    with pytest.raises(PreconditionError):
        schnorr.verify_proof(small_parameters, Proof(1, 1), statement, statement)


def test_chaum_pedersen(chaum_pedersen, parameters):
    p, g = parameters.p, parameters.g
    x = 0xABCDEF
    h = pow(g, 99, p)
    statements = [Statement(g, pow(g, x, p)), Statement(h, pow(h, x, p)), Statement(pow(h, 3, p), pow(h, 3 * x, p))]

    proof = chaum_pedersen.generate_proof(parameters, x, *statements)
    assert chaum_pedersen.verify_proof(parameters, proof, *statements)

    # Chaque énoncé modifié invalide la preuve
    for i, statement in enumerate(statements):
        altered = list(statements)
        altered[i] = Statement(statement.left_hand_side, (statement.right_hand_side * g) % p)
        assert not chaum_pedersen.verify_proof(parameters, proof, *altered)


def test_chaum_pedersen_different_witnesses(chaum_pedersen, parameters):
    p, g = parameters.p, parameters.g
    h = pow(g, 5, p)
    statements = [Statement(g, pow(g, 10, p)), Statement(h, pow(h, 11, p))]

    proof = chaum_pedersen.generate_proof(parameters, 10, *statements)
    assert not chaum_pedersen.verify_proof(parameters, proof, *statements)


def test_altered_proof(chaum_pedersen, parameters):
    statement = Statement(parameters.g, pow(parameters.g, 42, parameters.p))
    proof = chaum_pedersen.generate_proof(parameters, 42, statement)

    assert not chaum_pedersen.verify_proof(parameters, Proof(proof.challenge + 1, proof.response), statement)
    assert not chaum_pedersen.verify_proof(parameters, Proof(proof.challenge, proof.response + 1), statement)


def test_fresh_randomness(chaum_pedersen, parameters):
    statement = Statement(parameters.g, pow(parameters.g, 42, parameters.p))

    assert chaum_pedersen.generate_proof(parameters, 42, statement) != \
        chaum_pedersen.generate_proof(parameters, 42, statement)


def test_missing_arguments(chaum_pedersen, small_parameters):
    with pytest.raises(PreconditionError):
        chaum_pedersen.generate_proof(small_parameters, None, Statement(4, 16))

    with pytest.raises(PreconditionError):
        chaum_pedersen.generate_proof(small_parameters, 2)

    with pytest.raises(PreconditionError):
        chaum_pedersen.verify_proof(small_parameters, None, Statement(4, 16))

    with pytest.raises(PreconditionError):
        chaum_pedersen.verify_proof(small_parameters, Proof(1, 1))
