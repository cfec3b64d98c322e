"""
Preuves à divulgation nulle de connaissance non interactives (Fiat-Shamir)

Deux protocoles sigma partagent le même contrat :

- SchnorrAlgorithm : connaissance de x tel que droite = gauche^x, pour un énoncé
- ChaumPedersenAlgorithm : un même x satisfait tous les énoncés donnés

Pour k aléatoire, t_i = gauche_i^k et le défi vaut
c = H(t_1, ..., t_n, gauche_1, droite_1, ..., gauche_n, droite_n, p, q).
La réponse est k + c·x mod q. La vérification recalcule
t_i' = gauche_i^réponse · droite_i^(-c) et compare le défi obtenu.
"""

import logging
from typing import Sequence

from .algebra import generate_random, hash_values, mod_inv
from .exceptions import PreconditionError
from .models import Parameters, Proof, Statement

logger = logging.getLogger(__name__)


def _challenge(parameters: Parameters, commitments: Sequence[int], statements: Sequence[Statement]) -> int:
    values = list(commitments)

    for statement in statements:
        values.append(statement.left_hand_side)
        values.append(statement.right_hand_side)

    values.append(parameters.p)
    values.append(parameters.q)

    return hash_values(parameters.q.bit_length(), *values)


def _generate(rng, parameters: Parameters, witness: int, statements: Sequence[Statement]) -> Proof:
    logger.debug("Generate proof")

    p, q = parameters.p, parameters.q

    # k tiré à chaque preuve, jamais réutilisé
    k = generate_random(rng, q)
    commitments = [pow(statement.left_hand_side, k, p) for statement in statements]

    c = _challenge(parameters, commitments, statements)
    response = (k + c * witness) % q

    return Proof(c, response)


def _verify(parameters: Parameters, proof: Proof, statements: Sequence[Statement]) -> bool:
    logger.debug("Verify proof")

    p = parameters.p
    commitments = []

    for statement in statements:
        if statement.left_hand_side % p == 0 or statement.right_hand_side % p == 0:
            return False

        first = pow(statement.left_hand_side, proof.response, p)
        second = mod_inv(pow(statement.right_hand_side, proof.challenge, p), p)
        commitments.append((first * second) % p)

    return proof.challenge == _challenge(parameters, commitments, statements)


def _check_generate(witness, statements):
    if witness is None:
        raise PreconditionError("Témoin manquant")

    if not statements:
        raise PreconditionError("Au moins un énoncé est requis")


def _check_verify(proof, statements):
    if proof is None:
        raise PreconditionError("Preuve manquante")

    if not statements:
        raise PreconditionError("Au moins un énoncé est requis")


class SchnorrAlgorithm:
    """Preuve de connaissance d'un logarithme discret"""

    def __init__(self, rng):
        self.rng = rng

    def generate_proof(self, parameters: Parameters, witness: int, *statements: Statement) -> Proof:
        _check_generate(witness, statements)
        if len(statements) != 1:
            raise PreconditionError("Schnorr n'accepte qu'un seul énoncé")

        return _generate(self.rng, parameters, witness, statements)

    def verify_proof(self, parameters: Parameters, proof: Proof, *statements: Statement) -> bool:
        _check_verify(proof, statements)
        if len(statements) != 1:
            raise PreconditionError("Schnorr n'accepte qu'un seul énoncé")

        return _verify(parameters, proof, statements)


class ChaumPedersenAlgorithm:
    """Preuve d'égalité de logarithmes discrets sur un ou plusieurs énoncés"""

    def __init__(self, rng):
        self.rng = rng

    def generate_proof(self, parameters: Parameters, witness: int, *statements: Statement) -> Proof:
        _check_generate(witness, statements)
        return _generate(self.rng, parameters, witness, statements)

    def verify_proof(self, parameters: Parameters, proof: Proof, *statements: Statement) -> bool:
        _check_verify(proof, statements)
        return _verify(parameters, proof, statements)
