import logging
from typing import Tuple

from .algebra import generate_random
from .exceptions import PreconditionError
from .models import CipherText, KeyPair, Parameters

logger = logging.getLogger(__name__)


class ElGamalEncryption:
    """
    ElGamal multiplicatif sur le groupe de l'élection

    Le message doit déjà être un élément du groupe : l'appelant se charge
    de l'encodage (g^valeur pour les numéros de suivi et les options de vote).
    """

    def __init__(self, rng):
        self.rng = rng

    def create_keys(self, parameters: Parameters) -> KeyPair:
        """
        Génère une paire de clés ElGamal

        Returns:
            KeyPair: (clé privée x, clé publique h = g^x mod p)
        """
        private_key = generate_random(self.rng, parameters.q)
        public_key = pow(parameters.g, private_key, parameters.p)

        return KeyPair(private_key, public_key)

    def encrypt(self, parameters: Parameters, key_pair: KeyPair, message: int) -> Tuple[CipherText, int]:
        """
        Chiffre un élément du groupe

        Args:
            parameters: Les paramètres du groupe
            key_pair: La paire de clés du destinataire (clé publique requise)
            message: L'élément à chiffrer, 0 < message < p

        Returns:
            Tuple[CipherText, int]: Le chiffré (g^k, y^k·m) et l'aléa k utilisé

        Raises:
            PreconditionError: Si la clé publique est absente ou le message hors du groupe
        """
        if key_pair is None or key_pair.public_key is None:
            raise PreconditionError("Clé publique manquante pour le chiffrement")

        p = parameters.p
        if not 0 < message < p:
            raise PreconditionError("Message invalide")

        logger.debug("ElGamal encrypt")

        k = generate_random(self.rng, p)

        alpha = pow(parameters.g, k, p)
        beta = (message * pow(key_pair.public_key, k, p)) % p

        return CipherText(alpha, beta), k

    def decrypt(self, parameters: Parameters, key_pair: KeyPair, cipher_text: CipherText) -> int:
        """
        Déchiffre un chiffré ElGamal : m = beta · alpha^(p-1-x) mod p

        Raises:
            PreconditionError: Si la clé privée est absente
        """
        if key_pair is None or key_pair.private_key is None:
            raise PreconditionError("Clé privée manquante pour le déchiffrement")

        logger.debug("ElGamal decrypt")

        p = parameters.p
        return (cipher_text.beta * pow(cipher_text.alpha, p - 1 - key_pair.private_key, p)) % p
