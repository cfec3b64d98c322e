import logging

from Crypto.PublicKey import DSA
from Crypto.Util.asn1 import DerSequence
from Crypto.Util.number import isPrime

from .algebra import bytes_to_int, digest_for_length, generate_random, mod_inv, random_bytes
from .exceptions import PreconditionError
from .models import KeyPair, Parameters

logger = logging.getLogger(__name__)

# Couples (L, N) acceptés par la génération de domaine FIPS 186-3
SUPPORTED_LENGTHS = {1024: 160, 2048: 224, 3072: 256}


def validate_params(p: int, q: int, g: int) -> bool:
    """
    Vérifie que les paramètres DSA sont valides

    p et q doivent être premiers, q doit diviser p-1 et g doit engendrer
    le sous-groupe d'ordre q.
    """
    if p < 2 or q < 2:
        return False

    if not isPrime(p) or not isPrime(q):
        return False

    if (p - 1) % q != 0:
        return False

    if g <= 1 or g >= p:
        return False

    # Vérifie que g^q ≡ 1 (mod p)
    if pow(g, q, p) != 1:
        return False

    return True


def H(message: bytes, q: int) -> int:
    """
    Hache le message et conserve les N bits de poids fort (N = longueur de q)

    Args:
        message: Le message à hacher
        q: L'ordre du sous-groupe

    Returns:
        int: Le hash tronqué
    """
    digest = digest_for_length(q.bit_length()).new(message).digest()
    h = bytes_to_int(digest)

    excess = len(digest) * 8 - q.bit_length()
    if excess > 0:
        h >>= excess

    return h


def DSA_sign_with_nonce(message: bytes, private_key: int, k: int, p: int, q: int, g: int):
    """
    Calcule (r, s) pour un nonce k donné

    Returns:
        Tuple[int, int]: La signature, ou None si r = 0 ou s = 0
    """
    # r = (g^k mod p) mod q
    r = pow(g, k, p) % q
    if r == 0:
        return None

    # s = (H(m) + x·r)/k mod q
    s = (mod_inv(k, q) * ((H(message, q) + private_key * r) % q)) % q
    if s == 0:
        return None

    return r, s


class DSASignature:
    """Signature DSA sur le groupe de l'élection, encodée en DER SEQUENCE{r, s}"""

    def __init__(self, rng):
        self.rng = rng

    def create_parameters(self, length_l: int, length_n: int, name: str = "election",
                          number_of_tellers: int = 0, threshold_tellers: int = 0) -> Parameters:
        """
        Génère un domaine DSA (p, q, g) de L et N bits

        Args:
            length_l: Longueur de p en bits
            length_n: Longueur de q en bits
            name: Nom de l'élection
            number_of_tellers: Nombre de tellers
            threshold_tellers: Seuil de tellers

        Returns:
            Parameters: Les paramètres de l'élection

        Raises:
            PreconditionError: Si le couple (L, N) n'est pas supporté
        """
        if SUPPORTED_LENGTHS.get(length_l) != length_n:
            raise PreconditionError("Longueurs (L=%d, N=%d) non supportées" % (length_l, length_n))

        logger.debug("Generate DSA domain L=%d N=%d", length_l, length_n)

        key = DSA.generate(length_l, randfunc=lambda n: random_bytes(self.rng, n))
        p, q, g = key.domain()

        return Parameters.from_group(p, q, g, name=name, number_of_tellers=number_of_tellers,
                                     threshold_tellers=threshold_tellers)

    def load_parameters(self, p: int, q: int, g: int, name: str = "election",
                        number_of_tellers: int = 0, threshold_tellers: int = 0) -> Parameters:
        """Construit les paramètres depuis un groupe explicite après validation"""
        if not validate_params(p, q, g):
            raise PreconditionError("Paramètres DSA invalides")

        return Parameters.from_group(p, q, g, name=name, number_of_tellers=number_of_tellers,
                                     threshold_tellers=threshold_tellers)

    def create_keys(self, parameters: Parameters) -> KeyPair:
        """
        Génère une paire de clés DSA

        Returns:
            KeyPair: (clé privée x dans [1, q-2], clé publique g^x mod p)
        """
        private_key = generate_random(self.rng, parameters.q)
        public_key = pow(parameters.g, private_key, parameters.p)

        return KeyPair(private_key, public_key)

    def sign(self, parameters: Parameters, key_pair: KeyPair, data: bytes) -> bytes:
        """
        Signe des données avec DSA

        Args:
            parameters: Les paramètres du groupe
            key_pair: La paire de clés (clé privée requise)
            data: Les données à signer

        Returns:
            bytes: La signature encodée en DER

        Raises:
            PreconditionError: Si la clé privée est absente
        """
        if key_pair is None or key_pair.private_key is None:
            raise PreconditionError("Clé privée manquante pour la signature")

        logger.debug("DSA sign")

        p, q, g = parameters.p, parameters.q, parameters.g

        while True:  # Boucle jusqu'à obtenir r ≠ 0 et s ≠ 0
            k = generate_random(self.rng, q)
            signature = DSA_sign_with_nonce(data, key_pair.private_key, k, p, q, g)

            if signature is not None:
                return DerSequence(list(signature)).encode()

    def verify(self, parameters: Parameters, key_pair: KeyPair, data: bytes, signature: bytes) -> bool:
        """
        Vérifie une signature DSA

        Une signature mal formée est simplement invalide.

        Returns:
            bool: True si la signature est valide

        Raises:
            PreconditionError: Si la clé publique est absente
        """
        if key_pair is None or key_pair.public_key is None:
            raise PreconditionError("Clé publique manquante pour la vérification")

        logger.debug("DSA verify")

        p, q, g = parameters.p, parameters.q, parameters.g

        try:
            r, s = DerSequence().decode(signature, nr_elements=2, only_ints_expected=True)
        except (ValueError, TypeError, IndexError):
            logger.debug("Signature DER mal formée")
            return False

        if not (0 < r < q and 0 < s < q):
            return False

        if not 0 < key_pair.public_key < p:
            return False

        # w = s^(-1) mod q, u1 = H(m)·w mod q, u2 = r·w mod q
        w = mod_inv(s, q)
        u1 = (H(data, q) * w) % q
        u2 = (r * w) % q

        # v = ((g^u1 * y^u2) mod p) mod q
        v = ((pow(g, u1, p) * pow(key_pair.public_key, u2, p)) % p) % q

        return v == r
