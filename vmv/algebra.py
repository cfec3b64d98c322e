"""
Primitives arithmétiques partagées par tous les algorithmes du groupe :
encodage des entiers, inverse modulaire, hachage vers un entier et tirage
aléatoire par rejet.
"""

from typing import Iterable

from Crypto.Hash import SHA1, SHA256, SHA384, SHA512
from Crypto.Util.number import inverse


def mod_inv(a: int, m: int) -> int:
    """Inverse de a modulo m"""
    if a % m == 0:
        raise ValueError("Pas d'inverse pour 0")
    return inverse(a, m)


def int_to_bytes(value: int) -> bytes:
    """
    Encode un entier positif en big-endian, complément à deux minimal

    Un bit de signe est toujours présent : 0 -> b'\\x00', 128 -> b'\\x00\\x80'.

    Args:
        value: L'entier (>= 0) à encoder

    Returns:
        bytes: L'encodage big-endian
    """
    if value < 0:
        raise ValueError("Seuls les entiers positifs sont encodés")
    return value.to_bytes(value.bit_length() // 8 + 1, "big")


def bytes_to_int(data: bytes) -> int:
    return int.from_bytes(data, "big")


def digest_for_length(length: int):
    """
    Choisit la fonction de hachage adaptée à une longueur en bits (jusqu'à 512)

    Args:
        length: La longueur en bits

    Returns:
        Le module Crypto.Hash correspondant
    """
    if length <= 160:
        return SHA1
    elif length <= 256:
        return SHA256
    elif length <= 384:
        return SHA384
    return SHA512


def hash_values(bit_length: int, *values: int) -> int:
    """
    Hache une suite d'entiers et renvoie le condensat comme entier positif

    Chaque valeur est encodée par int_to_bytes puis ajoutée dans l'ordre.
    Le résultat est déterministe, ce dont dépend Fiat-Shamir.

    Args:
        bit_length: Longueur utilisée pour choisir la fonction de hachage
        values: Les entiers à hacher

    Returns:
        int: Le condensat
    """
    h = digest_for_length(bit_length).new()

    for value in values:
        h.update(int_to_bytes(value))

    return bytes_to_int(h.digest())


def generate_random(rng, limit: int) -> int:
    """
    Tire un entier uniforme dans [1, limit-2] par rejet (sans réduction modulaire)

    Args:
        rng: Source d'aléa (random.Random ou secrets.SystemRandom)
        limit: La borne

    Returns:
        int: L'entier tiré
    """
    if limit < 3:
        raise ValueError("Borne trop petite: %d" % limit)

    bits = limit.bit_length()
    value = rng.getrandbits(bits)

    while value == 0 or value > limit - 2:
        value = rng.getrandbits(bits)

    return value


def random_bytes(rng, length: int) -> bytes:
    """Octets aléatoires tirés depuis rng (utilisé comme randfunc par pycryptodome)"""
    return rng.getrandbits(length * 8).to_bytes(length, "big")


def product_mod(values: Iterable[int], p: int) -> int:
    result = 1
    for value in values:
        result = (result * value) % p
    return result
