import struct
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

from .algebra import bytes_to_int, int_to_bytes
from .exceptions import CryptographyError


class Record:
    """Conversion en dictionnaire simple pour la couche de sérialisation externe"""

    def to_record(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.to_record() if isinstance(value, Record) else value
        return result


@dataclass(frozen=True)
class Parameters(Record):
    """Paramètres du groupe (sous-groupe d'ordre q de Z_p*) et de l'élection"""
    p: int
    q: int
    g: int
    l: int                        # Longueur de p en bits
    m: int                        # Longueur de q en bits
    j: int                        # Cofacteur (p-1)/q
    name: str = "election"
    number_of_tellers: int = 0
    threshold_tellers: int = 0

    @classmethod
    def from_group(cls, p: int, q: int, g: int, **options) -> "Parameters":
        return cls(p=p, q=q, g=g, l=p.bit_length(), m=q.bit_length(), j=(p - 1) // q, **options)


@dataclass(frozen=True)
class KeyPair(Record):
    """Paire de clés : la clé privée est absente pour une vue publique ou une part de teller"""
    private_key: Optional[int]
    public_key: int


@dataclass(frozen=True)
class VoterKeyPairs(Record):
    """Clés d'un votant : trappe (numéro de suivi) et signature (bulletin)"""
    trapdoor_key_pair: KeyPair
    signature_key_pair: KeyPair


@dataclass(frozen=True)
class Statement:
    """Énoncé d'une preuve : right_hand_side = left_hand_side^témoin mod p"""
    left_hand_side: int
    right_hand_side: int


@dataclass(frozen=True)
class Proof(Record):
    challenge: int
    response: int


@dataclass(frozen=True)
class CipherText(Record):
    """Chiffré ElGamal (alpha, beta) = (g^r, pk^r * m)"""
    alpha: int
    beta: int

    def to_bytes(self) -> bytes:
        # Deux couples (longueur sur 4 octets, valeur)
        alpha_bytes = int_to_bytes(self.alpha)
        beta_bytes = int_to_bytes(self.beta)
        return (struct.pack(">I", len(alpha_bytes)) + alpha_bytes +
                struct.pack(">I", len(beta_bytes)) + beta_bytes)

    @classmethod
    def from_bytes(cls, data: bytes) -> "CipherText":
        if data is None:
            raise CryptographyError("Chiffré manquant")

        offset = 0
        values = []
        for part in ("alpha", "beta"):
            if len(data) < offset + 4:
                raise CryptographyError("Longueur de %s manquante" % part)
            (length,) = struct.unpack_from(">I", data, offset)
            offset += 4

            if len(data) < offset + length:
                raise CryptographyError("Valeur de %s manquante" % part)
            values.append(bytes_to_int(data[offset:offset + length]))
            offset += length

        return cls(values[0], values[1])

    def multiply(self, other: "CipherText", p: int) -> "CipherText":
        """Produit homomorphe terme à terme"""
        return CipherText((self.alpha * other.alpha) % p, (self.beta * other.beta) % p)


@dataclass(frozen=True)
class Commitment(Record):
    """Engagement d'un teller pour un votant : h = pk_trappe^r, g = g^r et leurs chiffrés"""
    public_key: int
    h: int
    g: int
    encrypted_h: bytes
    encrypted_g: bytes


@dataclass(frozen=True)
class CommitmentProof(Record):
    """Les neuf sous-preuves et les six valeurs intermédiaires d'un engagement"""
    a1_dash: int
    a2_dash: int
    b1_dash: int
    b2_dash: int
    c: int
    d: int
    pi11: Proof
    pi12: Proof
    pi21: Proof
    pi22: Proof
    pi23: Proof
    pi31: Proof
    pi32: Proof
    pi4: Proof
    pi5: Proof


@dataclass(frozen=True)
class TrackerNumber(Record):
    tracker_number: Optional[int]
    tracker_number_in_group: Optional[int]
    encrypted_tracker_number_in_group: Optional[bytes]

    def __eq__(self, other):
        if not isinstance(other, TrackerNumber):
            return NotImplemented
        return self.tracker_number == other.tracker_number

    def __hash__(self):
        return hash(self.tracker_number)


@dataclass(frozen=True)
class EncryptProof(Record):
    """Preuve de chiffrement d'un vote, liée au bulletin par sa signature"""
    c1_r: int
    c2_r: int
    c1_bar: int
    c2_bar: int
    encrypted_vote_signature: bytes


@dataclass(frozen=True)
class VoteOption(Record):
    option: str
    option_number_in_group: Optional[int] = None


@dataclass(frozen=True)
class Voter(Record):
    """Données d'un votant. L'identifiant n'est attribué qu'après association."""
    id: Optional[str] = None
    voter_key_pairs: Optional[VoterKeyPairs] = None
    tracker_number: Optional[TrackerNumber] = None
    alpha: Optional[int] = None
    beta: Optional[int] = None
    plain_text_vote: Optional[str] = None
    encrypted_vote: Optional[bytes] = None
    encrypted_vote_signature: Optional[bytes] = None

    @property
    def trapdoor_public_key(self) -> Optional[int]:
        if self.voter_key_pairs is None or self.voter_key_pairs.trapdoor_key_pair is None:
            return None
        return self.voter_key_pairs.trapdoor_key_pair.public_key

    @property
    def signature_public_key(self) -> Optional[int]:
        if self.voter_key_pairs is None or self.voter_key_pairs.signature_key_pair is None:
            return None
        return self.voter_key_pairs.signature_key_pair.public_key

    def update(self, **changes) -> "Voter":
        return replace(self, **changes)


@dataclass(frozen=True)
class ProofWrapper:
    """Résultat d'une opération accompagné de sa preuve (artefact opaque ou liste de preuves)"""
    value: Any
    proof: Any = field(default=b"")
