import pytest

from vmv.exceptions import CryptographyError
from vmv.models import (
    CipherText, KeyPair, Parameters, Proof, TrackerNumber, Voter, VoterKeyPairs,
)


def test_parameters_from_group(small_parameters):
    assert small_parameters.l == 5
    assert small_parameters.m == 4
    assert small_parameters.j == 2
    assert small_parameters.number_of_tellers == 0


def test_cipher_text_encoding():
    cipher_text = CipherText(128, 5)
    encoded = cipher_text.to_bytes()

    assert encoded == b"\x00\x00\x00\x02\x00\x80\x00\x00\x00\x01\x05"
    assert CipherText.from_bytes(encoded) == cipher_text


@pytest.mark.parametrize("data", [b"", b"\x00\x00", b"\x00\x00\x00\x02\x00", b"\x00\x00\x00\x01\x05\x00\x00\x00\x03\x01"])
def test_cipher_text_truncated(data):
    with pytest.raises(CryptographyError):
        CipherText.from_bytes(data)


def test_cipher_text_multiply():
    assert CipherText(4, 16).multiply(CipherText(2, 3), 23) == CipherText(8, 2)


def test_tracker_number_equality_by_value():
    assert TrackerNumber(12345678, 4, b"a") == TrackerNumber(12345678, 16, b"b")
    assert TrackerNumber(12345678, 4, b"a") != TrackerNumber(87654321, 4, b"a")
    assert len({TrackerNumber(12345678, 4, b"a"), TrackerNumber(12345678, 16, b"b")}) == 1


def test_voter_update_returns_new_instance():
    voter = Voter(plain_text_vote="Yes")
    updated = voter.update(id="v1")

    assert voter.id is None
    assert updated.id == "v1"
    assert updated.plain_text_vote == "Yes"


def test_voter_public_keys():
    pairs = VoterKeyPairs(KeyPair(1, 4), KeyPair(2, 16))
    voter = Voter(voter_key_pairs=pairs)

    assert voter.trapdoor_public_key == 4
    assert voter.signature_public_key == 16
    assert Voter().trapdoor_public_key is None


def test_to_record_is_nested_dict():
    record = VoterKeyPairs(KeyPair(None, 4), KeyPair(2, 16)).to_record()

    assert record == {
        "trapdoor_key_pair": {"private_key": None, "public_key": 4},
        "signature_key_pair": {"private_key": 2, "public_key": 16},
    }
    assert Proof(1, 2).to_record() == {"challenge": 1, "response": 2}
    assert Parameters.from_group(23, 11, 4).to_record()["j"] == 2
