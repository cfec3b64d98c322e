import base64
from unittest import mock

import pytest
import requests

from vmv.exceptions import MixnetError
from vmv.mixnet import HttpMixnetService
from vmv.models import CipherText, KeyPair


def make_service(body=None, status_code=200, json_error=None):
    response = mock.Mock()
    response.status_code = status_code
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body

    session = mock.Mock()
    session.post.return_value = response

    return HttpMixnetService("http://mixnet:8081/", timeout=5, session=session), session


def test_shuffle(small_parameters):
    proof = base64.b64encode(b"proof").decode()
    service, session = make_service({"items": [{"alpha": "3", "beta": "4"}], "proof": proof})

    result = service.shuffle(small_parameters, 2, 1, [CipherText(1, 2)])

    assert result.items == [CipherText(3, 4)]
    assert result.proof == b"proof"

    url = session.post.call_args[0][0]
    payload = session.post.call_args[1]["json"]
    assert url == "http://mixnet:8081/tellers/2/shuffle"
    assert payload["width"] == 1
    assert payload["teller"] == 2
    assert payload["ciphertexts"] == [{"alpha": "1", "beta": "2"}]
    assert (payload["p"], payload["q"], payload["g"]) == ("23", "11", "4")
    assert session.post.call_args[1]["timeout"] == 5


def test_mix_and_decrypt(small_parameters):
    service, session = make_service({"items": ["4", "16"], "proof": ""})

    assert service.mix(small_parameters, 1, 2, [CipherText(1, 2), CipherText(3, 4)]).items == [4, 16]
    assert service.decrypt(small_parameters, 1, 1, [CipherText(1, 2)]).proof == b""
    assert session.post.call_args[0][0].endswith("/tellers/1/decrypt")


def test_create_election_key_pair(small_parameters):
    service, _ = make_service({"public_key": "16"})

    assert service.create_election_key_pair(small_parameters, 1) == KeyPair(None, 16)


def test_transport_error(small_parameters):
    service, session = make_service()
    session.post.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(MixnetError) as excinfo:
        service.mix(small_parameters, 1, 2, [])

    assert isinstance(excinfo.value.__cause__, requests.exceptions.ConnectionError)


def test_http_error(small_parameters):
    service, _ = make_service({}, status_code=500)

    with pytest.raises(MixnetError):
        service.decrypt(small_parameters, 1, 1, [])


@pytest.mark.parametrize("body", [
    [],
    {"proof": ""},
    {"items": ["x"], "proof": ""},
    {"items": ["4"], "proof": "%%%"},
])
def test_malformed_response(small_parameters, body):
    service, _ = make_service(body)

    with pytest.raises(MixnetError):
        service.decrypt(small_parameters, 1, 1, [])


def test_unreadable_response(small_parameters):
    service, _ = make_service(json_error=ValueError("no json"))

    with pytest.raises(MixnetError):
        service.shuffle(small_parameters, 1, 1, [])


def test_malformed_shuffle_items(small_parameters):
    service, _ = make_service({"items": [{"alpha": "1"}], "proof": ""})

    with pytest.raises(MixnetError):
        service.shuffle(small_parameters, 1, 1, [])
