import abc
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import requests

from .config import MIXNET_TIMEOUT, MIXNET_URL
from .exceptions import MixnetError
from .models import CipherText, KeyPair, Parameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MixnetResult:
    """Résultat d'un appel au mixnet et son artefact de preuve opaque"""
    items: List[Any]
    proof: bytes = b""


class MixnetService(abc.ABC):
    """
    Mixnet à seuil externe, utilisé lorsque l'élection a des tellers

    width indique combien de chiffrés adjacents forment une unité
    (2 pour garder ensemble numéro de suivi et vote pendant le mélange).
    """

    @abc.abstractmethod
    def shuffle(self, parameters: Parameters, teller: int, width: int,
                cipher_texts: List[CipherText]) -> MixnetResult:
        """Mélange et rechiffre, renvoie des CipherText"""

    @abc.abstractmethod
    def mix(self, parameters: Parameters, teller: int, width: int,
            cipher_texts: List[CipherText]) -> MixnetResult:
        """Mélange puis déchiffre, renvoie des éléments du groupe"""

    @abc.abstractmethod
    def decrypt(self, parameters: Parameters, teller: int, width: int,
                cipher_texts: List[CipherText]) -> MixnetResult:
        """Déchiffre sans mélanger, renvoie des éléments du groupe dans l'ordre"""

    @abc.abstractmethod
    def create_election_key_pair(self, parameters: Parameters, teller: int) -> KeyPair:
        """Génération distribuée : seule la clé publique est connue"""


class HttpMixnetService(MixnetService):
    """Client HTTP synchrone du service de mixnet, sans nouvelle tentative"""

    def __init__(self, base_url: str = MIXNET_URL, timeout: float = MIXNET_TIMEOUT,
                 session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, parameters: Parameters, teller: int, operation: str,
              payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/tellers/{teller}/{operation}"

        data = dict(payload)
        data.update({"teller": teller, "p": str(parameters.p), "q": str(parameters.q), "g": str(parameters.g)})

        logger.info("Mixnet %s (teller %d)", operation, teller)

        try:
            response = self.session.post(url, json=data, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise MixnetError(f"Échec de l'appel {operation} au mixnet: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise MixnetError(f"Réponse {operation} du mixnet illisible") from e

        if not isinstance(body, dict):
            raise MixnetError(f"Réponse {operation} du mixnet mal formée")

        return body

    def _call(self, parameters: Parameters, teller: int, operation: str, width: int,
              cipher_texts: List[CipherText]) -> Dict[str, Any]:
        payload = {
            "width": width,
            "ciphertexts": [{"alpha": str(c.alpha), "beta": str(c.beta)} for c in cipher_texts],
        }
        return self._post(parameters, teller, operation, payload)

    @staticmethod
    def _proof(body: Dict[str, Any], operation: str) -> bytes:
        try:
            return base64.b64decode(body.get("proof") or "", validate=True)
        except (binascii.Error, TypeError) as e:
            raise MixnetError(f"Preuve {operation} du mixnet mal formée") from e

    @staticmethod
    def _items(body: Dict[str, Any], operation: str) -> list:
        items = body.get("items")
        if not isinstance(items, list):
            raise MixnetError(f"Éléments {operation} du mixnet manquants")
        return items

    def _plain_texts(self, body: Dict[str, Any], operation: str) -> MixnetResult:
        try:
            items = [int(item) for item in self._items(body, operation)]
        except (TypeError, ValueError) as e:
            raise MixnetError(f"Éléments {operation} du mixnet mal formés") from e

        return MixnetResult(items, self._proof(body, operation))

    def shuffle(self, parameters, teller, width, cipher_texts):
        body = self._call(parameters, teller, "shuffle", width, cipher_texts)

        try:
            items = [CipherText(int(item["alpha"]), int(item["beta"])) for item in self._items(body, "shuffle")]
        except (KeyError, TypeError, ValueError) as e:
            raise MixnetError("Éléments shuffle du mixnet mal formés") from e

        return MixnetResult(items, self._proof(body, "shuffle"))

    def mix(self, parameters, teller, width, cipher_texts):
        body = self._call(parameters, teller, "mix", width, cipher_texts)
        return self._plain_texts(body, "mix")

    def decrypt(self, parameters, teller, width, cipher_texts):
        body = self._call(parameters, teller, "decrypt", width, cipher_texts)
        return self._plain_texts(body, "decrypt")

    def create_election_key_pair(self, parameters, teller):
        body = self._post(parameters, teller, "keys", {})

        try:
            public_key = int(body["public_key"])
        except (KeyError, TypeError, ValueError) as e:
            raise MixnetError("Clé publique du mixnet mal formée") from e

        return KeyPair(None, public_key)
