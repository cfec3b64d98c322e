"""
Moteur du protocole Selene

Orchestration des opérations cryptographiques d'une élection vérifiable :
paramètres et clés, numéros de suivi, engagements des tellers et leurs
preuves, chiffrement et signature des votes, mélange et déchiffrement.

Les opérations par votant sont indépendantes : elles sont réparties sur un
pool de threads puis rassemblées par indice, si bien que la liste renvoyée
suit toujours l'ordre des entrées. Un échec dans une tâche fait échouer tout
le lot. Aucune valeur reçue n'est modifiée : chaque mise à jour produit un
nouvel objet.
"""

import logging
import os
import secrets
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from .algebra import generate_random, hash_values, mod_inv, product_mod
from .config import TRACKER_NUMBER_MAX, TRACKER_NUMBER_MIN, ElectionOptions
from .dsa import DSASignature
from .elgamal import ElGamalEncryption
from .exceptions import (
    CryptographyError, LinkageError, MixnetError, PreconditionError,
    ProofVerificationError, UniquenessError,
)
from .mixnet import MixnetService
from .models import (
    CipherText, Commitment, CommitmentProof, EncryptProof, KeyPair, Parameters,
    ProofWrapper, Statement, TrackerNumber, VoteOption, Voter, VoterKeyPairs,
)
from .nizkp import ChaumPedersenAlgorithm, SchnorrAlgorithm
from .progress import ProgressListener, ProgressNotifier

logger = logging.getLogger(__name__)


class SeleneEngine:
    def __init__(self, rng=None, mixnet: MixnetService = None, max_workers: int = None,
                 signature: DSASignature = None, encryption: ElGamalEncryption = None,
                 schnorr: SchnorrAlgorithm = None, chaum_pedersen: ChaumPedersenAlgorithm = None):
        """
        Initialise le moteur

        Args:
            rng: Source d'aléa partagée par les algorithmes (SystemRandom par défaut)
            mixnet: Service de mixnet, requis uniquement si l'élection a des tellers
            max_workers: Taille du pool de threads (nombre de processeurs par défaut)
            signature, encryption, schnorr, chaum_pedersen: Algorithmes à utiliser
        """
        self.rng = rng if rng is not None else secrets.SystemRandom()
        self.mixnet = mixnet
        self.max_workers = max_workers or os.cpu_count() or 1

        self.signature = signature or DSASignature(self.rng)
        self.encryption = encryption or ElGamalEncryption(self.rng)
        self.schnorr = schnorr or SchnorrAlgorithm(self.rng)
        self.chaum_pedersen = chaum_pedersen or ChaumPedersenAlgorithm(self.rng)

        self.progress = ProgressNotifier()

    # Avancement

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self.progress.add(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        self.progress.remove(listener)

    @contextmanager
    def _step(self, name: str):
        self.progress.start(name)
        try:
            yield
        finally:
            self.progress.end()

    def _run_parallel(self, name: str, count: int, task: Callable[[int], object]) -> list:
        """
        Exécute task(i) pour i dans [0, count) sur le pool et rassemble les résultats par indice

        Les CryptographyError sont propagées telles quelles, toute autre
        exception est encapsulée. Les tâches en attente sont annulées.
        """
        results = [None] * count

        with self._step(name):
            if count == 0:
                return results

            try:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    futures = {executor.submit(task, i): i for i in range(count)}

                    try:
                        for done, future in enumerate(as_completed(futures), start=1):
                            results[futures[future]] = future.result()
                            self.progress.update(100 * done / count)
                    except BaseException:
                        for future in futures:
                            future.cancel()
                        raise
            except CryptographyError:
                raise
            except Exception as e:
                raise CryptographyError(f"Impossible d'exécuter {name} en parallèle") from e

        return results

    # Mixnet et tellers

    def check_tellers(self, parameters: Parameters, teller: Optional[int]) -> None:
        """
        Vérifie que l'élection utilise des tellers et que le numéro est dans [1, nombre de tellers]

        Raises:
            PreconditionError: Si l'une des conditions n'est pas remplie
        """
        if parameters.number_of_tellers <= 0:
            raise PreconditionError("L'élection n'utilise pas de tellers")

        if teller is None or not 1 <= teller <= parameters.number_of_tellers:
            raise PreconditionError(
                f"Numéro de teller incorrect: doit être entre 1 et {parameters.number_of_tellers}")

    def _uses_tellers(self, parameters: Parameters, teller: Optional[int]) -> bool:
        if parameters.number_of_tellers <= 0:
            return False

        self.check_tellers(parameters, teller)
        if self.mixnet is None:
            raise PreconditionError("Aucun service de mixnet configuré")

        return True

    def _call_mixnet(self, operation: str, *args):
        try:
            return getattr(self.mixnet, operation)(*args)
        except CryptographyError:
            raise
        except Exception as e:
            raise MixnetError(f"Échec de {operation} par le mixnet") from e

    # Paramètres et clés

    def create_election_parameters(self, options: ElectionOptions = None) -> Parameters:
        """
        Crée les paramètres de l'élection

        Un groupe (p, q, g) explicite est validé, sinon un domaine DSA de
        longueurs (L, N) est généré.
        """
        options = options or ElectionOptions()

        with self._step("Création des paramètres de l'élection"):
            extra = {
                "name": options.name,
                "number_of_tellers": options.number_of_tellers,
                "threshold_tellers": options.threshold_tellers,
            }

            if options.has_explicit_group:
                return self.signature.load_parameters(options.p, options.q, options.g, **extra)

            return self.signature.create_parameters(options.length_l, options.length_n, **extra)

    def create_election_key_pair(self, parameters: Parameters, teller: int = None) -> KeyPair:
        """
        Crée la paire de clés de l'élection

        Sans tellers, la paire est générée localement. Avec tellers, la clé
        est générée de manière distribuée et seule la clé publique est connue.
        """
        with self._step("Création de la clé de l'élection"):
            if self._uses_tellers(parameters, teller):
                return self._call_mixnet("create_election_key_pair", parameters, teller)

            return self.signature.create_keys(parameters)

    def _create_key_pairs(self, name: str, number: int, parameters: Parameters) -> List[KeyPair]:
        return self._run_parallel(name, number, lambda i: self.signature.create_keys(parameters))

    def create_voters_key_pairs(self, number: int, parameters: Parameters) -> List[VoterKeyPairs]:
        """Crée pour chaque votant une paire de clés de trappe et une paire de signature"""
        if number < 0:
            raise PreconditionError("Nombre de votants négatif: %d" % number)

        logger.info("Création des clés de %d votants", number)

        trapdoor = self._create_key_pairs("Création des clés de trappe", number, parameters)
        signing = self._create_key_pairs("Création des clés de signature", number, parameters)

        return [VoterKeyPairs(t, s) for t, s in zip(trapdoor, signing)]

    # Numéros de suivi

    def create_tracker_numbers(self, parameters: Parameters, key_pair: KeyPair, number: int) -> List[TrackerNumber]:
        """
        Crée des numéros de suivi distincts, les projette dans le groupe (g^n) et les chiffre

        Args:
            parameters: Les paramètres de l'élection
            key_pair: La clé de l'élection
            number: Le nombre de numéros de suivi

        Returns:
            List[TrackerNumber]: Les numéros dans l'ordre de tirage
        """
        available = TRACKER_NUMBER_MAX - TRACKER_NUMBER_MIN + 1
        if not 0 <= number <= available:
            raise PreconditionError("Nombre de numéros de suivi invalide: %d" % number)

        logger.info("Création de %d numéros de suivi", number)

        # Unicité avant chiffrement
        values = []
        seen = set()
        while len(values) < number:
            value = self.rng.randint(TRACKER_NUMBER_MIN, TRACKER_NUMBER_MAX)
            if value not in seen:
                seen.add(value)
                values.append(value)

        in_group = [pow(parameters.g, value, parameters.p) for value in values]

        encrypted = self._run_parallel(
            "Création des numéros de suivi", number,
            lambda i: self.encryption.encrypt(parameters, key_pair, in_group[i])[0].to_bytes())

        return [TrackerNumber(values[i], in_group[i], encrypted[i]) for i in range(number)]

    def shuffle_tracker_numbers(self, parameters: Parameters, teller: Optional[int],
                                tracker_numbers: List[TrackerNumber]) -> ProofWrapper:
        """
        Mélange les numéros de suivi chiffrés pour rompre le lien avec leur valeur

        Seuls les chiffrés sont conservés. Sans tellers, le mélange local ne
        rechiffre pas et la preuve est vide.
        """
        uses_tellers = self._uses_tellers(parameters, teller)
        cipher_texts = [CipherText.from_bytes(t.encrypted_tracker_number_in_group) for t in tracker_numbers]

        with self._step("Mélange des numéros de suivi"):
            if uses_tellers:
                result = self._call_mixnet("shuffle", parameters, teller, 1, cipher_texts)
                shuffled, proof = result.items, result.proof

                if len(shuffled) != len(cipher_texts):
                    raise MixnetError(
                        f"Nombre de numéros de suivi mélangés incorrect: {len(shuffled)} vs. {len(cipher_texts)}")
            else:
                shuffled = list(cipher_texts)
                self.rng.shuffle(shuffled)
                proof = b""

        return ProofWrapper([TrackerNumber(None, None, c.to_bytes()) for c in shuffled], proof)

    def decrypt_tracker_number(self, parameters: Parameters, alpha: int, beta: int, public_key: int,
                               voters_key_pairs: List[VoterKeyPairs],
                               tracker_numbers: List[TrackerNumber]) -> TrackerNumber:
        """
        Retrouve le numéro de suivi d'un votant à partir de ses engagements (alpha, beta)

        Raises:
            LinkageError: Si la clé du votant ou le numéro de suivi est introuvable
        """
        key_pair = next((pairs.trapdoor_key_pair for pairs in voters_key_pairs
                         if pairs is not None and pairs.trapdoor_key_pair is not None
                         and pairs.trapdoor_key_pair.public_key == public_key), None)

        if key_pair is None:
            raise LinkageError(f"Clé du votant introuvable pour la clé publique {public_key}")

        in_group = self.encryption.decrypt(parameters, key_pair, CipherText(alpha, beta))

        tracker_number = next((t for t in tracker_numbers if t.tracker_number_in_group == in_group), None)
        if tracker_number is None:
            raise LinkageError(f"Numéro de suivi introuvable pour l'élément {in_group}")

        return tracker_number

    # Options de vote

    def map_vote_options(self, parameters: Parameters, vote_options: List[VoteOption]) -> List[VoteOption]:
        """
        Associe à chaque option de vote un élément du groupe g^x distinct

        Les encodages déjà attribués sont conservés et doivent être uniques.
        """
        assigned = [o.option_number_in_group for o in vote_options if o.option_number_in_group is not None]
        used = set(assigned)

        if len(used) != len(assigned):
            raise UniquenessError("Les encodages d'options de vote déjà attribués ne sont pas uniques")

        missing = len(vote_options) - len(assigned)
        if missing > parameters.q - 2 - len(used):
            raise PreconditionError("Groupe trop petit pour %d options de vote" % len(vote_options))

        mapped = []

        with self._step("Encodage des options de vote"):
            for i, option in enumerate(vote_options):
                if option.option_number_in_group is None:
                    while True:
                        x = generate_random(self.rng, parameters.q)
                        element = pow(parameters.g, x, parameters.p)
                        if element not in used:
                            break

                    used.add(element)
                    option = replace(option, option_number_in_group=element)

                mapped.append(option)
                self.progress.update(100 * (i + 1) / len(vote_options))

        return mapped

    # Engagements

    def create_commitment(self, parameters: Parameters, key_pair: KeyPair, voter_public_key: int,
                          r: int) -> Tuple[Commitment, int, int]:
        """
        Crée l'engagement d'un teller pour un votant

        b = h^r et a = g^r (h étant la clé publique de trappe du votant),
        chacun chiffré sous la clé de l'élection.

        Returns:
            Tuple[Commitment, int, int]: L'engagement, l'aléa du chiffrement de g^r
            et celui du chiffrement de h^r
        """
        p = parameters.p

        b = pow(voter_public_key, r, p)
        a = pow(parameters.g, r, p)

        encrypted_h, secret_h = self.encryption.encrypt(parameters, key_pair, b)
        encrypted_g, secret_g = self.encryption.encrypt(parameters, key_pair, a)

        commitment = Commitment(voter_public_key, b, a, encrypted_h.to_bytes(), encrypted_g.to_bytes())
        return commitment, secret_g, secret_h

    def create_commitment_proof(self, parameters: Parameters, key_pair: KeyPair, voter_public_key: int,
                                r: int, commitment: Commitment, secret_g: int, secret_h: int) -> CommitmentProof:
        """
        Construit les neuf sous-preuves d'un engagement

        Toutes dérivent du témoin r et d'un unique facteur d'aveuglement t :

        - pi11, pi12 : les alpha de E(g^r) et E(h^r) ont été formés avec leur aléa
        - pi21, pi22, pi23 : (A1', A2') et (B1', B2') sont ces chiffrés élevés à la même puissance t
        - pi31, pi32 : lien entre les chiffrés élevés à t et C = a^t, D = b^t par la clé de l'élection
        - pi4, pi5 : C et D sont formés avec r·t sous g et sous la clé du votant
        """
        p, q, g = parameters.p, parameters.q, parameters.g

        cipher_g = CipherText.from_bytes(commitment.encrypted_g)
        cipher_h = CipherText.from_bytes(commitment.encrypted_h)

        pi11 = self.schnorr.generate_proof(parameters, secret_g, Statement(g, cipher_g.alpha))
        pi12 = self.schnorr.generate_proof(parameters, secret_h, Statement(g, cipher_h.alpha))

        t = generate_random(self.rng, q)

        a1_dash = pow(cipher_g.alpha, t, p)
        a2_dash = pow(cipher_g.beta, t, p)
        b1_dash = pow(cipher_h.alpha, t, p)
        b2_dash = pow(cipher_h.beta, t, p)

        pi21 = self.chaum_pedersen.generate_proof(parameters, t, Statement(cipher_g.alpha, a1_dash),
                                                  Statement(cipher_g.beta, a2_dash))
        pi22 = self.chaum_pedersen.generate_proof(parameters, t, Statement(cipher_h.alpha, b1_dash),
                                                  Statement(cipher_h.beta, b2_dash))
        pi23 = self.chaum_pedersen.generate_proof(parameters, t, Statement(cipher_g.alpha, a1_dash),
                                                  Statement(cipher_h.alpha, b1_dash))

        c = pow(commitment.g, t, p)
        d = pow(commitment.h, t, p)

        pi31 = self.chaum_pedersen.generate_proof(parameters, (secret_g * t) % q, Statement(g, a1_dash),
                                                  Statement(key_pair.public_key, (a2_dash * mod_inv(c, p)) % p))
        pi32 = self.chaum_pedersen.generate_proof(parameters, (secret_h * t) % q, Statement(g, b1_dash),
                                                  Statement(key_pair.public_key, (b2_dash * mod_inv(d, p)) % p))

        rt = (r * t) % q
        pi4 = self.chaum_pedersen.generate_proof(parameters, rt, Statement(g, c), Statement(voter_public_key, d))
        pi5 = self.schnorr.generate_proof(parameters, rt, Statement(g, c))

        return CommitmentProof(a1_dash, a2_dash, b1_dash, b2_dash, c, d,
                               pi11, pi12, pi21, pi22, pi23, pi31, pi32, pi4, pi5)

    def verify_commitment_proof(self, parameters: Parameters, key_pair: KeyPair, voter_public_key: int,
                                commitment: Commitment, proof: CommitmentProof) -> bool:
        """Vérifie les neuf sous-preuves : l'engagement n'est valide que si toutes le sont"""
        p, g = parameters.p, parameters.g

        if proof.c % p == 0 or proof.d % p == 0:
            return False

        try:
            cipher_g = CipherText.from_bytes(commitment.encrypted_g)
            cipher_h = CipherText.from_bytes(commitment.encrypted_h)
        except CryptographyError:
            logger.warning("Engagement chiffré illisible")
            return False

        schnorr = self.schnorr.verify_proof
        chaum_pedersen = self.chaum_pedersen.verify_proof

        results = [
            schnorr(parameters, proof.pi11, Statement(g, cipher_g.alpha)),
            schnorr(parameters, proof.pi12, Statement(g, cipher_h.alpha)),
            chaum_pedersen(parameters, proof.pi21, Statement(cipher_g.alpha, proof.a1_dash),
                           Statement(cipher_g.beta, proof.a2_dash)),
            chaum_pedersen(parameters, proof.pi22, Statement(cipher_h.alpha, proof.b1_dash),
                           Statement(cipher_h.beta, proof.b2_dash)),
            chaum_pedersen(parameters, proof.pi23, Statement(cipher_g.alpha, proof.a1_dash),
                           Statement(cipher_h.alpha, proof.b1_dash)),
            chaum_pedersen(parameters, proof.pi31, Statement(g, proof.a1_dash),
                           Statement(key_pair.public_key, (proof.a2_dash * mod_inv(proof.c, p)) % p)),
            chaum_pedersen(parameters, proof.pi32, Statement(g, proof.b1_dash),
                           Statement(key_pair.public_key, (proof.b2_dash * mod_inv(proof.d, p)) % p)),
            chaum_pedersen(parameters, proof.pi4, Statement(g, proof.c), Statement(voter_public_key, proof.d)),
            schnorr(parameters, proof.pi5, Statement(g, proof.c)),
        ]

        return all(results)

    def create_commitments(self, parameters: Parameters, key_pair: KeyPair,
                           voters_key_pairs: List[VoterKeyPairs],
                           tracker_numbers: List[TrackerNumber]) -> ProofWrapper:
        """
        Crée l'engagement de ce teller et sa preuve pour chaque votant

        Les clés des votants et les numéros de suivi sont supposés dans le
        même ordre. Chaque preuve est vérifiée avant d'être acceptée.

        Returns:
            ProofWrapper: Les engagements et, en preuve, la liste des CommitmentProof
        """
        if len(voters_key_pairs) != len(tracker_numbers):
            raise PreconditionError(
                f"Nombre de clés de votants et de numéros de suivi différent: "
                f"{len(voters_key_pairs)} vs. {len(tracker_numbers)}")

        logger.info("Création de %d engagements", len(voters_key_pairs))

        def task(i):
            voter_key_pairs = voters_key_pairs[i]
            if voter_key_pairs is None or voter_key_pairs.trapdoor_key_pair is None:
                raise LinkageError(f"Clé de trappe manquante pour le votant {i}")

            voter_public_key = voter_key_pairs.trapdoor_key_pair.public_key
            r = generate_random(self.rng, parameters.q)

            commitment, secret_g, secret_h = self.create_commitment(parameters, key_pair, voter_public_key, r)
            proof = self.create_commitment_proof(parameters, key_pair, voter_public_key, r, commitment,
                                                 secret_g, secret_h)

            if not self.verify_commitment_proof(parameters, key_pair, voter_public_key, commitment, proof):
                logger.error("Preuve d'engagement invalide pour le votant %d", i)
                raise ProofVerificationError(f"Impossible de vérifier la preuve d'engagement du votant {i}")

            return commitment, proof

        results = self._run_parallel("Création des engagements", len(voters_key_pairs), task)

        return ProofWrapper([commitment for commitment, _ in results], [proof for _, proof in results])

    def _teller_commitments(self, public_keys: List[Optional[int]], commitments: List[List[Commitment]],
                            i: int) -> List[Commitment]:
        """Engagements de tous les tellers pour le votant i, après contrôle de sa clé publique"""
        public_key = public_keys[i]
        found = []

        for teller_commitments in commitments:
            commitment = teller_commitments[i]
            if public_key is None or public_key != commitment.public_key:
                raise LinkageError(
                    f"La clé de trappe du votant {i} (absente: {public_key is None}) "
                    f"ne correspond pas à la clé de l'engagement")
            found.append(commitment)

        return found

    @staticmethod
    def _check_commitments_size(number: int, commitments: List[List[Commitment]]) -> None:
        for teller_commitments in commitments:
            if len(teller_commitments) != number:
                raise PreconditionError(
                    f"Nombre de votants et d'engagements différent: {number} vs. {len(teller_commitments)}")

    def decrypt_commitments(self, parameters: Parameters, key_pair: KeyPair, teller: Optional[int],
                            voters_key_pairs: List[VoterKeyPairs], tracker_numbers: List[TrackerNumber],
                            commitments: List[List[Commitment]]) -> ProofWrapper:
        """
        Calcule la part beta de chaque votant : déchiffrement du produit des
        E(h^r) de tous les tellers et du numéro de suivi chiffré

        Les listes sont supposées dans le même ordre, la clé publique de
        chaque engagement est contrôlée.

        Returns:
            ProofWrapper: Les nouveaux votants (clés, numéro de suivi, beta) et la preuve de déchiffrement
        """
        if len(voters_key_pairs) != len(tracker_numbers):
            raise PreconditionError(
                f"Nombre de clés de votants et de numéros de suivi différent: "
                f"{len(voters_key_pairs)} vs. {len(tracker_numbers)}")
        self._check_commitments_size(len(voters_key_pairs), commitments)

        uses_tellers = self._uses_tellers(parameters, teller)
        number = len(voters_key_pairs)
        public_keys = [pairs.trapdoor_key_pair.public_key
                       if pairs is not None and pairs.trapdoor_key_pair is not None else None
                       for pairs in voters_key_pairs]

        combined = []
        with self._step("Combinaison des engagements"):
            for i in range(number):
                product = CipherText(1, 1)

                for commitment in self._teller_commitments(public_keys, commitments, i):
                    product = product.multiply(CipherText.from_bytes(commitment.encrypted_h), parameters.p)

                tracker_cipher_text = CipherText.from_bytes(tracker_numbers[i].encrypted_tracker_number_in_group)
                combined.append(product.multiply(tracker_cipher_text, parameters.p))
                self.progress.update(100 * (i + 1) / number)

        with self._step("Déchiffrement des engagements"):
            if uses_tellers:
                result = self._call_mixnet("decrypt", parameters, teller, 1, combined)
                decrypted, proof = result.items, result.proof

                if len(decrypted) != number:
                    raise MixnetError(f"Nombre d'éléments déchiffrés incorrect: {len(decrypted)} vs. {number}")
            else:
                decrypted = []
                for i, cipher_text in enumerate(combined):
                    decrypted.append(self.encryption.decrypt(parameters, key_pair, cipher_text))
                    self.progress.update(100 * (i + 1) / number)
                proof = b""

        voters = [Voter(voter_key_pairs=voters_key_pairs[i], tracker_number=tracker_numbers[i], beta=decrypted[i])
                  for i in range(number)]

        return ProofWrapper(voters, proof)

    def complete_commitments(self, parameters: Parameters, voters: List[Voter],
                             commitments: List[List[Commitment]]) -> List[Voter]:
        """
        Calcule la part alpha de chaque votant : produit des g^r de tous les tellers mod p

        Les engagements sont appariés aux votants par position, avec contrôle
        de la clé publique de trappe.
        """
        self._check_commitments_size(len(voters), commitments)

        public_keys = [voter.trapdoor_public_key for voter in voters]
        completed = []

        with self._step("Finalisation des engagements"):
            for i, voter in enumerate(voters):
                teller_commitments = self._teller_commitments(public_keys, commitments, i)
                alpha = product_mod((commitment.g for commitment in teller_commitments), parameters.p)

                completed.append(voter.update(alpha=alpha))
                self.progress.update(100 * (i + 1) / len(voters))

        return completed

    # Association

    def associate_voters(self, source: List[Voter], destination: List[Voter]) -> List[Voter]:
        """
        Reporte les identifiants des votants source sur les votants destination

        Les votants source ayant une clé de trappe sont associés par clé, les
        autres prennent, dans l'ordre, les votants destination encore sans identifiant.
        """
        if len(source) != len(destination):
            raise PreconditionError(
                f"Nombre de votants source et destination différent: {len(source)} vs. {len(destination)}")

        ids = [voter.id for voter in destination]
        destination_keys = [voter.trapdoor_public_key for voter in destination]

        with self._step("Association des votants par clé"):
            for i, voter in enumerate(source):
                public_key = voter.trapdoor_public_key

                if public_key is not None and public_key in destination_keys:
                    ids[destination_keys.index(public_key)] = voter.id

                self.progress.update(100 * (i + 1) / len(source))

        with self._step("Association des votants"):
            last = 0
            for i, voter in enumerate(source):
                if voter.trapdoor_public_key is None:
                    j = last
                    while j < len(ids) and ids[j] is not None:
                        j += 1

                    if j < len(ids):
                        ids[j] = voter.id
                        last = j + 1

                self.progress.update(100 * (i + 1) / len(source))

        return [voter.update(id=ids[j]) for j, voter in enumerate(destination)]

    # Chiffrement des votes

    def create_encrypt_proof(self, parameters: Parameters, key_pair: KeyPair, plain_text: int,
                             cipher_text: CipherText, signature_key_pair: KeyPair, signature: bytes,
                             secret: int) -> EncryptProof:
        """
        Preuve que le chiffré signé (c1, c2) chiffre bien plain_text avec l'aléa secret

        Args:
            parameters: Les paramètres de l'élection
            key_pair: La clé de l'élection
            plain_text: L'élément du groupe chiffré
            cipher_text: Le chiffré
            signature_key_pair: La paire de signature du votant
            signature: La signature du chiffré
            secret: L'aléa du chiffrement

        Returns:
            EncryptProof: (cR1, cR2, c1Bar, c2Bar) et la signature
        """
        p, q, g = parameters.p, parameters.q, parameters.g
        public_key = key_pair.public_key

        # Message aléatoire dans le groupe et exposant aléatoire
        random_message = pow(g, generate_random(self.rng, q), p)
        random_exponent = generate_random(self.rng, q)

        c1_r = pow(g, random_exponent, p)
        c2_r = (pow(public_key, random_exponent, p) * random_message) % p

        c = hash_values(q.bit_length(), cipher_text.alpha, cipher_text.beta, c1_r, c2_r,
                        signature_key_pair.public_key, p, q)

        m_bar = (pow(plain_text, c, p) * random_message) % p
        k_bar = (secret * c + random_exponent) % q

        c1_bar = pow(g, k_bar, p)
        c2_bar = (pow(public_key, k_bar, p) * m_bar) % p

        return EncryptProof(c1_r, c2_r, c1_bar, c2_bar, signature)

    def verify_encrypt_proof(self, parameters: Parameters, key_pair: KeyPair, encrypted: bytes,
                             signature_key_pair: KeyPair, proof: EncryptProof) -> bool:
        """Vérifie la preuve de chiffrement et la signature du chiffré"""
        p, q = parameters.p, parameters.q
        cipher_text = CipherText.from_bytes(encrypted)

        c = hash_values(q.bit_length(), cipher_text.alpha, cipher_text.beta, proof.c1_r, proof.c2_r,
                        signature_key_pair.public_key, p, q)

        results = [
            proof.c1_bar == (pow(cipher_text.alpha, c, p) * proof.c1_r) % p,
            proof.c2_bar == (pow(cipher_text.beta, c, p) * proof.c2_r) % p,
            self.signature.verify(parameters, signature_key_pair, encrypted, proof.encrypted_vote_signature),
        ]

        return all(results)

    def _encrypt_vote(self, parameters: Parameters, key_pair: KeyPair, voters_key_pairs: List[VoterKeyPairs],
                      vote_options: List[VoteOption], encrypt_proofs: List[EncryptProof], i: int, voter: Voter):
        encrypted_vote = voter.encrypted_vote or None
        signature = voter.encrypted_vote_signature or None
        proof = None

        if signature is not None:
            proof = next((p for p in encrypt_proofs
                          if p is not None and p.encrypted_vote_signature == signature), None)

        if encrypted_vote is not None:
            if signature is None or proof is None:
                raise LinkageError(f"Signature ou preuve manquante pour le vote chiffré du votant {voter.id}")
            return encrypted_vote, signature, proof

        # Les votes blancs ne sont ni chiffrés ni signés
        if voter.plain_text_vote is None or not voter.plain_text_vote.strip():
            return None, None, None

        signature_public_key = voter.signature_public_key
        if signature_public_key is None:
            raise LinkageError(f"Clé de signature manquante pour le votant {voter.id}")

        signature_key_pair = next((pairs.signature_key_pair for pairs in voters_key_pairs
                                   if pairs is not None and pairs.signature_key_pair is not None
                                   and pairs.signature_key_pair.public_key == signature_public_key), None)

        if signature_key_pair is None or signature_key_pair.private_key is None:
            raise LinkageError(f"Clé privée de signature introuvable pour le votant {voter.id}")

        vote_option = next((o for o in vote_options if o.option == voter.plain_text_vote), None)
        if vote_option is None or vote_option.option_number_in_group is None:
            raise LinkageError(
                f"Le vote du votant {voter.id} ne correspond à aucune option: {voter.plain_text_vote}")

        cipher_text, secret = self.encryption.encrypt(parameters, key_pair, vote_option.option_number_in_group)
        encrypted_vote = cipher_text.to_bytes()
        signature = self.signature.sign(parameters, signature_key_pair, encrypted_vote)

        proof = self.create_encrypt_proof(parameters, key_pair, vote_option.option_number_in_group, cipher_text,
                                          signature_key_pair, signature, secret)

        if not self.verify_encrypt_proof(parameters, key_pair, encrypted_vote, signature_key_pair, proof):
            logger.error("Preuve de chiffrement invalide pour le votant %d", i)
            raise ProofVerificationError(f"Impossible de vérifier la preuve de chiffrement du votant {i}")

        return encrypted_vote, signature, proof

    def encrypt_votes(self, parameters: Parameters, key_pair: KeyPair, voters_key_pairs: List[VoterKeyPairs],
                      vote_options: List[VoteOption], voters: List[Voter],
                      encrypt_proofs: List[EncryptProof] = None) -> ProofWrapper:
        """
        Chiffre, signe et prouve le vote de chaque votant

        Les votes blancs sont ignorés. Un vote déjà chiffré est conservé tel
        quel s'il est accompagné de sa preuve (retrouvée par sa signature).
        Les votes chiffrés doivent être uniques.

        Returns:
            ProofWrapper: Les nouveaux votants et, en preuve, la liste des EncryptProof
        """
        if len(voters_key_pairs) < len(voters):
            raise PreconditionError(
                f"Nombre de clés de votants insuffisant: {len(voters_key_pairs)} vs. {len(voters)}")

        encrypt_proofs = encrypt_proofs or []
        logger.info("Chiffrement de %d votes", len(voters))

        results = self._run_parallel(
            "Chiffrement des votes", len(voters),
            lambda i: self._encrypt_vote(parameters, key_pair, voters_key_pairs, vote_options, encrypt_proofs,
                                         i, voters[i]))

        updated = []
        proofs = []
        encrypted_votes = set()

        for voter, (encrypted_vote, signature, proof) in zip(voters, results):
            if encrypted_vote is not None:
                encrypted_votes.add(encrypted_vote)
                proofs.append(proof)
                voter = voter.update(encrypted_vote=encrypted_vote, encrypted_vote_signature=signature)

            updated.append(voter)

        if len(encrypted_votes) != len(proofs):
            logger.error("Votes chiffrés en double: %d uniques pour %d votes", len(encrypted_votes), len(proofs))
            raise UniquenessError("Votes chiffrés en double")

        return ProofWrapper(updated, proofs)

    # Mélange

    def mix_votes(self, parameters: Parameters, key_pair: KeyPair, teller: Optional[int],
                  tracker_numbers: List[TrackerNumber], vote_options: List[VoteOption],
                  voters: List[Voter]) -> ProofWrapper:
        """
        Mélange les couples (numéro de suivi chiffré, vote chiffré) puis les déchiffre

        Seuls les votants ayant les deux chiffrés sont mélangés. Le résultat
        associe chaque numéro de suivi à l'option de vote en clair.
        """
        if len(tracker_numbers) < len(voters):
            raise PreconditionError(
                f"Nombre de numéros de suivi insuffisant: {len(tracker_numbers)} vs. {len(voters)}")

        uses_tellers = self._uses_tellers(parameters, teller)

        pairs = []
        for voter in voters:
            encrypted_tracker_number = voter.tracker_number.encrypted_tracker_number_in_group \
                if voter.tracker_number is not None else None

            if encrypted_tracker_number and voter.encrypted_vote:
                pairs.append((CipherText.from_bytes(encrypted_tracker_number),
                              CipherText.from_bytes(voter.encrypted_vote)))

        logger.info("Mélange de %d votes", len(pairs))

        with self._step("Mélange des votes"):
            if uses_tellers:
                # Le tracker et le vote restent adjacents (largeur 2)
                flat = [cipher_text for pair in pairs for cipher_text in pair]
                result = self._call_mixnet("mix", parameters, teller, 2, flat)

                if len(result.items) != len(flat):
                    raise MixnetError(f"Nombre d'éléments mélangés incorrect: {len(result.items)} vs. {len(flat)}")

                plain_texts = list(zip(result.items[0::2], result.items[1::2]))
                proof = result.proof
            else:
                # Mélange local sans rechiffrement
                self.rng.shuffle(pairs)
                plain_texts = [(self.encryption.decrypt(parameters, key_pair, tracker),
                                self.encryption.decrypt(parameters, key_pair, vote)) for tracker, vote in pairs]
                proof = b""

        trackers = {t.tracker_number_in_group: t for t in tracker_numbers if t.tracker_number_in_group is not None}
        options = {o.option_number_in_group: o for o in vote_options if o.option_number_in_group is not None}

        mixed = []
        for tracker_in_group, option_in_group in plain_texts:
            tracker_number = trackers.get(tracker_in_group)
            if tracker_number is None:
                raise LinkageError(f"Numéro de suivi introuvable pour l'élément {tracker_in_group}")

            vote_option = options.get(option_in_group)
            if vote_option is None:
                raise LinkageError(f"Option de vote introuvable pour l'élément {option_in_group}")

            mixed.append(Voter(tracker_number=tracker_number, plain_text_vote=vote_option.option))

        return ProofWrapper(mixed, proof)
