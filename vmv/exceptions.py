class CryptographyError(Exception):
    """Erreur levée lorsqu'une opération cryptographique ne peut pas aboutir"""
    pass


class PreconditionError(CryptographyError):
    """Arguments incohérents détectés avant tout calcul (tailles, numéro de teller, clés manquantes)"""
    pass


class LinkageError(CryptographyError):
    """Un votant, une clé, un numéro de suivi ou une option de vote est introuvable"""
    pass


class ProofVerificationError(CryptographyError):
    """Une preuve fraîchement générée ne se vérifie pas"""
    pass


class UniquenessError(CryptographyError):
    """Des valeurs qui doivent être uniques sont dupliquées"""
    pass


class MixnetError(CryptographyError):
    """Échec du service de mixnet externe"""
    pass
