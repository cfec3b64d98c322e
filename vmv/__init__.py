from .config import ElectionOptions
from .exceptions import (
    CryptographyError, LinkageError, MixnetError, PreconditionError,
    ProofVerificationError, UniquenessError,
)
from .mixnet import HttpMixnetService, MixnetService
from .progress import LoggingProgressListener, ProgressListener
from .selene import SeleneEngine
