import random

import pytest

from vmv.config import PARAM_G, PARAM_P, PARAM_Q
from vmv.models import Parameters
from vmv.selene import SeleneEngine


@pytest.fixture
def rng():
    return random.Random(578)


@pytest.fixture
def small_parameters():
    """Petit groupe d'ordre 11 dans Z_23*"""
    return Parameters.from_group(23, 11, 4, name="test")


@pytest.fixture
def parameters():
    """Groupe RFC 5114 2048/256"""
    return Parameters.from_group(PARAM_P, PARAM_Q, PARAM_G, name="test")


@pytest.fixture
def engine(rng):
    return SeleneEngine(rng=rng, max_workers=4)


@pytest.fixture
def election_key_pair(engine, parameters):
    return engine.create_election_key_pair(parameters)
