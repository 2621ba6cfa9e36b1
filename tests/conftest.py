import os
from datetime import timedelta

import pytest
from hypothesis import settings

from ve_ledger import FA12, Chain, VoteEscrow, Voter
from ve_ledger.helpers import addresses as Addresses
from ve_ledger.helpers.dummy.pair import Pair
from ve_ledger.helpers.dummy.registry import PoolRegistry

settings.register_profile("default", deadline=timedelta(seconds=1000))
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

MAX_UINT = 2 ** 256 - 1


@pytest.fixture
def chain():
    return Chain(now=0)


@pytest.fixture
def fund():
    # Mints value to owner and, if given, grants spender an unlimited allowance
    def _fund(token, owner, value, spender=None):
        token.mint(owner, value, sender=Addresses.ADMIN)
        if spender is not None:
            spender = getattr(spender, "address", spender)
            if token.get_allowance(owner, spender) == 0:
                token.approve(spender, MAX_UINT, sender=owner)

    return _fund


@pytest.fixture
def ply(chain):
    token = FA12(admin=Addresses.ADMIN, symbol="PLY")
    chain += token
    return token


@pytest.fixture
def token_a(chain):
    token = FA12(admin=Addresses.ADMIN, symbol="TKA")
    chain += token
    return token


@pytest.fixture
def token_b(chain):
    token = FA12(admin=Addresses.ADMIN, symbol="TKB")
    chain += token
    return token


@pytest.fixture
def ve(chain, ply):
    return chain.originate(VoteEscrow(base_token=ply.address))


@pytest.fixture
def registry(chain):
    return chain.originate(PoolRegistry(admin=Addresses.ADMIN))


@pytest.fixture
def voter(chain, ve, ply, registry):
    voter = chain.originate(
        Voter(ve=ve.address, base_token=ply.address, registry=registry.address, governor=Addresses.GOVERNOR)
    )
    ve.set_voter(voter.address, sender=Addresses.ADMIN)
    return voter


@pytest.fixture
def pair(chain, registry, token_a, token_b):
    pair = chain.originate(Pair(admin=Addresses.ADMIN, token0=token_a.address, token1=token_b.address))
    registry.add_pair(pair.address, sender=Addresses.ADMIN)
    registry.whitelist(token_a.address, sender=Addresses.ADMIN)
    registry.whitelist(token_b.address, sender=Addresses.ADMIN)
    return pair


@pytest.fixture
def gauge(chain, voter, pair):
    return chain.contract_at(voter.create_gauge(pair.address, sender=Addresses.ALICE))


@pytest.fixture
def internal_bribe(chain, voter, gauge):
    return chain.contract_at(voter.internal_bribe_of(gauge.address))


@pytest.fixture
def external_bribe(chain, voter, gauge):
    return chain.contract_at(voter.external_bribe_of(gauge.address))

