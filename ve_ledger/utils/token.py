import ve_ledger.utils.errors as Errors
from ve_ledger.fa12 import FA12_core
from ve_ledger.utils.errors import verify


def _token_at(contract, token_address):
    token = contract.contract_at(token_address)
    verify(isinstance(token, FA12_core), Errors.NOT_A_TOKEN)
    return token


def transfer_FA12(contract, token_address, from_, to_, value):
    # Moves are made on behalf of ``contract``. Pulls need an allowance from ``from_``
    if value > 0:
        _token_at(contract, token_address).transfer(from_=from_, to_=to_, value=value, sender=contract.address)


def approve_FA12(contract, token_address, spender, value):
    _token_at(contract, token_address).approve(spender=spender, value=value, sender=contract.address)


def get_balance(contract, token_address, owner=None):
    return _token_at(contract, token_address).get_balance(owner or contract.address)
