from dataclasses import dataclass, field
from typing import Dict

from ve_ledger.utils.contract import Contract, entry_point
from ve_ledger.utils.errors import as_nat, verify


class FA12_Error:
    def make(s):
        return "FA1.2_" + s

    NotAdmin = make("NotAdmin")
    NotEnoughBalance = make("NotEnoughBalance")
    UnsafeAllowanceChange = make("UnsafeAllowanceChange")
    NotEnoughAllowance = make("NotEnoughAllowance")
    MaxSupplyMinted = make("MaxSupplyMinted")


@dataclass
class Account:
    balance: int = 0
    approvals: Dict[str, int] = field(default_factory=dict)


class FA12_core(Contract):
    def __init__(self, **extra_storage):
        self.init(
            balances={},
            total_supply=0,
            mint_admins=set(),
            **extra_storage,
        )

    @entry_point
    def transfer(self, from_, to_, value, *, sender):
        verify(
            (from_ == sender) or (self._account(from_).approvals.get(sender, 0) >= value),
            FA12_Error.NotEnoughAllowance,
        )

        source = self._account(from_)
        verify(source.balance >= value, FA12_Error.NotEnoughBalance)
        source.balance = as_nat(source.balance - value)
        self._account(to_).balance += value

        if from_ != sender:
            source.approvals[sender] = as_nat(source.approvals[sender] - value)

        self.emit("Transfer", from_=from_, to_=to_, value=value)

    @entry_point
    def approve(self, spender, value, *, sender):
        already_approved = self._account(sender).approvals.get(spender, 0)
        verify((already_approved == 0) or (value == 0), FA12_Error.UnsafeAllowanceChange)
        self._account(sender).approvals[spender] = value

    def _account(self, address):
        if address not in self.data.balances:
            self.data.balances[address] = Account()
        return self.data.balances[address]

    def get_balance(self, address):
        account = self.data.balances.get(address)
        return account.balance if account is not None else 0

    def get_allowance(self, owner, spender):
        account = self.data.balances.get(owner)
        return account.approvals.get(spender, 0) if account is not None else 0

    def get_total_supply(self):
        return self.data.total_supply


class FA12_mint(FA12_core):
    @entry_point
    def mint(self, address, value, *, sender):
        verify(self.is_administrator(sender) or (sender in self.data.mint_admins), FA12_Error.NotAdmin)

        # Optional minting limit
        if self.data.max_supply is not None:
            verify(self.data.total_supply + value <= self.data.max_supply, FA12_Error.MaxSupplyMinted)

        self._account(address).balance += value
        self.data.total_supply += value


class FA12_administrator(FA12_core):
    def is_administrator(self, sender):
        return sender == self.data.administrator

    @entry_point
    def set_administrator(self, address, *, sender):
        verify(self.is_administrator(sender), FA12_Error.NotAdmin)

        self.data.administrator = address

    @entry_point
    def add_mint_admin(self, address, *, sender):
        verify(self.is_administrator(sender), FA12_Error.NotAdmin)

        self.data.mint_admins.add(address)

    @entry_point
    def remove_mint_admin(self, address, *, sender):
        verify(self.is_administrator(sender), FA12_Error.NotAdmin)

        self.data.mint_admins.discard(address)


class FA12(FA12_mint, FA12_administrator, FA12_core):
    def __init__(self, admin, symbol="TOKEN", max_supply=None, **extra_storage):
        FA12_core.__init__(self, administrator=admin, symbol=symbol, max_supply=max_supply, **extra_storage)
