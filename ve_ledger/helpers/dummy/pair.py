# Dummy contract to mimic the LP token and fee vault of an AMM pool

from ve_ledger.fa12 import FA12
from ve_ledger.utils.contract import entry_point
from ve_ledger.utils.token import transfer_FA12


class Pair(FA12):
    def __init__(self, admin, token0, token1):
        FA12.__init__(self, admin, symbol="LP", token0=token0, token1=token1, claimable={})

    def tokens(self):
        return self.data.token0, self.data.token1

    # Stand-in for swap fees being credited to a fee recipient
    @entry_point
    def accrue_fees(self, recipient, amount0, amount1, *, sender):
        transfer_FA12(self, self.data.token0, sender, self.address, amount0)
        transfer_FA12(self, self.data.token1, sender, self.address, amount1)

        claimed0, claimed1 = self.data.claimable.get(recipient, (0, 0))
        self.data.claimable[recipient] = (claimed0 + amount0, claimed1 + amount1)

    @entry_point
    def claim_fees(self, *, sender):
        claimed0, claimed1 = self.data.claimable.pop(sender, (0, 0))

        transfer_FA12(self, self.data.token0, self.address, sender, claimed0)
        transfer_FA12(self, self.data.token1, self.address, sender, claimed1)

        return claimed0, claimed1
