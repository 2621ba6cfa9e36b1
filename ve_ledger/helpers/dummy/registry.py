# Dummy contract to mimic the pool factory's pool and token whitelist reads

import ve_ledger.utils.errors as Errors
from ve_ledger.utils.contract import Contract, entry_point
from ve_ledger.utils.errors import verify


class PoolRegistry(Contract):
    def __init__(self, admin, pairs=(), whitelist=()):
        self.init(admin=admin, pairs=set(pairs), whitelist=set(whitelist))

    @entry_point
    def add_pair(self, pair, *, sender):
        verify(sender == self.data.admin, Errors.NOT_AUTHORISED)
        self.data.pairs.add(pair)

    @entry_point
    def whitelist(self, token, *, sender):
        verify(sender == self.data.admin, Errors.NOT_AUTHORISED)
        self.data.whitelist.add(token)

    def is_pair(self, address):
        return address in self.data.pairs

    def is_whitelisted(self, token):
        return token in self.data.whitelist
