import functools
from types import SimpleNamespace

import ve_ledger.utils.errors as Errors
from ve_ledger.utils.errors import verify


class Contract:
    chain = None
    address = None
    _entered = False

    def init(self, **storage):
        self.data = SimpleNamespace(**storage)

    # Hook run once the contract has an address and a chain
    def originated(self):
        pass

    @property
    def now(self):
        return self.chain.now

    def contract_at(self, address):
        return self.chain.contract_at(address)

    def emit(self, name, **fields):
        self.chain.emit(self, name, **fields)


def entry_point(method):
    """State mutating call. Atomic across every contract it reaches and not re-entrant."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self.chain is None:
            raise RuntimeError(f"{type(self).__name__} has not been originated")
        verify(not self._entered, Errors.REENTRANT_CALL)
        with self.chain.atomic():
            self.chain.touch(self)
            self._entered = True
            try:
                return method(self, *args, **kwargs)
            finally:
                self._entered = False

    return wrapper
