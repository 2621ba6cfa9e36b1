import copy
import itertools
import logging
from contextlib import contextmanager

import ve_ledger.utils.errors as Errors
from ve_ledger.utils.errors import ContractError
from ve_ledger.utils.events import Event, log_event

log = logging.getLogger(__name__)


class Chain:
    """Host environment shared by all contracts.

    Supplies the clock, a registry of originated contracts, the event log and the
    atomic call frame: a failure anywhere below the outermost entry point restores the
    storage of every contract the call reached, the registry and the event log.
    """

    def __init__(self, now=0, level=0):
        self.now = now
        self.level = level
        self.contracts = {}
        self.events = []
        self._depth = 0
        self._journal = None
        self._originated = []
        self._counter = itertools.count(1)

    ##########
    # Clock
    ##########

    def advance(self, seconds):
        if seconds < 0:
            raise ValueError("time cannot move backwards")
        self.now += seconds
        self.level += 1

    def travel_to(self, ts):
        self.advance(ts - self.now)

    #############
    # Registry
    #############

    def originate(self, contract):
        address = f"KT1{type(contract).__name__}{next(self._counter):04d}"
        contract.chain = self
        contract.address = address
        self.contracts[address] = contract
        if self._journal is not None:
            self._originated.append(address)
        contract.originated()
        log.debug("originated %s at %s", type(contract).__name__, address)
        return contract

    def __iadd__(self, contract):
        if contract.address is None:
            self.originate(contract)
        return self

    def is_contract(self, address):
        return address in self.contracts

    def contract_at(self, address):
        contract = self.contracts.get(address)
        if contract is None:
            raise ContractError(Errors.INVALID_CONTRACT, str(address))
        return contract

    ###########
    # Events
    ###########

    def emit(self, contract, name, **fields):
        self.events.append(Event(contract=contract.address, name=name, ts=self.now, level=self.level, fields=fields))
        log_event(logging.getLogger(type(contract).__module__), name, contract=contract.address, ts=self.now, **fields)

    def events_named(self, name, contract=None):
        return [
            event
            for event in self.events
            if event.name == name and (contract is None or event.contract == getattr(contract, "address", contract))
        ]

    ################
    # Atomic frame
    ################

    def touch(self, contract):
        # Journals the contract's storage the first time the current call reaches it
        if (self._journal is not None) and (contract.address not in self._journal):
            self._journal[contract.address] = copy.deepcopy(contract.data)

    @contextmanager
    def atomic(self):
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        # Outermost call. Storage is journaled per contract as entry points are reached
        self._journal = {}
        self._originated = []
        num_events = len(self.events)

        self._depth = 1
        try:
            yield
        except Exception:
            for address, data in self._journal.items():
                self.contracts[address].data = data
            for address in self._originated:
                del self.contracts[address]
            del self.events[num_events:]
            log.debug("call reverted, restored %d contracts", len(self._journal))
            raise
        finally:
            self._depth = 0
            self._journal = None
            self._originated = []
