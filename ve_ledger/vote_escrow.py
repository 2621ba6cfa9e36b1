import logging
from dataclasses import dataclass

import ve_ledger.utils.errors as errors
from ve_ledger.utils import decay
from ve_ledger.utils.checkpoints import prior_index
from ve_ledger.utils.constants import MAX_CHECKPOINT_STEPS, MAX_TIME, WEEK
from ve_ledger.utils.contract import Contract, entry_point
from ve_ledger.utils.errors import as_nat, verify
from ve_ledger.utils.token import transfer_FA12

log = logging.getLogger(__name__)

########
# Types
########


@dataclass(frozen=True)
class Lock:
    amount: int = 0
    end: int = 0


EMPTY_LOCK = Lock()


@dataclass
class Point:
    bias: int = 0
    slope: int = 0
    ts: int = 0
    level: int = 0


class Types:
    # Deposit kinds reported in Deposit events
    CREATE_LOCK = "create_lock"
    DEPOSIT_FOR = "deposit_for"
    INCREASE_AMOUNT = "increase_amount"
    INCREASE_UNLOCK_TIME = "increase_unlock_time"
    MERGE = "merge"


#########
# Errors
#########


class Errors:
    INVALID_LOCK_TIME = "INVALID_LOCK_TIME"
    INVALID_LOCK_VALUE = "INVALID_LOCK_VALUE"
    LOCK_DOES_NOT_EXIST = errors.LOCK_DOES_NOT_EXIST
    NOT_AUTHORISED = errors.NOT_AUTHORISED
    LOCK_YET_TO_EXPIRE = errors.LOCK_YET_TO_EXPIRE
    LOCK_HAS_EXPIRED = "LOCK_HAS_EXPIRED"
    INVALID_INCREASE_VALUE = "INVALID_INCREASE_VALUE"
    INVALID_INCREASE_END_TIMESTAMP = "INVALID_INCREASE_END_TIMESTAMP"
    LOCK_IS_ATTACHED = "LOCK_IS_ATTACHED"
    LOCK_IS_VOTING = "LOCK_IS_VOTING"
    SAME_LOCK_MERGE = "SAME_LOCK_MERGE"
    VOTER_ALREADY_SET = "VOTER_ALREADY_SET"
    CHECKPOINT_CATCH_UP_REQUIRED = errors.CHECKPOINT_CATCH_UP_REQUIRED


# TZIP-12 specified errors for FA2 standard
class FA2_Errors:
    FA2_TOKEN_UNDEFINED = "FA2_TOKEN_UNDEFINED"
    FA2_NOT_OPERATOR = "FA2_NOT_OPERATOR"
    FA2_NOT_OWNER = "FA2_NOT_OWNER"


###########
# Contract
###########


class VoteEscrow(Contract):
    def __init__(self, base_token, voter=None):
        self.init(
            base_token=base_token,
            voter=voter,
            # Lock ownership (one NFT per lock)
            uid=0,
            owners={},
            operators=set(),
            # Vote-escrow storage items
            locks={},
            attachments={},
            voted=set(),
            token_checkpoints={},
            global_checkpoints=[],
            slope_changes={},
            locked_supply=0,
        )

    def originated(self):
        # The global curve starts flat at origination
        self.data.global_checkpoints.append(Point(ts=self.now, level=self.chain.level))

    # NOTE: This is called only once during origination sequence
    @entry_point
    def set_voter(self, voter, *, sender):
        verify(self.data.voter is None, Errors.VOTER_ALREADY_SET)
        self.data.voter = voter

    ###############
    # Lock tokens
    ###############

    @entry_point
    def transfer(self, from_, to_, token_id, *, sender):
        # Sanity checks
        verify(token_id in self.data.owners, FA2_Errors.FA2_TOKEN_UNDEFINED)
        verify(self.data.owners[token_id] == from_, FA2_Errors.FA2_NOT_OWNER)
        verify(
            (sender == from_) or ((from_, sender, token_id) in self.data.operators),
            FA2_Errors.FA2_NOT_OPERATOR,
        )
        verify(self.data.attachments.get(token_id, 0) == 0, Errors.LOCK_IS_ATTACHED)
        verify(token_id not in self.data.voted, Errors.LOCK_IS_VOTING)

        self._clear_operators(token_id)
        self.data.owners[token_id] = to_

        self.emit("Transfer", from_=from_, to_=to_, token_id=token_id)

    @entry_point
    def add_operator(self, operator, token_id, *, sender):
        verify(self.data.owners.get(token_id) == sender, FA2_Errors.FA2_NOT_OWNER)
        self.data.operators.add((sender, operator, token_id))

    @entry_point
    def remove_operator(self, operator, token_id, *, sender):
        verify(self.data.owners.get(token_id) == sender, FA2_Errors.FA2_NOT_OWNER)
        self.data.operators.discard((sender, operator, token_id))

    def _clear_operators(self, token_id):
        self.data.operators = {entry for entry in self.data.operators if entry[2] != token_id}

    def _burn(self, token_id):
        self._clear_operators(token_id)
        owner = self.data.owners.pop(token_id)
        self.emit("Transfer", from_=owner, to_=None, token_id=token_id)

    def _only_approved_or_owner(self, sender, token_id):
        verify(token_id in self.data.owners, Errors.LOCK_DOES_NOT_EXIST)
        verify(self.is_approved_or_owner(sender, token_id), Errors.NOT_AUTHORISED)

    ###############
    # Checkpoints
    ###############

    def _write_point(self, history, point):
        if history and history[-1].ts == point.ts:
            history[-1] = point
        else:
            history.append(point)

    def _advance_global(self, max_steps):
        # Walks the global curve over every week boundary up to now, storing a point at each.
        # Returns False if more than max_steps boundaries were pending.
        now_ = self.now
        level_ = self.chain.level

        last = self.data.global_checkpoints[-1]
        c_bias, c_slope, c_ts = last.bias, last.slope, last.ts

        n_ts = (c_ts // WEEK) * WEEK + WEEK
        steps = 0
        while n_ts <= now_:
            if steps == max_steps:
                log.debug("global curve caught up to %s, %s weeks behind", c_ts, (now_ - c_ts) // WEEK)
                return False

            c_bias = decay.decayed(c_bias, c_slope, n_ts - c_ts)

            # Locks ending at this boundary stop decaying
            c_slope = max(c_slope - self.data.slope_changes.get(n_ts, 0), 0)

            # Interpolate the level between the last point and now
            level = last.level + ((level_ - last.level) * (n_ts - last.ts)) // max(now_ - last.ts, 1)

            c_ts = n_ts
            self._write_point(self.data.global_checkpoints, Point(c_bias, c_slope, c_ts, level))

            n_ts += WEEK
            steps += 1

        return True

    def _record_checkpoint(self, token_id, old_lock, new_lock):
        now_ = self.now

        verify(self._advance_global(MAX_CHECKPOINT_STEPS), Errors.CHECKPOINT_CATCH_UP_REQUIRED)

        # Calculate current global bias and slope
        last = self.data.global_checkpoints[-1]
        c_bias = decay.decayed(last.bias, last.slope, now_ - last.ts)
        c_slope = last.slope

        old_slope = old_bias = 0
        if (old_lock.end > now_) and (old_lock.amount > 0):
            old_slope = decay.slope_of(old_lock.amount)
            old_bias = decay.bias_of(old_slope, old_lock.end - now_)

        new_slope = new_bias = 0
        if (new_lock.end > now_) and (new_lock.amount > 0):
            new_slope = decay.slope_of(new_lock.amount)
            new_bias = decay.bias_of(new_slope, new_lock.end - now_)

        # Swap the old lock's contribution for the new one
        c_bias = max(c_bias + new_bias - old_bias, 0)
        c_slope = max(c_slope + new_slope - old_slope, 0)

        # Record global checkpoint
        self._write_point(self.data.global_checkpoints, Point(c_bias, c_slope, now_, self.chain.level))

        # A slope change at or before now has already been applied to the global curve
        if old_lock.end > now_:
            self.data.slope_changes[old_lock.end] = max(self.data.slope_changes.get(old_lock.end, 0) - old_slope, 0)
        if new_lock.end > now_:
            self.data.slope_changes[new_lock.end] = self.data.slope_changes.get(new_lock.end, 0) + new_slope

        # Record token checkpoint
        history = self.data.token_checkpoints.setdefault(token_id, [])
        self._write_point(history, Point(new_bias, new_slope, now_, self.chain.level))

    @entry_point
    def checkpoint(self, max_steps=MAX_CHECKPOINT_STEPS, *, sender=None):
        """Advance the global curve by at most ``max_steps`` weeks. Returns True once it reaches now."""
        if not self._advance_global(max_steps):
            return False

        last = self.data.global_checkpoints[-1]
        if last.ts < self.now:
            point = Point(
                decay.decayed(last.bias, last.slope, self.now - last.ts), last.slope, self.now, self.chain.level
            )
            self._write_point(self.data.global_checkpoints, point)
        return True

    #########
    # Locks
    #########

    def _deposit_for(self, token_id, value, unlock_time, locked, kind, payer):
        supply_before = self.data.locked_supply
        self.data.locked_supply = supply_before + value

        new_lock = Lock(amount=locked.amount + value, end=unlock_time or locked.end)
        self.data.locks[token_id] = new_lock

        self._record_checkpoint(token_id, locked, new_lock)

        # Merged value is already held in custody
        if kind != Types.MERGE:
            transfer_FA12(self, self.data.base_token, payer, self.address, value)

        self.emit("Deposit", provider=payer, token_id=token_id, value=value, end=new_lock.end, kind=kind)
        self.emit("Supply", prev_supply=supply_before, supply=self.data.locked_supply)

    @entry_point
    def create_lock(self, value, lock_duration, to=None, *, sender):
        now_ = self.now

        # Find a timestamp rounded off to a whole week
        end = ((now_ + lock_duration) // WEEK) * WEEK

        # Sanity checks
        verify(value > 0, Errors.INVALID_LOCK_VALUE)
        verify((end > now_) and (end <= now_ + MAX_TIME), Errors.INVALID_LOCK_TIME)

        # Update uid and mint associated token
        self.data.uid += 1
        token_id = self.data.uid
        self.data.owners[token_id] = sender if to is None else to

        self._deposit_for(token_id, value, end, EMPTY_LOCK, Types.CREATE_LOCK, sender)

        return token_id

    @entry_point
    def deposit_for(self, token_id, value, *, sender):
        locked = self.data.locks.get(token_id, EMPTY_LOCK)

        # Sanity checks
        verify(value > 0, Errors.INVALID_INCREASE_VALUE)
        verify(token_id in self.data.owners, Errors.LOCK_DOES_NOT_EXIST)
        verify(locked.end > self.now, Errors.LOCK_HAS_EXPIRED)

        self._deposit_for(token_id, value, 0, locked, Types.DEPOSIT_FOR, sender)

    @entry_point
    def increase_amount(self, token_id, value, *, sender):
        self._only_approved_or_owner(sender, token_id)

        locked = self.data.locks[token_id]

        # Sanity checks
        verify(value > 0, Errors.INVALID_INCREASE_VALUE)
        verify(locked.end > self.now, Errors.LOCK_HAS_EXPIRED)

        self._deposit_for(token_id, value, 0, locked, Types.INCREASE_AMOUNT, sender)

    @entry_point
    def increase_unlock_time(self, token_id, lock_duration, *, sender):
        self._only_approved_or_owner(sender, token_id)

        now_ = self.now

        locked = self.data.locks[token_id]
        end = ((now_ + lock_duration) // WEEK) * WEEK

        # Sanity checks
        verify(locked.end > now_, Errors.LOCK_HAS_EXPIRED)
        verify(end > locked.end, Errors.INVALID_INCREASE_END_TIMESTAMP)
        verify(end <= now_ + MAX_TIME, Errors.INVALID_LOCK_TIME)

        self._deposit_for(token_id, 0, end, locked, Types.INCREASE_UNLOCK_TIME, sender)

    @entry_point
    def merge(self, from_id, to_id, *, sender):
        # Sanity checks
        verify(from_id != to_id, Errors.SAME_LOCK_MERGE)
        verify(self.data.attachments.get(from_id, 0) == 0, Errors.LOCK_IS_ATTACHED)
        verify(from_id not in self.data.voted, Errors.LOCK_IS_VOTING)
        self._only_approved_or_owner(sender, from_id)
        self._only_approved_or_owner(sender, to_id)

        locked_from = self.data.locks.pop(from_id)
        locked_to = self.data.locks[to_id]
        end = max(locked_from.end, locked_to.end)

        # Retire the source lock. Its value moves into the target without leaving custody
        self.data.locked_supply = as_nat(self.data.locked_supply - locked_from.amount)
        self._record_checkpoint(from_id, locked_from, EMPTY_LOCK)
        self._burn(from_id)

        self._deposit_for(to_id, locked_from.amount, end, locked_to, Types.MERGE, sender)

    @entry_point
    def withdraw(self, token_id, *, sender):
        self._only_approved_or_owner(sender, token_id)

        # Sanity checks
        verify(self.data.attachments.get(token_id, 0) == 0, Errors.LOCK_IS_ATTACHED)
        verify(token_id not in self.data.voted, Errors.LOCK_IS_VOTING)

        locked = self.data.locks[token_id]
        verify(self.now >= locked.end, Errors.LOCK_YET_TO_EXPIRE)

        supply_before = self.data.locked_supply
        self.data.locked_supply = as_nat(supply_before - locked.amount)

        del self.data.locks[token_id]
        self._record_checkpoint(token_id, locked, EMPTY_LOCK)
        self._burn(token_id)

        # Return the base token to the withdrawer
        transfer_FA12(self, self.data.base_token, self.address, sender, locked.amount)

        self.emit("Withdraw", provider=sender, token_id=token_id, value=locked.amount)
        self.emit("Supply", prev_supply=supply_before, supply=self.data.locked_supply)

    ###############
    # Voter hooks
    ###############

    def _only_voter(self, sender):
        verify((self.data.voter is not None) and (sender == self.data.voter), Errors.NOT_AUTHORISED)

    @entry_point
    def attach(self, token_id, *, sender):
        self._only_voter(sender)
        self.data.attachments[token_id] = self.data.attachments.get(token_id, 0) + 1

    @entry_point
    def detach(self, token_id, *, sender):
        self._only_voter(sender)
        self.data.attachments[token_id] = as_nat(self.data.attachments.get(token_id, 0) - 1)

    @entry_point
    def voting(self, token_id, *, sender):
        self._only_voter(sender)
        self.data.voted.add(token_id)

    @entry_point
    def abstain(self, token_id, *, sender):
        self._only_voter(sender)
        self.data.voted.discard(token_id)

    #########
    # Views
    #########

    def owner_of(self, token_id):
        return self.data.owners.get(token_id)

    def is_owner(self, address, token_id):
        return self.data.owners.get(token_id) == address

    def is_approved_or_owner(self, address, token_id):
        owner = self.data.owners.get(token_id)
        if owner is None:
            return False
        return (address == owner) or ((owner, address, token_id) in self.data.operators)

    def locked(self, token_id):
        return self.data.locks.get(token_id, EMPTY_LOCK)

    def is_attached(self, token_id):
        return self.data.attachments.get(token_id, 0) > 0

    def is_voting(self, token_id):
        return token_id in self.data.voted

    def get_locked_supply(self):
        return self.data.locked_supply

    def user_point_history(self, token_id):
        return list(self.data.token_checkpoints.get(token_id, []))

    def first_checkpoint_ts(self, token_id):
        history = self.data.token_checkpoints.get(token_id)
        return history[0].ts if history else None

    def last_checkpoint_ts(self, token_id):
        history = self.data.token_checkpoints.get(token_id)
        return history[-1].ts if history else None

    def voting_power_of(self, token_id, ts=None):
        ts = self.now if ts is None else ts

        history = self.data.token_checkpoints.get(token_id, [])
        index = prior_index(history, ts)
        if index is None:
            return 0

        point = history[index]
        return decay.voting_power(point.bias, point.slope, ts - point.ts)

    def total_voting_power_at(self, ts=None):
        ts = self.now if ts is None else ts

        index = prior_index(self.data.global_checkpoints, ts)
        if index is None:
            return 0

        # Walk forward on a copy of the nearest earlier point
        point = self.data.global_checkpoints[index]
        c_bias, c_slope, c_ts = point.bias, point.slope, point.ts

        n_ts = (c_ts // WEEK) * WEEK + WEEK
        steps = 0
        while (n_ts <= ts) and (c_bias != 0):
            verify(steps < MAX_CHECKPOINT_STEPS, Errors.CHECKPOINT_CATCH_UP_REQUIRED)

            c_bias = decay.decayed(c_bias, c_slope, n_ts - c_ts)
            c_slope = max(c_slope - self.data.slope_changes.get(n_ts, 0), 0)
            c_ts = n_ts

            n_ts += WEEK
            steps += 1

        return decay.voting_power(c_bias, c_slope, ts - c_ts)
