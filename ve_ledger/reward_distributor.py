import logging

import ve_ledger.utils.errors as Errors
from ve_ledger.utils.constants import (
    MAX_CLAIM_WEEKS,
    MAX_SUPPLY_CHECKPOINT_WEEKS,
    MAX_TOKEN_CHECKPOINT_WEEKS,
    WEEK,
)
from ve_ledger.utils.contract import Contract, entry_point
from ve_ledger.utils.errors import as_nat, verify
from ve_ledger.utils.token import approve_FA12, get_balance, transfer_FA12

log = logging.getLogger(__name__)

###########
# Contract
###########


class RewardsDistributor(Contract):
    """Weekly rebase of a reward token to lock holders, pro-rata to voting power at each week start."""

    def __init__(self, ve, token, depositor, start_time=None):
        self.init(
            ve=ve,
            token=token,
            depositor=depositor,
            start_time=start_time,
            time_cursor=0,
            time_cursor_of={},
            last_token_time=0,
            tokens_per_week={},
            token_last_balance=0,
            ve_supply={},
        )

    def originated(self):
        if self.data.start_time is None:
            self.data.start_time = (self.now // WEEK) * WEEK
        self.data.last_token_time = self.data.start_time
        self.data.time_cursor = self.data.start_time

    @entry_point
    def set_depositor(self, depositor, *, sender):
        verify(sender == self.data.depositor, Errors.NOT_AUTHORISED)
        self.data.depositor = depositor

    ###########
    # Funding
    ###########

    def _checkpoint_token(self):
        now_ = self.now

        token_balance = get_balance(self, self.data.token)
        to_distribute = as_nat(token_balance - self.data.token_last_balance)

        t = self.data.last_token_time
        since_last = now_ - t
        this_week = (t // WEEK) * WEEK

        # Spread new funding over the elapsed weeks in proportion to time
        allocated = 0
        for _ in range(MAX_TOKEN_CHECKPOINT_WEEKS):
            next_week = this_week + WEEK
            if now_ < next_week:
                if since_last == 0:
                    share = to_distribute
                else:
                    share = (to_distribute * (now_ - t)) // since_last
                self.data.tokens_per_week[this_week] = self.data.tokens_per_week.get(this_week, 0) + share
                allocated += share
                t = now_
                break

            share = (to_distribute * (next_week - t)) // since_last
            self.data.tokens_per_week[this_week] = self.data.tokens_per_week.get(this_week, 0) + share
            allocated += share
            t = next_week
            this_week = next_week

        # Whatever was not allocated stays in the balance and is spread from t onwards next time
        self.data.last_token_time = t
        self.data.token_last_balance += allocated

        if t < now_:
            log.debug("token checkpoint reached %s, %s weeks behind", t, (now_ - t) // WEEK)

        self.emit("CheckpointToken", time=t, tokens=allocated)

    @entry_point
    def checkpoint_token(self, *, sender):
        verify(sender == self.data.depositor, Errors.NOT_AUTHORISED)
        self._checkpoint_token()

    def _checkpoint_total_supply(self):
        ve = self.contract_at(self.data.ve)

        t = self.data.time_cursor

        ve.checkpoint(sender=self.address)

        # Record the total voting power at each week start. A week start equal to now may still change
        for _ in range(MAX_SUPPLY_CHECKPOINT_WEEKS):
            if t >= self.now:
                break
            self.data.ve_supply[t] = ve.total_voting_power_at(t)
            t += WEEK

        self.data.time_cursor = t

    @entry_point
    def checkpoint_total_supply(self, *, sender=None):
        self._checkpoint_total_supply()

    ##########
    # Claims
    ##########

    def _claimable(self, token_id, last_token_time):
        # Returns the claimable amount and the week the lock's cursor moves to
        ve = self.contract_at(self.data.ve)

        week_cursor = self.data.time_cursor_of.get(token_id, 0)
        if week_cursor == 0:
            first_ts = ve.first_checkpoint_ts(token_id)
            if first_ts is None:
                return 0, 0
            # First full week after the lock was created
            week_cursor = ((first_ts + WEEK - 1) // WEEK) * WEEK

        week_cursor = max(week_cursor, self.data.start_time)
        last_point_ts = ve.last_checkpoint_ts(token_id)

        to_distribute = 0
        for _ in range(MAX_CLAIM_WEEKS):
            # Only whole weeks with a recorded total supply are paid out
            if (week_cursor >= last_token_time) or (week_cursor >= self.data.time_cursor):
                break

            balance = ve.voting_power_of(token_id, week_cursor)
            if (balance == 0) and (week_cursor > last_point_ts):
                break

            supply = self.data.ve_supply.get(week_cursor, 0)
            if supply > 0:
                to_distribute += (balance * self.data.tokens_per_week.get(week_cursor, 0)) // supply

            week_cursor += WEEK

        return to_distribute, week_cursor

    def _claim(self, token_id):
        ve = self.contract_at(self.data.ve)
        verify(ve.owner_of(token_id) is not None, Errors.LOCK_DOES_NOT_EXIST)

        last_token_time = (self.data.last_token_time // WEEK) * WEEK
        amount, week_cursor = self._claimable(token_id, last_token_time)
        if week_cursor == 0:
            return 0

        self.data.time_cursor_of[token_id] = week_cursor

        if amount > 0:
            self.data.token_last_balance = as_nat(self.data.token_last_balance - amount)

            # Compound into the lock while it is live, otherwise pay the owner
            if ve.locked(token_id).end > self.now:
                approve_FA12(self, self.data.token, ve.address, amount)
                ve.deposit_for(token_id, amount, sender=self.address)
            else:
                transfer_FA12(self, self.data.token, self.address, ve.owner_of(token_id), amount)

        self.emit("Claimed", token_id=token_id, amount=amount, claim_epoch=week_cursor)
        return amount

    @entry_point
    def claim(self, token_id, *, sender=None):
        if self.now > self.data.time_cursor:
            self._checkpoint_total_supply()
        return self._claim(token_id)

    @entry_point
    def claim_many(self, token_ids, *, sender=None):
        if self.now > self.data.time_cursor:
            self._checkpoint_total_supply()
        return sum(self._claim(token_id) for token_id in token_ids)

    #########
    # Views
    #########

    def claimable(self, token_id):
        last_token_time = (self.data.last_token_time // WEEK) * WEEK
        return self._claimable(token_id, last_token_time)[0]

    def tokens_per_week_at(self, week):
        return self.data.tokens_per_week.get(week, 0)

    def ve_supply_at(self, week):
        return self.data.ve_supply.get(week, 0)
