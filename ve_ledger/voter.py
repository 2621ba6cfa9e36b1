import logging

import ve_ledger.utils.errors as Errors
from ve_ledger.bribe import ExternalBribe, InternalBribe
from ve_ledger.gauge import Gauge
from ve_ledger.utils.constants import DURATION, PRECISION, WEEK
from ve_ledger.utils.contract import Contract, entry_point
from ve_ledger.utils.errors import as_nat, verify
from ve_ledger.utils.token import approve_FA12, transfer_FA12

log = logging.getLogger(__name__)

###########
# Contract
###########


class Voter(Contract):
    def __init__(self, ve, base_token, registry, governor):
        self.init(
            ve=ve,
            base_token=base_token,
            registry=registry,
            governor=governor,
            # Gauge registry
            pools=[],
            gauges={},
            pool_for_gauge={},
            internal_bribes={},
            external_bribes={},
            is_alive={},
            # Vote ledgers
            total_weight=0,
            weights={},
            votes={},
            pool_vote={},
            used_weights={},
            last_voted={},
            # Emission index
            index=0,
            supply_index={},
            claimable={},
        )

    ##########
    # Gauges
    ##########

    @entry_point
    def create_gauge(self, pool, *, sender):
        verify(pool not in self.data.gauges, Errors.GAUGE_EXISTS)

        registry = self.contract_at(self.data.registry)
        base_token = self.data.base_token

        is_pair = registry.is_pair(pool)
        if is_pair:
            token0, token1 = self.contract_at(pool).tokens()

            # Only the governor may list pools of tokens that are not whitelisted
            if sender != self.data.governor:
                verify(registry.is_whitelisted(token0) and registry.is_whitelisted(token1), Errors.TOKEN_NOT_WHITELISTED)

            fee_tokens = [token0, token1]
        else:
            verify(sender == self.data.governor, Errors.NOT_A_POOL)
            fee_tokens = []

        bribe_tokens = fee_tokens + ([base_token] if base_token not in fee_tokens else [])

        # Originate the pool's bribes and gauge
        internal_bribe = self.chain.originate(InternalBribe(voter=self.address, ve=self.data.ve, rewards=fee_tokens))
        external_bribe = self.chain.originate(ExternalBribe(voter=self.address, ve=self.data.ve, rewards=bribe_tokens))
        gauge = self.chain.originate(
            Gauge(
                stake=pool,
                ve=self.data.ve,
                voter=self.address,
                internal_bribe=internal_bribe.address,
                external_bribe=external_bribe.address,
                is_for_pair=is_pair,
                rewards=[base_token],
            )
        )

        # Register the gauge
        self.data.gauges[pool] = gauge.address
        self.data.pool_for_gauge[gauge.address] = pool
        self.data.internal_bribes[gauge.address] = internal_bribe.address
        self.data.external_bribes[gauge.address] = external_bribe.address
        self.data.is_alive[gauge.address] = True
        self.data.pools.append(pool)

        # New gauges only share in emissions notified from now on
        self._update_for(gauge.address)

        self.emit(
            "GaugeCreated",
            pool=pool,
            gauge=gauge.address,
            internal_bribe=internal_bribe.address,
            external_bribe=external_bribe.address,
            creator=sender,
        )
        return gauge.address

    def _only_gauge(self, gauge):
        verify(gauge in self.data.pool_for_gauge, Errors.GAUGE_DOES_NOT_EXIST)

    @entry_point
    def kill_gauge(self, gauge, *, sender):
        verify(sender == self.data.governor, Errors.NOT_AUTHORISED)
        self._only_gauge(gauge)
        verify(self.data.is_alive[gauge], Errors.GAUGE_NOT_ALIVE)

        # Undistributed emissions of a killed gauge are forfeited
        self.data.is_alive[gauge] = False
        self.data.claimable[gauge] = 0

        self.emit("GaugeKilled", gauge=gauge)

    @entry_point
    def revive_gauge(self, gauge, *, sender):
        verify(sender == self.data.governor, Errors.NOT_AUTHORISED)
        self._only_gauge(gauge)
        verify(not self.data.is_alive[gauge], Errors.GAUGE_ALREADY_ALIVE)

        self.data.is_alive[gauge] = True

        self.emit("GaugeRevived", gauge=gauge)

    ##########
    # Voting
    ##########

    def _only_approved_or_owner(self, sender, token_id):
        ve = self.contract_at(self.data.ve)
        verify(ve.is_approved_or_owner(sender, token_id), Errors.SENDER_DOES_NOT_OWN_LOCK)

    def _only_new_epoch(self, token_id):
        # One vote or reset per lock per weekly epoch
        last_voted = self.data.last_voted.get(token_id)
        if last_voted is not None:
            verify(((self.now // WEEK) * WEEK) > last_voted, Errors.ALREADY_VOTED_THIS_EPOCH)

    def _reset(self, token_id):
        total_removed = 0
        for pool in self.data.pool_vote.get(token_id, []):
            votes = self.data.votes[token_id][pool]
            if votes != 0:
                gauge = self.data.gauges[pool]
                self._update_for(gauge)

                self.data.weights[pool] = as_nat(self.data.weights[pool] - votes)
                self.contract_at(self.data.internal_bribes[gauge]).withdraw(votes, token_id, sender=self.address)
                self.contract_at(self.data.external_bribes[gauge]).withdraw(votes, token_id, sender=self.address)
                total_removed += votes

                self.emit("Abstained", token_id=token_id, pool=pool, weight=votes)

        self.data.total_weight = as_nat(self.data.total_weight - total_removed)
        self.data.used_weights[token_id] = 0
        self.data.votes[token_id] = {}
        self.data.pool_vote[token_id] = []

    def _vote(self, token_id, pools, weights, voter):
        self._reset(token_id)

        ve = self.contract_at(self.data.ve)
        weight = ve.voting_power_of(token_id)
        verify(weight > 0, Errors.NO_VOTING_POWER)

        # Sanity checks
        for pool_weight in weights:
            verify(pool_weight > 0, Errors.ZERO_VOTE_NOT_ALLOWED)
        total_vote_weight = sum(weights)

        used_weight = 0
        votes = self.data.votes[token_id]
        for pool, share in zip(pools, weights):
            gauge = self.data.gauges.get(pool)
            verify(gauge is not None, Errors.POOL_HAS_NO_GAUGE)
            verify(self.data.is_alive[gauge], Errors.GAUGE_NOT_ALIVE)
            verify(pool not in votes, Errors.DUPLICATE_POOL_VOTE)

            pool_weight = (share * weight) // total_vote_weight
            verify(pool_weight > 0, Errors.ZERO_VOTE_NOT_ALLOWED)

            self._update_for(gauge)

            self.data.pool_vote[token_id].append(pool)
            self.data.weights[pool] = self.data.weights.get(pool, 0) + pool_weight
            votes[pool] = pool_weight

            # Vote weight earns fees and bribes of the pool
            self.contract_at(self.data.internal_bribes[gauge]).deposit(pool_weight, token_id, sender=self.address)
            self.contract_at(self.data.external_bribes[gauge]).deposit(pool_weight, token_id, sender=self.address)

            used_weight += pool_weight

            self.emit("Voted", voter=voter, token_id=token_id, pool=pool, weight=pool_weight)

        if used_weight > 0:
            ve.voting(token_id, sender=self.address)

        self.data.total_weight += used_weight
        self.data.used_weights[token_id] = used_weight

    @entry_point
    def vote(self, token_id, pools, weights, *, sender):
        self._only_approved_or_owner(sender, token_id)

        # Sanity checks
        verify(len(pools) == len(weights), Errors.LENGTH_MISMATCH)
        verify(len(pools) > 0, Errors.EMPTY_VOTE)
        self._only_new_epoch(token_id)

        self.data.last_voted[token_id] = self.now
        self._vote(token_id, pools, weights, sender)

    @entry_point
    def reset(self, token_id, *, sender):
        self._only_approved_or_owner(sender, token_id)
        self._only_new_epoch(token_id)

        self.data.last_voted[token_id] = self.now
        self._reset(token_id)
        self.contract_at(self.data.ve).abstain(token_id, sender=self.address)

    @entry_point
    def poke(self, token_id, *, sender=None):
        # Re-applies the lock's vote split at its current voting power. Votes stay the owner's
        pools = list(self.data.pool_vote.get(token_id, []))
        if pools:
            weights = [self.data.votes[token_id][pool] for pool in pools]
            owner = self.contract_at(self.data.ve).owner_of(token_id)
            self._vote(token_id, pools, weights, owner)

    ##############################
    # Gauge attachments for boost
    ##############################

    @entry_point
    def attach_token_to_gauge(self, token_id, account, *, sender):
        self._only_gauge(sender)
        verify(self.data.is_alive[sender], Errors.GAUGE_NOT_ALIVE)

        if token_id > 0:
            self.contract_at(self.data.ve).attach(token_id, sender=self.address)

        self.emit("Attach", owner=account, gauge=sender, token_id=token_id)

    @entry_point
    def detach_token_from_gauge(self, token_id, account, *, sender):
        self._only_gauge(sender)

        if token_id > 0:
            self.contract_at(self.data.ve).detach(token_id, sender=self.address)

        self.emit("Detach", owner=account, gauge=sender, token_id=token_id)

    ############
    # Emissions
    ############

    @entry_point
    def notify_reward_amount(self, amount, *, sender):
        verify(amount > 0, Errors.INVALID_REWARD_AMOUNT)
        verify(self.data.total_weight > 0, Errors.NO_VOTES_CAST)

        transfer_FA12(self, self.data.base_token, sender, self.address, amount)

        # Index of emissions per unit of vote weight
        ratio = (amount * PRECISION) // self.data.total_weight
        if ratio > 0:
            self.data.index += ratio

        self.emit("NotifyReward", sender=sender, token=self.data.base_token, amount=amount)

    def _update_for(self, gauge):
        pool = self.data.pool_for_gauge[gauge]
        supplied = self.data.weights.get(pool, 0)
        index = self.data.index

        if supplied > 0:
            supply_index = self.data.supply_index.get(gauge, 0)
            self.data.supply_index[gauge] = index

            delta = index - supply_index
            if delta > 0:
                share = (supplied * delta) // PRECISION
                if self.data.is_alive[gauge]:
                    self.data.claimable[gauge] = self.data.claimable.get(gauge, 0) + share
        else:
            # Gauges without votes do not accrue
            self.data.supply_index[gauge] = index

    @entry_point
    def update_for(self, gauges, *, sender=None):
        for gauge in gauges:
            self._only_gauge(gauge)
            self._update_for(gauge)

    @entry_point
    def update_all(self, *, sender=None):
        for pool in self.data.pools:
            self._update_for(self.data.gauges[pool])

    def _distribute(self, gauge):
        self._only_gauge(gauge)
        self._update_for(gauge)

        base_token = self.data.base_token
        claimable = self.data.claimable.get(gauge, 0)
        gauge_contract = self.contract_at(gauge)

        # Hold back amounts that would not raise the gauge's current distribution
        if (claimable > gauge_contract.left(base_token)) and ((claimable // DURATION) > 0):
            self.data.claimable[gauge] = 0
            approve_FA12(self, base_token, gauge, claimable)
            gauge_contract.notify_reward_amount(base_token, claimable, sender=self.address)

            self.emit("DistributeReward", gauge=gauge, amount=claimable)

    @entry_point
    def distribute(self, gauge, *, sender=None):
        self._distribute(gauge)

    @entry_point
    def distribute_many(self, gauges, *, sender=None):
        for gauge in gauges:
            self._distribute(gauge)

    @entry_point
    def distribute_all(self, *, sender=None):
        for pool in self.data.pools:
            self._distribute(self.data.gauges[pool])

    ##########
    # Claims
    ##########

    @entry_point
    def claim_rewards(self, gauges, tokens, *, sender):
        verify(len(gauges) == len(tokens), Errors.LENGTH_MISMATCH)
        for gauge, gauge_tokens in zip(gauges, tokens):
            self._only_gauge(gauge)
            self.contract_at(gauge).get_reward(sender, gauge_tokens, sender=self.address)

    def _claim_from_bribes(self, bribes, tokens, token_id, sender, known_bribes):
        self._only_approved_or_owner(sender, token_id)
        verify(len(bribes) == len(tokens), Errors.LENGTH_MISMATCH)

        known = set(known_bribes.values())
        for bribe, bribe_tokens in zip(bribes, tokens):
            verify(bribe in known, Errors.NOT_AUTHORISED)
            self.contract_at(bribe).get_reward_for_owner(token_id, bribe_tokens, sender=self.address)

    @entry_point
    def claim_bribes(self, bribes, tokens, token_id, *, sender):
        self._claim_from_bribes(bribes, tokens, token_id, sender, self.data.external_bribes)

    @entry_point
    def claim_fees(self, bribes, tokens, token_id, *, sender):
        self._claim_from_bribes(bribes, tokens, token_id, sender, self.data.internal_bribes)

    @entry_point
    def distribute_fees(self, gauges, *, sender=None):
        for gauge in gauges:
            self._only_gauge(gauge)
            self.contract_at(gauge).claim_fees(sender=self.address)

    #########
    # Views
    #########

    def is_whitelisted(self, token):
        return self.contract_at(self.data.registry).is_whitelisted(token)

    def gauge_for(self, pool):
        return self.data.gauges.get(pool)

    def internal_bribe_of(self, gauge):
        return self.data.internal_bribes.get(gauge)

    def external_bribe_of(self, gauge):
        return self.data.external_bribes.get(gauge)

    def weight_of(self, pool):
        return self.data.weights.get(pool, 0)

    def votes_of(self, token_id, pool):
        return self.data.votes.get(token_id, {}).get(pool, 0)

    def used_weight_of(self, token_id):
        return self.data.used_weights.get(token_id, 0)

    def claimable_of(self, gauge):
        return self.data.claimable.get(gauge, 0)

    def length(self):
        return len(self.data.pools)
