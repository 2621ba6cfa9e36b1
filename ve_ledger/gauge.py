import ve_ledger.utils.errors as Errors
from ve_ledger.checkpoint_rewards import CheckpointRewards
from ve_ledger.utils.constants import BASE_BOOST_PERCENT, DURATION, LOCK_BOOST_PERCENT
from ve_ledger.utils.contract import entry_point
from ve_ledger.utils.errors import as_nat, verify
from ve_ledger.utils.token import approve_FA12, transfer_FA12

###########
# Contract
###########


class Gauge(CheckpointRewards):
    """Emission gauge for a pool.

    Stakers deposit the pool's LP token. Rewards accrue on a derived balance, which is
    40% of the stake plus up to 60% more unlocked by the voting power of a lock the
    staker attaches. Trading fees claimed from the pool are passed on to the pool's
    internal bribe.
    """

    def __init__(self, stake, ve, voter, internal_bribe, external_bribe, is_for_pair=True, rewards=()):
        CheckpointRewards.__init__(
            self,
            voter=voter,
            rewards=rewards,
            stake=stake,
            ve=ve,
            internal_bribe=internal_bribe,
            external_bribe=external_bribe,
            is_for_pair=is_for_pair,
            # LP token stakes, as opposed to the derived reward-bearing balances
            staked={},
            total_staked=0,
            # Lock attached by each staker for boosting
            token_ids={},
            # Fees claimed from the pool but not yet forwarded
            fees0=0,
            fees1=0,
        )

    ############
    # Boosting
    ############

    def derived_balance(self, account):
        balance = self.data.staked.get(account, 0)
        derived = (balance * BASE_BOOST_PERCENT) // 100

        token_id = self.data.token_ids.get(account, 0)
        if token_id != 0:
            ve = self.contract_at(self.data.ve)
            total_voting_power = ve.total_voting_power_at()
            if ve.is_owner(account, token_id) and (total_voting_power > 0):
                token_voting_power = ve.voting_power_of(token_id)
                derived += (((self.data.total_staked * token_voting_power) // total_voting_power) * LOCK_BOOST_PERCENT) // 100

        return min(derived, balance)

    def _update_derived(self, account):
        self._set_balance(account, self.derived_balance(account))

    ############
    # Staking
    ############

    @entry_point
    def deposit(self, amount, token_id=0, *, sender):
        verify(amount > 0, Errors.ZERO_DEPOSIT_NOT_ALLOWED)

        # Update reward metrics before balances move
        self._update_all_rewards()

        # Retrieve lp tokens
        transfer_FA12(self, self.data.stake, sender, self.address, amount)

        self.data.staked[sender] = self.data.staked.get(sender, 0) + amount
        self.data.total_staked += amount

        if token_id != 0:
            ve = self.contract_at(self.data.ve)
            verify(ve.is_owner(sender, token_id), Errors.SENDER_DOES_NOT_OWN_LOCK)

            # Attach first token
            if self.data.token_ids.get(sender, 0) == 0:
                self.data.token_ids[sender] = token_id
                self.contract_at(self.data.voter).attach_token_to_gauge(token_id, sender, sender=self.address)

            verify(self.data.token_ids[sender] == token_id, Errors.TOKEN_ID_MISMATCH)

        # Update derived balance and derived supply for boosting
        self._update_derived(sender)

        self.emit("Deposit", account=sender, token_id=token_id, amount=amount)

    @entry_point
    def withdraw(self, amount, token_id=None, *, sender):
        balance = self.data.staked.get(sender, 0)

        # Sanity checks
        verify(amount > 0, Errors.ZERO_WITHDRAWAL_NOT_ALLOWED)
        verify(balance >= amount, Errors.INSUFFICIENT_BALANCE)

        # Update reward metrics before balances move
        self._update_all_rewards()

        self.data.staked[sender] = balance - amount
        self.data.total_staked = as_nat(self.data.total_staked - amount)

        # Detach boost token if all balance is withdrawn
        if (token_id is None) and (self.data.staked[sender] == 0):
            token_id = self.data.token_ids.get(sender, 0)

        if token_id:
            verify(self.data.token_ids.get(sender, 0) == token_id, Errors.TOKEN_ID_MISMATCH)
            del self.data.token_ids[sender]
            self.contract_at(self.data.voter).detach_token_from_gauge(token_id, sender, sender=self.address)

        # Update derived balance and derived supply for boosting
        self._update_derived(sender)

        # Transfer withdrawn tokens back to sender
        transfer_FA12(self, self.data.stake, self.address, sender, amount)

        self.emit("Withdraw", account=sender, token_id=token_id or 0, amount=amount)

    @entry_point
    def get_reward(self, account, tokens, *, sender):
        verify((sender == account) or (sender == self.data.voter), Errors.NOT_AUTHORISED)

        self._get_reward(account, tokens, account)

        # Voting power moves on, so refresh the boost
        self._update_all_rewards()
        self._update_derived(account)

    ###########
    # Funding
    ###########

    def _admit_reward_token(self, token, sender):
        verify(self.contract_at(self.data.voter).is_whitelisted(token), Errors.TOKEN_NOT_WHITELISTED)
        CheckpointRewards._admit_reward_token(self, token, sender)

    @entry_point
    def notify_reward_amount(self, token, amount, *, sender):
        verify(token != self.data.stake, Errors.CANNOT_REWARD_STAKE_TOKEN)

        self._claim_fees()
        self._notify_reward_amount(token, amount, sender)

    ########
    # Fees
    ########

    @entry_point
    def claim_fees(self, *, sender=None):
        return self._claim_fees()

    def _claim_fees(self):
        if not self.data.is_for_pair:
            return 0, 0

        pair = self.contract_at(self.data.stake)
        claimed0, claimed1 = pair.claim_fees(sender=self.address)

        if (claimed0 > 0) or (claimed1 > 0):
            token0, token1 = pair.tokens()
            self.data.fees0 = self._forward_fees(token0, self.data.fees0 + claimed0)
            self.data.fees1 = self._forward_fees(token1, self.data.fees1 + claimed1)

            self.emit("ClaimFees", claimed0=claimed0, claimed1=claimed1)

        return claimed0, claimed1

    def _forward_fees(self, token, fees):
        # Forward once the fees outweigh what the bribe still has to hand out. Returns the amount held back
        bribe = self.contract_at(self.data.internal_bribe)
        if (fees > bribe.left(token)) and ((fees // DURATION) > 0):
            approve_FA12(self, token, bribe.address, fees)
            bribe.notify_reward_amount(token, fees, sender=self.address)
            return 0
        return fees

    #########
    # Views
    #########

    def staked_balance(self, account):
        return self.data.staked.get(account, 0)
