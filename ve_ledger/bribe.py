import ve_ledger.utils.errors as Errors
from ve_ledger.checkpoint_rewards import CheckpointRewards
from ve_ledger.utils.contract import entry_point
from ve_ledger.utils.errors import failwith, verify

###########
# Contract
###########


class Bribe(CheckpointRewards):
    """Rewards for locks voting on a pool. Balances are vote weights, keyed by lock id."""

    def __init__(self, voter, ve, rewards=()):
        CheckpointRewards.__init__(self, voter=voter, rewards=rewards, ve=ve)

    def _only_voter(self, sender):
        verify(sender == self.data.voter, Errors.NOT_AUTHORISED)

    @entry_point
    def deposit(self, amount, token_id, *, sender):
        self._only_voter(sender)
        self._deposit(amount, token_id)

        self.emit("Deposit", token_id=token_id, amount=amount)

    @entry_point
    def withdraw(self, amount, token_id, *, sender):
        self._only_voter(sender)
        self._withdraw(amount, token_id)

        self.emit("Withdraw", token_id=token_id, amount=amount)

    @entry_point
    def get_reward(self, token_id, tokens, *, sender):
        ve = self.contract_at(self.data.ve)

        # Verify that the sender owns the lock or is an operator for it
        verify(ve.is_approved_or_owner(sender, token_id), Errors.SENDER_DOES_NOT_OWN_LOCK)

        self._get_reward(token_id, tokens, ve.owner_of(token_id))

    @entry_point
    def get_reward_for_owner(self, token_id, tokens, *, sender):
        self._only_voter(sender)

        ve = self.contract_at(self.data.ve)
        self._get_reward(token_id, tokens, ve.owner_of(token_id))

    @entry_point
    def notify_reward_amount(self, token, amount, *, sender):
        self._notify_reward_amount(token, amount, sender)


class InternalBribe(Bribe):
    # Trading fees of the pool. Only the pool's own tokens are accepted
    def _admit_reward_token(self, token, sender):
        failwith(Errors.TOKEN_NOT_WHITELISTED)


class ExternalBribe(Bribe):
    # Third-party incentives in any token whitelisted by the voter
    def _admit_reward_token(self, token, sender):
        verify(self.contract_at(self.data.voter).is_whitelisted(token), Errors.TOKEN_NOT_WHITELISTED)
        CheckpointRewards._admit_reward_token(self, token, sender)
