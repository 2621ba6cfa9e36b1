import logging

import ve_ledger.utils.errors as Errors
from ve_ledger.utils.checkpoints import prior_index, value_at, write_checkpoint
from ve_ledger.utils.constants import DURATION, MAX_ACCRUAL_RUNS, MAX_REWARD_TOKENS, PRECISION
from ve_ledger.utils.contract import Contract, entry_point
from ve_ledger.utils.errors import as_nat, verify
from ve_ledger.utils.token import get_balance, transfer_FA12

log = logging.getLogger(__name__)


class CheckpointRewards(Contract):
    """Pro-rata reward accrual over a checkpointed balance history.

    Every balance change writes a balance checkpoint for the account and a supply
    checkpoint. Reward-per-unit is integrated lazily across supply segments and
    recorded per reward token, so that ``earned`` can replay any account's history
    against it. Subclasses decide who may move balances and who may claim.
    """

    def __init__(self, voter, rewards=(), **extra_storage):
        self.init(
            voter=voter,
            # Reward-bearing balances
            total_supply=0,
            balances={},
            balance_checkpoints={},
            supply_checkpoints=[],
            # Reward tokens
            rewards=list(rewards),
            is_reward=set(rewards),
            reward_rate={},
            period_finish={},
            last_update_time={},
            reward_per_token_stored={},
            reward_per_token_checkpoints={},
            # Per account claim ledgers, keyed by (token, account)
            last_earn={},
            user_reward_per_token_stored={},
            **extra_storage,
        )

    ##########################
    # Balance bookkeeping
    ##########################

    def _set_balance(self, account, value):
        previous = self.data.balances.get(account, 0)
        self.data.total_supply = as_nat(self.data.total_supply - previous) + value
        self.data.balances[account] = value

        now_ = self.now

        write_checkpoint(self.data.balance_checkpoints.setdefault(account, []), now_, value)
        write_checkpoint(self.data.supply_checkpoints, now_, self.data.total_supply)

    def _deposit(self, amount, account):
        verify(amount > 0, Errors.ZERO_DEPOSIT_NOT_ALLOWED)

        self._update_all_rewards()
        self._set_balance(account, self.data.balances.get(account, 0) + amount)

    def _withdraw(self, amount, account):
        verify(amount > 0, Errors.ZERO_WITHDRAWAL_NOT_ALLOWED)
        balance = self.data.balances.get(account, 0)
        verify(balance >= amount, Errors.INSUFFICIENT_BALANCE)

        self._update_all_rewards()
        self._set_balance(account, balance - amount)

    ##########################
    # Reward-per-unit integration
    ##########################

    def last_time_reward_applicable(self, token):
        return min(self.now, self.data.period_finish.get(token, 0))

    def left(self, token):
        now_ = self.now

        period_finish = self.data.period_finish.get(token, 0)
        if now_ >= period_finish:
            return 0
        return (period_finish - now_) * self.data.reward_rate.get(token, 0)

    def _calc_reward_per_token(self, token, ts1, ts0, supply, start_ts):
        period_finish = self.data.period_finish.get(token, 0)
        end_time = max(ts1, start_ts)
        begin = min(max(ts0, start_ts), period_finish)
        elapsed = max(min(end_time, period_finish) - begin, 0)
        return (elapsed * self.data.reward_rate.get(token, 0) * PRECISION) // supply, end_time

    def _accumulate(self, token, max_runs=None, write=True):
        """Integrate reward-per-unit for ``token`` across at most ``max_runs`` supply segments.

        Returns ``(reward_per_token, last_update_time, caught_up)``. With ``write`` unset,
        nothing is stored and the returned value is what a full update would produce.
        """
        now_ = self.now

        start_ts = self.data.last_update_time.get(token, 0)
        reward = self.data.reward_per_token_stored.get(token, 0)

        checkpoints = self.data.supply_checkpoints
        if not checkpoints:
            return reward, start_ts, True

        # Nothing accrues while the rate is zero
        if self.data.reward_rate.get(token, 0) == 0:
            return reward, now_, True

        start_index = prior_index(checkpoints, start_ts) or 0
        end_index = len(checkpoints) - 1
        if max_runs is not None:
            end_index = min(end_index, start_index + max_runs)

        for i in range(start_index, end_index):
            sp0 = checkpoints[i]
            sp1 = checkpoints[i + 1]
            if sp0.value > 0:
                delta, end_time = self._calc_reward_per_token(token, sp1.ts, sp0.ts, sp0.value, start_ts)
                reward += delta
                if write and delta > 0:
                    self._write_reward_per_token(token, reward, end_time)
                start_ts = end_time
            else:
                # Nothing accrues on an empty segment, but the cursor still moves past it
                start_ts = max(start_ts, sp1.ts)

        caught_up = end_index == len(checkpoints) - 1
        if caught_up:
            # The open segment runs up to now at the latest supply
            sp = checkpoints[end_index]
            if sp.value > 0:
                delta, _ = self._calc_reward_per_token(
                    token, self.last_time_reward_applicable(token), max(sp.ts, start_ts), sp.value, start_ts
                )
                reward += delta
                if write and delta > 0:
                    self._write_reward_per_token(token, reward, now_)
                start_ts = now_

        return reward, start_ts, caught_up

    def _write_reward_per_token(self, token, reward, ts):
        write_checkpoint(self.data.reward_per_token_checkpoints.setdefault(token, []), ts, reward)

    def _update_reward_per_token(self, token, max_runs=MAX_ACCRUAL_RUNS):
        reward, last_update, caught_up = self._accumulate(token, max_runs)
        self.data.reward_per_token_stored[token] = reward
        self.data.last_update_time[token] = last_update
        if not caught_up:
            log.debug("reward per token for %s caught up to %s", token, last_update)
        return caught_up

    def _update_all_rewards(self):
        for token in self.data.rewards:
            self._update_reward_per_token(token)

    def _require_caught_up(self, token):
        verify(self._update_reward_per_token(token), Errors.REWARD_CATCH_UP_REQUIRED)

    @entry_point
    def batch_reward_per_token(self, token, max_runs, *, sender=None):
        """Resumable catch-up of the accumulator. Returns True once it covers every supply checkpoint."""
        return self._update_reward_per_token(token, max_runs)

    def reward_per_token(self, token):
        return self._accumulate(token, write=False)[0]

    ###########
    # Earnings
    ###########

    def earned(self, token, account):
        checkpoints = self.data.balance_checkpoints.get(account, [])
        if not checkpoints:
            return 0

        rpt_checkpoints = self.data.reward_per_token_checkpoints.get(token, [])
        paid = self.data.user_reward_per_token_stored.get((token, account), 0)

        first_rpt_ts = rpt_checkpoints[0].ts if rpt_checkpoints else 0
        start_ts = max(self.data.last_earn.get((token, account), 0), first_rpt_ts)
        start_index = prior_index(checkpoints, start_ts) or 0
        end_index = len(checkpoints) - 1

        reward = 0
        for i in range(start_index, end_index):
            cp0 = checkpoints[i]
            cp1 = checkpoints[i + 1]
            # Anything below the already paid accumulator value was settled by an earlier claim
            rpt0 = max(value_at(rpt_checkpoints, cp0.ts), paid)
            rpt1 = value_at(rpt_checkpoints, cp1.ts)
            if rpt1 > rpt0:
                reward += (cp0.value * (rpt1 - rpt0)) // PRECISION

        cp = checkpoints[end_index]
        rpt_last = max(value_at(rpt_checkpoints, cp.ts), paid)
        current = self.reward_per_token(token)
        if current > rpt_last:
            reward += (cp.value * (current - rpt_last)) // PRECISION

        return reward

    def _get_reward(self, account, tokens, recipient):
        now_ = self.now

        for token in tokens:
            verify(token in self.data.period_finish, Errors.REWARD_NOT_FUNDED)
            self._require_caught_up(token)

            reward = self.earned(token, account)
            self.data.last_earn[(token, account)] = now_
            self.data.user_reward_per_token_stored[(token, account)] = self.data.reward_per_token_stored[token]

            transfer_FA12(self, token, self.address, recipient, reward)

            self.emit("ClaimRewards", account=account, recipient=recipient, token=token, amount=reward)

    ##########
    # Funding
    ##########

    def _admit_reward_token(self, token, sender):
        # Override to restrict which tokens may be added to the rewards list
        verify(len(self.data.rewards) < MAX_REWARD_TOKENS, Errors.TOO_MANY_REWARD_TOKENS)

    def _notify_reward_amount(self, token, amount, sender):
        verify(amount > 0, Errors.INVALID_REWARD_AMOUNT)
        if token not in self.data.is_reward:
            self._admit_reward_token(token, sender)

        now_ = self.now

        rate = self.data.reward_rate.get(token, 0)
        if rate == 0:
            self._write_reward_per_token(token, self.data.reward_per_token_stored.get(token, 0), now_)

        # Accrue at the old rate before changing it
        self._require_caught_up(token)

        period_finish = self.data.period_finish.get(token, 0)
        if now_ >= period_finish:
            transfer_FA12(self, token, sender, self.address, amount)
            rate = amount // DURATION
        else:
            remaining = (period_finish - now_) * rate
            transfer_FA12(self, token, sender, self.address, amount)
            rate = (amount + remaining) // DURATION

        verify(rate > 0, Errors.REWARD_RATE_TOO_LOW)

        # Custody must cover the full window at the new rate
        balance = get_balance(self, token)
        verify(rate <= balance // DURATION, Errors.REWARD_TOO_HIGH)

        self.data.reward_rate[token] = rate
        self.data.period_finish[token] = now_ + DURATION
        self.data.last_update_time[token] = now_

        if token not in self.data.is_reward:
            self.data.is_reward.add(token)
            self.data.rewards.append(token)

        self.emit("NotifyReward", sender=sender, token=token, amount=amount, rate=rate)

    #########
    # Views
    #########

    def balance_of(self, account):
        return self.data.balances.get(account, 0)

    def rewards_list_length(self):
        return len(self.data.rewards)
