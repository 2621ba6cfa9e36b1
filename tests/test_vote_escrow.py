import pytest

from ve_ledger import EMPTY_LOCK, ContractError, Lock
from ve_ledger.helpers import addresses as Addresses
from ve_ledger.utils.constants import DECIMALS, MAX_TIME, WEEK, YEAR
from ve_ledger.vote_escrow import Errors, FA2_Errors

# Week aligned start used by the scenarios
T = 10 * WEEK
VOTER = "tz1voter"


@pytest.fixture
def alice_lock(chain, ve, ply, fund):
    chain.travel_to(T)
    fund(ply, Addresses.ALICE, 100 * DECIMALS, spender=ve)
    return ve.create_lock(100 * DECIMALS, YEAR, sender=Addresses.ALICE)


################
# create_lock
################


def test_one_year_lock_decays_to_zero(chain, ve, ply, alice_lock):
    # When ALICE locks 100 tokens for a year she holds a quarter of the amount as voting power
    assert ve.locked(alice_lock) == Lock(amount=100 * DECIMALS, end=T + YEAR)
    assert ve.owner_of(alice_lock) == Addresses.ALICE
    assert abs(ve.voting_power_of(alice_lock) - 25 * DECIMALS) <= 1

    # Halfway through the lock
    chain.travel_to(T + YEAR // 2)
    assert abs(ve.voting_power_of(alice_lock) - (25 * DECIMALS) // 2) <= 1

    # At the end
    chain.travel_to(T + YEAR)
    assert ve.voting_power_of(alice_lock) == 0
    assert ve.total_voting_power_at() == 0

    ve.withdraw(alice_lock, sender=Addresses.ALICE)

    assert ply.get_balance(Addresses.ALICE) == 100 * DECIMALS
    assert ve.owner_of(alice_lock) is None
    assert ve.locked(alice_lock) == EMPTY_LOCK
    assert ve.get_locked_supply() == 0


def test_create_lock_stores_checkpoints_and_events(chain, ve, ply, alice_lock):
    assert ply.get_balance(ve.address) == 100 * DECIMALS
    assert ve.get_locked_supply() == 100 * DECIMALS
    assert ve.first_checkpoint_ts(alice_lock) == T
    assert ve.data.slope_changes[T + YEAR] == ve.user_point_history(alice_lock)[0].slope

    deposit = chain.events_named("Deposit", ve)[-1]
    assert deposit["token_id"] == alice_lock
    assert deposit["kind"] == "create_lock"
    assert deposit["end"] == T + YEAR


def test_create_lock_rounds_end_down_to_a_week(chain, ve, ply, fund):
    chain.travel_to(T + 3 * 86400)
    fund(ply, Addresses.ALICE, DECIMALS, spender=ve)

    token_id = ve.create_lock(DECIMALS, 2 * WEEK, sender=Addresses.ALICE)

    assert ve.locked(token_id).end == T + 2 * WEEK


def test_create_lock_for_another_owner(chain, ve, ply, fund):
    chain.travel_to(T)
    fund(ply, Addresses.ALICE, DECIMALS, spender=ve)

    token_id = ve.create_lock(DECIMALS, WEEK, to=Addresses.BOB, sender=Addresses.ALICE)

    assert ve.owner_of(token_id) == Addresses.BOB
    assert ply.get_balance(Addresses.ALICE) == 0


def test_create_lock_failures(chain, ve, ply, fund):
    chain.travel_to(T)
    fund(ply, Addresses.ALICE, 100 * DECIMALS, spender=ve)

    # When ALICE locks nothing
    with pytest.raises(ContractError, match=Errors.INVALID_LOCK_VALUE):
        ve.create_lock(0, YEAR, sender=Addresses.ALICE)

    # When the rounded end is not in the future
    with pytest.raises(ContractError, match=Errors.INVALID_LOCK_TIME):
        ve.create_lock(DECIMALS, WEEK - 1, sender=Addresses.ALICE)

    # When the lock is longer than the maximum
    with pytest.raises(ContractError, match=Errors.INVALID_LOCK_TIME):
        ve.create_lock(DECIMALS, MAX_TIME + WEEK, sender=Addresses.ALICE)

    # When ALICE does not hold enough tokens nothing is minted
    with pytest.raises(ContractError):
        ve.create_lock(200 * DECIMALS, YEAR, sender=Addresses.ALICE)

    assert ve.data.uid == 0
    assert ve.get_locked_supply() == 0


def test_max_length_lock(chain, ve, ply, fund):
    chain.travel_to(T)
    fund(ply, Addresses.ALICE, 100 * DECIMALS, spender=ve)

    token_id = ve.create_lock(100 * DECIMALS, MAX_TIME, sender=Addresses.ALICE)

    assert 100 * DECIMALS - 1 <= ve.voting_power_of(token_id) <= 100 * DECIMALS


#####################
# Increasing a lock
#####################


def test_increase_amount(chain, ve, ply, fund, alice_lock):
    fund(ply, Addresses.ALICE, 100 * DECIMALS)

    ve.increase_amount(alice_lock, 100 * DECIMALS, sender=Addresses.ALICE)

    assert ve.locked(alice_lock) == Lock(amount=200 * DECIMALS, end=T + YEAR)
    assert abs(ve.voting_power_of(alice_lock) - 50 * DECIMALS) <= 1
    assert ve.get_locked_supply() == 200 * DECIMALS

    with pytest.raises(ContractError, match=Errors.INVALID_INCREASE_VALUE):
        ve.increase_amount(alice_lock, 0, sender=Addresses.ALICE)

    with pytest.raises(ContractError, match=Errors.NOT_AUTHORISED):
        ve.increase_amount(alice_lock, DECIMALS, sender=Addresses.BOB)

    chain.travel_to(T + YEAR)
    with pytest.raises(ContractError, match=Errors.LOCK_HAS_EXPIRED):
        ve.increase_amount(alice_lock, DECIMALS, sender=Addresses.ALICE)


def test_deposit_for_is_open_to_anyone(ve, ply, fund, alice_lock):
    fund(ply, Addresses.BOB, 10 * DECIMALS, spender=ve)

    # When BOB tops up ALICE's lock
    ve.deposit_for(alice_lock, 10 * DECIMALS, sender=Addresses.BOB)

    assert ve.locked(alice_lock).amount == 110 * DECIMALS
    assert ve.owner_of(alice_lock) == Addresses.ALICE
    assert ply.get_balance(Addresses.BOB) == 0

    with pytest.raises(ContractError, match=Errors.LOCK_DOES_NOT_EXIST):
        ve.deposit_for(99, DECIMALS, sender=Addresses.BOB)


def test_increase_unlock_time(chain, ve, alice_lock):
    ve.increase_unlock_time(alice_lock, 2 * YEAR, sender=Addresses.ALICE)

    assert ve.locked(alice_lock) == Lock(amount=100 * DECIMALS, end=T + 2 * YEAR)
    assert abs(ve.voting_power_of(alice_lock) - 50 * DECIMALS) <= 1
    assert ve.data.slope_changes[T + YEAR] == 0

    # The end cannot move backwards or past the maximum
    with pytest.raises(ContractError, match=Errors.INVALID_INCREASE_END_TIMESTAMP):
        ve.increase_unlock_time(alice_lock, YEAR, sender=Addresses.ALICE)

    with pytest.raises(ContractError, match=Errors.INVALID_LOCK_TIME):
        ve.increase_unlock_time(alice_lock, MAX_TIME + WEEK, sender=Addresses.ALICE)

    chain.travel_to(T + 2 * YEAR)
    with pytest.raises(ContractError, match=Errors.LOCK_HAS_EXPIRED):
        ve.increase_unlock_time(alice_lock, YEAR, sender=Addresses.ALICE)


###########
# Merging
###########


def test_merge(chain, ve, ply, fund, alice_lock):
    fund(ply, Addresses.ALICE, 100 * DECIMALS)
    second = ve.create_lock(100 * DECIMALS, 2 * YEAR, sender=Addresses.ALICE)

    ve.merge(alice_lock, second, sender=Addresses.ALICE)

    assert ve.owner_of(alice_lock) is None
    assert ve.locked(alice_lock) == EMPTY_LOCK
    assert ve.locked(second) == Lock(amount=200 * DECIMALS, end=T + 2 * YEAR)
    assert ve.get_locked_supply() == 200 * DECIMALS
    assert ply.get_balance(ve.address) == 200 * DECIMALS

    # The merged lock is the only source of voting power
    assert abs(ve.voting_power_of(second) - 100 * DECIMALS) <= 1
    assert 0 <= ve.total_voting_power_at() - ve.voting_power_of(second) <= 1


def test_merge_failures(ve, ply, fund, alice_lock):
    with pytest.raises(ContractError, match=Errors.SAME_LOCK_MERGE):
        ve.merge(alice_lock, alice_lock, sender=Addresses.ALICE)

    fund(ply, Addresses.BOB, DECIMALS, spender=ve)
    bobs = ve.create_lock(DECIMALS, YEAR, sender=Addresses.BOB)

    with pytest.raises(ContractError, match=Errors.NOT_AUTHORISED):
        ve.merge(alice_lock, bobs, sender=Addresses.ALICE)


##############
# Withdrawal
##############


def test_withdraw_before_end_fails(chain, ve, alice_lock):
    chain.travel_to(T + YEAR - 1)

    with pytest.raises(ContractError) as exc:
        ve.withdraw(alice_lock, sender=Addresses.ALICE)
    assert exc.value.code == Errors.LOCK_YET_TO_EXPIRE
    assert exc.value.is_temporal


def test_withdraw_by_operator_pays_the_operator(chain, ve, ply, alice_lock):
    ve.add_operator(Addresses.BOB, alice_lock, sender=Addresses.ALICE)
    chain.travel_to(T + YEAR)

    ve.withdraw(alice_lock, sender=Addresses.BOB)

    assert ply.get_balance(Addresses.BOB) == 100 * DECIMALS


##################
# Lock ownership
##################


def test_transfer(ve, alice_lock):
    ve.transfer(Addresses.ALICE, Addresses.BOB, alice_lock, sender=Addresses.ALICE)
    assert ve.owner_of(alice_lock) == Addresses.BOB

    with pytest.raises(ContractError, match=FA2_Errors.FA2_NOT_OWNER):
        ve.transfer(Addresses.ALICE, Addresses.BOB, alice_lock, sender=Addresses.ALICE)

    with pytest.raises(ContractError, match=FA2_Errors.FA2_NOT_OPERATOR):
        ve.transfer(Addresses.BOB, Addresses.JOHN, alice_lock, sender=Addresses.ALICE)

    with pytest.raises(ContractError, match=FA2_Errors.FA2_TOKEN_UNDEFINED):
        ve.transfer(Addresses.BOB, Addresses.JOHN, 99, sender=Addresses.BOB)


def test_operators_are_cleared_on_transfer(ve, alice_lock):
    ve.add_operator(Addresses.JOHN, alice_lock, sender=Addresses.ALICE)
    assert ve.is_approved_or_owner(Addresses.JOHN, alice_lock)

    # When JOHN moves the lock to BOB as ALICE's operator
    ve.transfer(Addresses.ALICE, Addresses.BOB, alice_lock, sender=Addresses.JOHN)

    assert ve.owner_of(alice_lock) == Addresses.BOB
    assert not ve.is_approved_or_owner(Addresses.JOHN, alice_lock)

    with pytest.raises(ContractError, match=FA2_Errors.FA2_NOT_OWNER):
        ve.add_operator(Addresses.JOHN, alice_lock, sender=Addresses.ALICE)


def test_attached_or_voting_locks_cannot_move(chain, ve, alice_lock):
    ve.set_voter(VOTER, sender=Addresses.ADMIN)

    with pytest.raises(ContractError, match=Errors.VOTER_ALREADY_SET):
        ve.set_voter(Addresses.BOB, sender=Addresses.ADMIN)

    with pytest.raises(ContractError, match=Errors.NOT_AUTHORISED):
        ve.attach(alice_lock, sender=Addresses.ALICE)

    ve.attach(alice_lock, sender=VOTER)
    assert ve.is_attached(alice_lock)
    with pytest.raises(ContractError, match=Errors.LOCK_IS_ATTACHED):
        ve.transfer(Addresses.ALICE, Addresses.BOB, alice_lock, sender=Addresses.ALICE)
    ve.detach(alice_lock, sender=VOTER)

    ve.voting(alice_lock, sender=VOTER)
    assert ve.is_voting(alice_lock)
    with pytest.raises(ContractError, match=Errors.LOCK_IS_VOTING):
        ve.transfer(Addresses.ALICE, Addresses.BOB, alice_lock, sender=Addresses.ALICE)

    chain.travel_to(T + YEAR)
    with pytest.raises(ContractError, match=Errors.LOCK_IS_VOTING):
        ve.withdraw(alice_lock, sender=Addresses.ALICE)

    ve.abstain(alice_lock, sender=VOTER)
    ve.withdraw(alice_lock, sender=Addresses.ALICE)


###############
# Checkpoints
###############


def test_historical_voting_power(chain, ve, ply, fund, alice_lock):
    chain.travel_to(T + 4 * WEEK)
    fund(ply, Addresses.BOB, 100 * DECIMALS, spender=ve)
    bobs = ve.create_lock(100 * DECIMALS, YEAR, sender=Addresses.BOB)
    chain.travel_to(T + 30 * WEEK)

    # Nothing existed before the locks were created
    assert ve.voting_power_of(alice_lock, T - 1) == 0
    assert ve.voting_power_of(bobs, T + 4 * WEEK - 1) == 0
    assert ve.total_voting_power_at(0) == 0

    # Past reads replay the decay from the nearest earlier point
    assert abs(ve.voting_power_of(alice_lock, T + 26 * WEEK) - (25 * DECIMALS) // 2) <= 1
    assert ve.voting_power_of(bobs, T + 4 * WEEK) == ve.user_point_history(bobs)[0].bias // 10 ** 18


def test_total_voting_power_is_the_sum_of_locks(chain, ve, ply, fund):
    chain.travel_to(T)
    token_ids = []
    for i, owner in enumerate((Addresses.ALICE, Addresses.BOB, Addresses.JOHN)):
        fund(ply, owner, (i + 1) * 10 * DECIMALS, spender=ve)
        token_ids.append(ve.create_lock((i + 1) * 10 * DECIMALS, (i + 1) * YEAR, sender=owner))
        chain.advance(3 * 86400)

    for ts in (T + 2 * WEEK, T + 40 * WEEK, T + 60 * WEEK, T + 2 * YEAR, T + 3 * YEAR + WEEK):
        chain.travel_to(ts)
        ve.checkpoint(sender=Addresses.MIKE)

        total = ve.total_voting_power_at()
        summed = sum(ve.voting_power_of(token_id) for token_id in token_ids)

        # Each lock's read is floored separately
        assert 0 <= total - summed < len(token_ids)


def test_checkpoint_catches_up_in_bounded_steps(chain, ve, ply, fund):
    fund(ply, Addresses.ALICE, DECIMALS, spender=ve)

    # When the global curve falls more than 255 weeks behind
    chain.travel_to(600 * WEEK)

    assert ve.checkpoint(100, sender=Addresses.MIKE) is False
    assert ve.data.global_checkpoints[-1].ts == 100 * WEEK

    # Mutations need the curve to be caught up
    with pytest.raises(ContractError) as exc:
        ve.create_lock(DECIMALS, YEAR, sender=Addresses.ALICE)
    assert exc.value.code == Errors.CHECKPOINT_CATCH_UP_REQUIRED
    assert exc.value.is_temporal

    assert ve.checkpoint(sender=Addresses.MIKE) is False
    assert ve.checkpoint(sender=Addresses.MIKE) is True
    assert ve.data.global_checkpoints[-1].ts == 600 * WEEK

    token_id = ve.create_lock(DECIMALS, YEAR, sender=Addresses.ALICE)
    assert ve.voting_power_of(token_id) > 0
