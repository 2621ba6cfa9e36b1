class ContractError(Exception):
    """Raised by an entry point that refuses to run. ``code`` is one of the error strings below."""

    def __init__(self, code, message=None):
        super().__init__(code if message is None else f"{code}: {message}")
        self.code = code

    @property
    def is_temporal(self):
        # The same call may succeed at a later time or after a catch-up call
        return self.code in TEMPORAL


def verify(condition, error, message=None):
    if not condition:
        raise ContractError(error, message)


def failwith(error, message=None):
    raise ContractError(error, message)


def as_nat(value, error=None):
    if value < 0:
        raise ContractError(error or NEGATIVE_VALUE)
    return value


# Generic
NOT_AUTHORISED = "NOT_AUTHORISED"
NEGATIVE_VALUE = "NEGATIVE_VALUE"
REENTRANT_CALL = "REENTRANT_CALL"
INVALID_CONTRACT = "INVALID_CONTRACT"
NOT_A_TOKEN = "NOT_A_TOKEN"

# Escrow
SENDER_DOES_NOT_OWN_LOCK = "SENDER_DOES_NOT_OWN_LOCK"
LOCK_DOES_NOT_EXIST = "LOCK_DOES_NOT_EXIST"
LOCK_YET_TO_EXPIRE = "LOCK_YET_TO_EXPIRE"
CHECKPOINT_CATCH_UP_REQUIRED = "CHECKPOINT_CATCH_UP_REQUIRED"

# Reward accrual
INVALID_REWARD_AMOUNT = "INVALID_REWARD_AMOUNT"
REWARD_RATE_TOO_LOW = "REWARD_RATE_TOO_LOW"
REWARD_TOO_HIGH = "REWARD_TOO_HIGH"
REWARD_NOT_FUNDED = "REWARD_NOT_FUNDED"
TOKEN_NOT_WHITELISTED = "TOKEN_NOT_WHITELISTED"
TOO_MANY_REWARD_TOKENS = "TOO_MANY_REWARD_TOKENS"
REWARD_CATCH_UP_REQUIRED = "REWARD_CATCH_UP_REQUIRED"
CANNOT_REWARD_STAKE_TOKEN = "CANNOT_REWARD_STAKE_TOKEN"
ZERO_DEPOSIT_NOT_ALLOWED = "ZERO_DEPOSIT_NOT_ALLOWED"
ZERO_WITHDRAWAL_NOT_ALLOWED = "ZERO_WITHDRAWAL_NOT_ALLOWED"
INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
TOKEN_ID_MISMATCH = "TOKEN_ID_MISMATCH"

# Voter
GAUGE_EXISTS = "GAUGE_EXISTS"
GAUGE_DOES_NOT_EXIST = "GAUGE_DOES_NOT_EXIST"
GAUGE_NOT_ALIVE = "GAUGE_NOT_ALIVE"
GAUGE_ALREADY_ALIVE = "GAUGE_ALREADY_ALIVE"
NOT_A_POOL = "NOT_A_POOL"
POOL_HAS_NO_GAUGE = "POOL_HAS_NO_GAUGE"
LENGTH_MISMATCH = "LENGTH_MISMATCH"
EMPTY_VOTE = "EMPTY_VOTE"
ZERO_VOTE_NOT_ALLOWED = "ZERO_VOTE_NOT_ALLOWED"
DUPLICATE_POOL_VOTE = "DUPLICATE_POOL_VOTE"
NO_VOTING_POWER = "NO_VOTING_POWER"
NO_VOTES_CAST = "NO_VOTES_CAST"
ALREADY_VOTED_THIS_EPOCH = "ALREADY_VOTED_THIS_EPOCH"

# Failures that clear up once time passes or a catch-up call has been made
TEMPORAL = frozenset(
    {
        REWARD_CATCH_UP_REQUIRED,
        ALREADY_VOTED_THIS_EPOCH,
        LOCK_YET_TO_EXPIRE,
        CHECKPOINT_CATCH_UP_REQUIRED,
    }
)
