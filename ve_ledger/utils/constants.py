# Time periods in seconds
DAY = 86400
WEEK = 7 * DAY
YEAR = 52 * WEEK
MAX_TIME = 4 * YEAR

# Increase precision during slope and associated bias calculation
SLOPE_MULTIPLIER = 10 ** 18

# Token decimals
DECIMALS = 10 ** 18

# Multiplicative precision
PRECISION = 10 ** 18

# Length of a reward distribution window
DURATION = WEEK

# Upper bound on weekly steps taken while catching up the global decay curve
MAX_CHECKPOINT_STEPS = 255

# Upper bound on supply segments integrated by a single accumulator update
MAX_ACCRUAL_RUNS = 255

# Reward tokens a single gauge or bribe may distribute
MAX_REWARD_TOKENS = 16

# Weeks processed by the epoch distributor per call
MAX_TOKEN_CHECKPOINT_WEEKS = 20
MAX_SUPPLY_CHECKPOINT_WEEKS = 20
MAX_CLAIM_WEEKS = 50

# Gauge boost split. An unboosted staker earns on 40% of the stake,
# the remaining 60% is unlocked in proportion to the attached lock's voting power
BASE_BOOST_PERCENT = 40
LOCK_BOOST_PERCENT = 60
