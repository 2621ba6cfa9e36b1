from ve_ledger.bribe import ExternalBribe, InternalBribe
from ve_ledger.chain import Chain
from ve_ledger.checkpoint_rewards import CheckpointRewards
from ve_ledger.fa12 import FA12
from ve_ledger.gauge import Gauge
from ve_ledger.reward_distributor import RewardsDistributor
from ve_ledger.utils.errors import ContractError
from ve_ledger.vote_escrow import EMPTY_LOCK, Lock, Point, VoteEscrow
from ve_ledger.voter import Voter

__version__ = "0.1.0"

__all__ = [
    "Chain",
    "CheckpointRewards",
    "ContractError",
    "EMPTY_LOCK",
    "ExternalBribe",
    "FA12",
    "Gauge",
    "InternalBribe",
    "Lock",
    "Point",
    "RewardsDistributor",
    "VoteEscrow",
    "Voter",
]
