from .config import Messages, RecordStoreConfig, Reward, Schedule, TriviaConfig, load_trivia_config, save_trivia_config
from .errors import ConfigError, GameModError, RecordCorruptError, SaveVerificationError
from .names import DisplayNameCache
from .ports import (
    BackpackUIPort,
    Clock,
    ConsoleCommandPort,
    MessengerPort,
    NameResolverPort,
    RandomPort,
    RewardGrantorPort,
)
from .questions import QuestionBank, load_question_bank
from .recency import RecentlyUsedIds
from .rewards import ConsoleCommandRewardGrantor
from .scheduler import SessionScheduler
from .ticker import TickDriver
from .types import (
    CommandResult,
    ItemStack,
    PersistedRoundResult,
    Phase,
    Question,
    Record,
    RecordKey,
    Round,
    RoundQuestion,
    SaveResult,
)

__all__ = [
    "SessionScheduler",
    "TickDriver",
    "QuestionBank",
    "load_question_bank",
    "RecentlyUsedIds",
    "DisplayNameCache",
    "ConsoleCommandRewardGrantor",
    "TriviaConfig",
    "Schedule",
    "Reward",
    "Messages",
    "RecordStoreConfig",
    "load_trivia_config",
    "save_trivia_config",
    "GameModError",
    "ConfigError",
    "RecordCorruptError",
    "SaveVerificationError",
    "Clock",
    "RandomPort",
    "MessengerPort",
    "RewardGrantorPort",
    "NameResolverPort",
    "ConsoleCommandPort",
    "BackpackUIPort",
    "Phase",
    "Question",
    "RoundQuestion",
    "Round",
    "PersistedRoundResult",
    "CommandResult",
    "ItemStack",
    "Record",
    "RecordKey",
    "SaveResult",
]
