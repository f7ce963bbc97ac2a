from .core.config import RecordStoreConfig, TriviaConfig
from .core.questions import QuestionBank
from .core.scheduler import SessionScheduler
from .core.ticker import TickDriver
from .core.types import ItemStack, PersistedRoundResult, Phase, Record, RecordKey, SaveResult
from .mods.backpack import BackpackMod
from .mods.trivia import TriviaMod
from .persistence.record_store import RecordStore
from .persistence.round_results import JsonRoundResultRepo, SQLAlchemyRoundResultRepo
from .persistence.starter_kit import StarterKitPolicy

__all__ = [
    "SessionScheduler",
    "TickDriver",
    "QuestionBank",
    "TriviaConfig",
    "RecordStoreConfig",
    "RecordStore",
    "StarterKitPolicy",
    "JsonRoundResultRepo",
    "SQLAlchemyRoundResultRepo",
    "TriviaMod",
    "BackpackMod",
    "Phase",
    "PersistedRoundResult",
    "ItemStack",
    "Record",
    "RecordKey",
    "SaveResult",
]
