from .backpack import BackpackMod, load_admin_list
from .trivia import TriviaMod

__all__ = ["BackpackMod", "TriviaMod", "load_admin_list"]
