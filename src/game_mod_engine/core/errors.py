from __future__ import annotations


class GameModError(Exception):
    pass


class ConfigError(GameModError):
    pass


class RecordCorruptError(GameModError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class SaveVerificationError(GameModError):
    pass
