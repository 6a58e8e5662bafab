"""InMemoryConfigurationStore 実装"""

from __future__ import annotations

from collections.abc import Iterable

from .models import FlagDefinition, Override, SubjectType
from .store import ConfigurationStore


class InMemoryConfigurationStore(ConfigurationStore):
    """テスト・開発用インメモリ設定ストア。"""

    def __init__(self, definitions: Iterable[FlagDefinition] = ()) -> None:
        self._flags: dict[str, FlagDefinition] = {}
        self._overrides: dict[tuple[str, SubjectType, str], str] = {}
        for definition in definitions:
            self._flags[definition.key] = definition

    def set_flag(self, definition: FlagDefinition) -> None:
        """フラグ定義を同期的に設定する。"""
        self._flags[definition.key] = definition

    def set_override(self, override: Override) -> None:
        """オーバーライドを同期的に設定する。"""
        key = (override.flag_key, override.subject_type, override.subject_id)
        self._overrides[key] = override.value

    async def get_flag_definition(self, flag_key: str) -> FlagDefinition | None:
        return self._flags.get(flag_key)

    async def get_override(
        self, flag_key: str, subject_type: SubjectType, subject_id: str
    ) -> str | None:
        return self._overrides.get((flag_key, subject_type, subject_id))

    async def save_flag_definition(self, definition: FlagDefinition) -> None:
        self.set_flag(definition)

    async def delete_flag_definition(self, flag_key: str) -> bool:
        if self._flags.pop(flag_key, None) is None:
            return False
        for key in [k for k in self._overrides if k[0] == flag_key]:
            del self._overrides[key]
        return True

    async def save_override(self, override: Override) -> None:
        self.set_override(override)

    async def delete_override(
        self, flag_key: str, subject_type: SubjectType, subject_id: str
    ) -> bool:
        return self._overrides.pop((flag_key, subject_type, subject_id), None) is not None
