"""ConfigurationStore 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import FlagDefinition, Override, SubjectType


class ConfigurationStore(ABC):
    """フラグ定義とオーバーライドを保持する設定ストア。

    評価器は読み込み系のみを使用し、書き込み系は管理操作から呼ばれる。
    """

    @abstractmethod
    async def get_flag_definition(self, flag_key: str) -> FlagDefinition | None:
        """フラグ定義を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def get_override(
        self, flag_key: str, subject_type: SubjectType, subject_id: str
    ) -> str | None:
        """オーバーライド値（文字列表現）を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def save_flag_definition(self, definition: FlagDefinition) -> None:
        """フラグ定義を作成または置換する。"""
        ...

    @abstractmethod
    async def delete_flag_definition(self, flag_key: str) -> bool:
        """フラグ定義とそのオーバーライドを削除する。削除できたら True。"""
        ...

    @abstractmethod
    async def save_override(self, override: Override) -> None:
        """オーバーライドを作成または置換する。"""
        ...

    @abstractmethod
    async def delete_override(
        self, flag_key: str, subject_type: SubjectType, subject_id: str
    ) -> bool:
        """オーバーライドを削除する。削除できたら True。"""
        ...
