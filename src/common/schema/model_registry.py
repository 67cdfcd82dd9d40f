"""config/app.yamlのChatModel定義スキーマ."""

from typing import Any, Literal

from pydantic import BaseModel, Field

Provider = Literal["openai", "azure", "bedrock"]


class NamedModelEntry(BaseModel):
    """名前付きChatModelの定義.

    configの`_env`サフィックス付きキーは環境変数名として解決される.
    """

    name: str
    config: dict[str, Any]
    default_params: dict[str, Any] = Field(default_factory=dict)


class ProviderModels(BaseModel):
    """プロバイダごとのChatModel定義リスト."""

    openai: list[NamedModelEntry] = Field(default_factory=list)
    azure: list[NamedModelEntry] = Field(default_factory=list)
    bedrock: list[NamedModelEntry] = Field(default_factory=list)

    def entries(self) -> list[tuple[Provider, NamedModelEntry]]:
        """(プロバイダ名, 定義)のペアを宣言順に返す."""
        pairs: list[tuple[Provider, NamedModelEntry]] = []
        pairs.extend(("openai", entry) for entry in self.openai)
        pairs.extend(("azure", entry) for entry in self.azure)
        pairs.extend(("bedrock", entry) for entry in self.bedrock)
        return pairs


class ModelRegistryFile(BaseModel):
    """app.yaml全体のルートモデル."""

    chat_models: ProviderModels = Field(default_factory=ProviderModels)
