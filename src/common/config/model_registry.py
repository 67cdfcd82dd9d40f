"""app.yamlから名前付きChatModelレジストリを構築する."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from langchain_core.language_models import BaseChatModel

from src.common.schema.model_registry import ModelRegistryFile
from src.components.llm_client.client import create_chat_model

logger = logging.getLogger(__name__)


def resolve_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """`_env`サフィックスのキーを環境変数の値に置き換える.

    `api_key_env: OPENAI_API_KEY` は `api_key: <環境変数の値>` になる.
    未設定の環境変数はNoneとなる.
    """
    resolved: dict[str, Any] = {}
    for key, value in config.items():
        if key.endswith("_env"):
            resolved[key.removesuffix("_env")] = os.getenv(str(value))
        else:
            resolved[key] = value
    return resolved


class ModelRegistryLoader:
    """app.yamlを読み込みChatModelレジストリを生成するローダー."""

    def __init__(self, config_path: str = "config/app.yaml") -> None:
        """ModelRegistryLoaderを初期化する.

        Args:
            config_path: 設定ファイルのパス
        """
        self.config_path = Path(config_path)

    def load(self) -> ModelRegistryFile:
        """YAMLを読み込みPydanticモデルに変換する.

        Raises:
            FileNotFoundError: 設定ファイルが存在しない場合
            yaml.YAMLError: YAML構文が不正な場合
        """
        if not self.config_path.exists():
            msg = f"設定ファイルが見つからない: {self.config_path}"
            raise FileNotFoundError(msg)
        data = yaml.safe_load(self.config_path.read_text(encoding="utf-8")) or {}
        return ModelRegistryFile.model_validate(data)

    def build(self) -> dict[str, BaseChatModel]:
        """定義された全ChatModelを生成し、名前をキーとする辞書で返す."""
        registry: dict[str, BaseChatModel] = {}
        for provider, entry in self.load().chat_models.entries():
            config = resolve_env_vars(entry.config)
            params = {k: v for k, v in entry.default_params.items() if v is not None}
            model_name = config.pop("model", None) or config.pop("model_id", "")
            registry[entry.name] = create_chat_model(provider, model_name, **config, **params)
            logger.info("Registered chat model '%s' (%s)", entry.name, provider)
        return registry


def select_chat_model(registry: dict[str, BaseChatModel], name: str) -> BaseChatModel:
    """名前を指定してレジストリからChatModelを取り出す.

    Raises:
        KeyError: 名前が登録されていない場合
    """
    if name not in registry:
        msg = f"ChatModel '{name}' が見つからない. 利用可能: {sorted(registry)}"
        raise KeyError(msg)
    return registry[name]
