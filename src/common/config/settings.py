"""アプリケーション設定の管理."""

import os

from pydantic import BaseModel, Field, ValidationError

from src.common.defs.errors import InvalidConfig


class ModelsConfig(BaseModel):
    """ChatModelレジストリ設定."""

    config_path: str = "config/app.yaml"
    generator: str = "generator"
    reviewer: str = "reviewer"


class EmbeddingConfig(BaseModel):
    """Embedding設定."""

    model: str = "text-embedding-3-small"
    api_key: str = ""


class SubsidyConfig(BaseModel):
    """補助金データ・ログの配置設定."""

    index_path: str = "data/subsidies/index/master-index.json"
    validation_log_dir: str = "data/validation_logs"
    prompts_dir: str = "prompts"


class SearchConfig(BaseModel):
    """検索設定."""

    alpha: float = Field(default=0.5, ge=0.0, le=1.0)
    top_k: int = Field(default=10, ge=1)


class ValidationConfig(BaseModel):
    """フィードバックループ検証の設定."""

    max_loops: int = Field(default=2, ge=1)
    score_improvement_threshold: int = Field(default=15, ge=0)
    pass_threshold: int = Field(default=85, ge=0, le=100)
    enable_progressive_hints: bool = True
    enable_failure_analysis: bool = True
    enable_logging: bool = True
    timeout_seconds: float | None = Field(default=None, gt=0)


class AppConfig(BaseModel):
    """アプリケーション全体の設定."""

    models: ModelsConfig = Field(default_factory=ModelsConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    subsidy: SubsidyConfig = Field(default_factory=SubsidyConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)


def _env_flag(name: str) -> bool:
    """"false"以外を真とみなすフラグ環境変数を読む."""
    return os.getenv(name, "true").strip().lower() != "false"


def _env_optional_float(name: str) -> float | None:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


def load_validation_config() -> ValidationConfig:
    """環境変数から検証ループ設定を読み込む.

    Returns:
        検証ループ設定

    Raises:
        InvalidConfig: 値が範囲外または数値として解析できない場合
    """
    try:
        return ValidationConfig(
            max_loops=int(os.getenv("MAX_VALIDATION_LOOPS", "2")),
            score_improvement_threshold=int(os.getenv("SCORE_IMPROVEMENT_THRESHOLD", "15")),
            pass_threshold=int(os.getenv("REVIEW_SCORE_THRESHOLD", "85")),
            enable_progressive_hints=_env_flag("ENABLE_PROGRESSIVE_HINTS"),
            enable_failure_analysis=_env_flag("ENABLE_FAILURE_ANALYSIS"),
            enable_logging=_env_flag("ENABLE_VALIDATION_LOGGING"),
            timeout_seconds=_env_optional_float("VALIDATION_TIMEOUT_SECONDS"),
        )
    except (ValidationError, ValueError) as e:
        msg = f"検証ループ設定が不正です: {e}"
        raise InvalidConfig(msg) from e


def load_config() -> AppConfig:
    """環境変数から設定を読み込む.

    Returns:
        アプリケーション設定

    Raises:
        InvalidConfig: 設定値が不正な場合
    """
    validation = load_validation_config()
    try:
        return AppConfig(
            models=ModelsConfig(
                config_path=os.getenv("APP_CONFIG_PATH", "config/app.yaml"),
                generator=os.getenv("GENERATOR_MODEL_NAME", "generator"),
                reviewer=os.getenv("REVIEWER_MODEL_NAME", "reviewer"),
            ),
            embedding=EmbeddingConfig(
                model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
                api_key=os.getenv("OPENAI_API_KEY", ""),
            ),
            subsidy=SubsidyConfig(
                index_path=os.getenv(
                    "SUBSIDY_INDEX_PATH", "data/subsidies/index/master-index.json"
                ),
                validation_log_dir=os.getenv("VALIDATION_LOG_DIR", "data/validation_logs"),
                prompts_dir=os.getenv("PROMPTS_DIR", "prompts"),
            ),
            search=SearchConfig(
                alpha=float(os.getenv("SEARCH_ALPHA", "0.5")),
                top_k=int(os.getenv("SEARCH_TOP_K", "10")),
            ),
            validation=validation,
        )
    except (ValidationError, ValueError) as e:
        msg = f"アプリケーション設定が不正です: {e}"
        raise InvalidConfig(msg) from e
