"""依存性注入コンテナの定義."""

from dependency_injector import containers, providers
from langchain_openai import OpenAIEmbeddings

from src.application.agents.critique import CritiqueEngine, CritiquePromptBuilder, LLMGrader
from src.application.agents.generator import AnswerPromptBuilder, ThreadAnswerGenerator
from src.application.agents.hints import HintBuilder
from src.application.agents.validator import FeedbackLoopController
from src.application.workflows.chat_workflow import SubsidyChatWorkflow
from src.common.config.model_registry import ModelRegistryLoader, select_chat_model
from src.common.config.settings import ValidationConfig
from src.components.auto_filter.generator import AutoFilterGenerator
from src.components.entity_extraction.extractor import PatternEntityExtractor
from src.components.llm_client.client import LLMClient
from src.components.subsidy_index.store import SubsidyIndex
from src.components.subsidy_search.embedding_client import EmbeddingClient
from src.components.subsidy_search.search import SubsidySearch
from src.components.thread_store.store import ThreadStore
from src.components.validation_log.store import ValidationLogStore


class Container(containers.DeclarativeContainer):
    """アプリケーション全体のDIコンテナ."""

    config = providers.Configuration()

    # YAML定義のChatModelレジストリ（名前ベース）
    model_registry_loader = providers.Singleton(
        ModelRegistryLoader,
        config_path=config.models.config_path,
    )
    chat_model_registry = providers.Singleton(
        lambda loader: loader.build(),
        model_registry_loader,
    )

    generator_chat_model = providers.Singleton(
        select_chat_model,
        chat_model_registry,
        config.models.generator,
    )
    reviewer_chat_model = providers.Singleton(
        select_chat_model,
        chat_model_registry,
        config.models.reviewer,
    )

    generator_llm_client = providers.Singleton(
        LLMClient,
        chat_model=generator_chat_model,
    )
    reviewer_llm_client = providers.Singleton(
        LLMClient,
        chat_model=reviewer_chat_model,
    )

    embedding_model = providers.Singleton(
        OpenAIEmbeddings,
        model=config.embedding.model,
        api_key=config.embedding.api_key,
    )
    embedding_client = providers.Singleton(
        EmbeddingClient,
        model=embedding_model,
    )

    subsidy_index = providers.Singleton(
        SubsidyIndex.from_file,
        config.subsidy.index_path,
    )
    subsidy_search = providers.Singleton(
        SubsidySearch,
        index=subsidy_index,
        embedding_client=embedding_client,
        alpha=config.search.alpha,
    )

    thread_store = providers.Singleton(ThreadStore)
    entity_extractor = providers.Singleton(PatternEntityExtractor)
    auto_filter = providers.Singleton(AutoFilterGenerator)
    validation_log_store = providers.Singleton(
        ValidationLogStore,
        data_dir=config.subsidy.validation_log_dir,
    )

    validation_config = providers.Singleton(
        ValidationConfig.model_validate,
        config.validation,
    )

    critique_prompt_builder = providers.Singleton(
        lambda prompts_dir: CritiquePromptBuilder(f"{prompts_dir}/critique"),
        config.subsidy.prompts_dir,
    )
    grader = providers.Singleton(
        LLMGrader,
        llm_client=reviewer_llm_client,
        prompt_builder=critique_prompt_builder,
        threshold=config.validation.pass_threshold,
    )
    critique_engine = providers.Singleton(
        CritiqueEngine,
        grader=grader,
        index=subsidy_index,
        extractor=entity_extractor,
        threshold=config.validation.pass_threshold,
    )

    hint_builder = providers.Singleton(
        HintBuilder,
        enable_progressive_hints=config.validation.enable_progressive_hints,
        enable_failure_analysis=config.validation.enable_failure_analysis,
    )

    feedback_loop_controller = providers.Factory(
        FeedbackLoopController,
        critique_engine=critique_engine,
        hint_builder=hint_builder,
        extractor=entity_extractor,
        config=validation_config,
        log_store=validation_log_store,
    )

    answer_prompt_builder = providers.Singleton(
        lambda prompts_dir: AnswerPromptBuilder(f"{prompts_dir}/generator"),
        config.subsidy.prompts_dir,
    )
    answer_generator = providers.Singleton(
        ThreadAnswerGenerator,
        llm_client=generator_llm_client,
        thread_store=thread_store,
        search=subsidy_search,
        prompt_builder=answer_prompt_builder,
        top_k=config.search.top_k,
    )

    chat_workflow = providers.Factory(
        SubsidyChatWorkflow,
        thread_store=thread_store,
        generator=answer_generator,
        controller=feedback_loop_controller,
        extractor=entity_extractor,
        auto_filter=auto_filter,
    )
