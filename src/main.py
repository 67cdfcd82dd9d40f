"""FastAPIアプリケーションのエントリポイント."""

from dotenv import load_dotenv
from fastapi import FastAPI

from src.application.workflows.chat_workflow import SubsidyChatWorkflow
from src.common.config.settings import load_config
from src.common.di.container import Container
from src.common.schema.api import ChatRequest, ChatResponse


def create_app() -> FastAPI:
    """FastAPIアプリケーションを生成する.

    Returns:
        FastAPIインスタンス
    """
    load_dotenv()
    app = FastAPI(title="Subsidy Assistant")

    container = Container()
    config = load_config()
    container.config.from_dict(config.model_dump())
    app.state.container = container

    return app


app = create_app()


@app.get("/health")
def health() -> dict[str, str]:
    """ヘルスチェックエンドポイント.

    Returns:
        ステータス情報
    """
    return {"status": "ok"}


@app.post("/chat", response_model=ChatResponse)
def chat(request: ChatRequest) -> ChatResponse:
    """質問に回答し、品質検証済みのメッセージを返すエンドポイント.

    Args:
        request: チャットリクエスト

    Returns:
        検証済みの回答と検証結果の要約
    """
    container: Container = app.state.container
    workflow: SubsidyChatWorkflow = container.chat_workflow()

    state = workflow.run(
        message=request.message,
        thread_id=request.thread_id,
        filters=request.filters,
    )

    result = state.get("result")
    return ChatResponse(
        thread_id=state["thread_id"],
        message=state["response"],
        passed=bool(result and result.passed),
        termination=result.termination if result else None,
        loops=result.final_loop if result else 0,
        scores=result.scores if result else None,
    )
