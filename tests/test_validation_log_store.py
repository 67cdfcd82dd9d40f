"""検証ログストアのテスト."""

import pytest

from src.common.defs.errors import PersistenceFailed
from src.common.defs.validation import Termination, ValidationLoop, ValidationResult
from src.components.validation_log.models import LoopLogRecord, ResultLogRecord
from src.components.validation_log.store import ValidationLogStore
from tests.fakes import make_critique, make_scores


def test_append_and_load_preserve_order(tmp_path):
    store = ValidationLogStore(str(tmp_path))
    critique = make_critique(make_scores(90, 40, 90, 90, 90), issues=[])
    loop = ValidationLoop(loop_number=1, critique_result=critique, improvement_hints=["件数を増やす"])
    result = ValidationResult(
        scores=critique.scores,
        loops=[loop],
        final_loop=1,
        best_response="回答",
        termination=Termination.EXHAUSTED,
    )

    store.append(LoopLogRecord(thread_id="thread/1", question="質問", response="回答", loop=loop))
    store.append(
        ResultLogRecord(
            thread_id="thread/1",
            question="質問",
            initial_response="回答",
            duration_ms=12,
            result=result,
        )
    )

    records = store.load("thread/1")
    assert [r.kind for r in records] == ["loop", "result"]
    assert records[0].loop.critique_result.lowest_score.score == 40
    assert records[1].result.termination == Termination.EXHAUSTED
    assert records[1].result.loops[0].improvement_hints == ["件数を増やす"]
    assert list(tmp_path.iterdir()) == [tmp_path / "thread_1.jsonl"]


def test_load_unknown_thread_is_empty(tmp_path):
    assert ValidationLogStore(str(tmp_path)).load("nothing") == []


def test_write_failure_raises_persistence_failed(tmp_path):
    blocker = tmp_path / "logs"
    blocker.write_text("not a directory")
    store = ValidationLogStore(str(blocker))
    loop = ValidationLoop(loop_number=1, critique_result=make_critique(make_scores()))

    with pytest.raises(PersistenceFailed):
        store.append(LoopLogRecord(thread_id="t", question="q", response="r", loop=loop))
