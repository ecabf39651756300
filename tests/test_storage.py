from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from fixtures import make_question, write_quiz
from quizplay import storage
from quizplay.engine import ProgressRecord, SessionSnapshot
from quizplay.storage import (
    ProgressStore,
    ProgressStoreError,
    QuizFormatError,
    load_quiz,
    read_jsonl,
)


def _write_lines(path, records):
    path.write_text(
        "".join(json.dumps(record) + "\n" for record in records),
        encoding="utf-8",
    )


def test_load_quiz_from_json(tmp_path):
    path = write_quiz(
        tmp_path / "capitals.json",
        [make_question("Capital of France?", ("Paris", "Rome"))],
        quiz_id="capitals",
        title="Capitals",
    )

    quiz = load_quiz(path)

    assert quiz.id == "capitals"
    assert quiz.title == "Capitals"
    assert quiz.questions[0].prompt == "Capital of France?"


def test_load_quiz_from_jsonl_uses_file_stem(tmp_path):
    path = tmp_path / "verbs.jsonl"
    _write_lines(path, [make_question("Q1"), make_question("Q2")])

    quiz = load_quiz(path)

    assert quiz.id == "verbs"
    assert quiz.title == "verbs"
    assert [q.slot for q in quiz.questions] == [0, 1]


def test_load_quiz_defaults_missing_id(tmp_path):
    path = tmp_path / "plain.json"
    path.write_text(
        json.dumps({"questions": [make_question("Q")]}), encoding="utf-8"
    )

    assert load_quiz(path).id == "plain"


@pytest.mark.parametrize(
    "content, message",
    [
        ("{not json", "Failed to parse"),
        ("[1, 2]", "JSON object"),
        ('{"id": "x"}', "questions"),
        (
            json.dumps({"questions": [{"question": "q", "answers": ["a"]}]}),
            "no correct answer",
        ),
    ],
)
def test_load_quiz_rejects_bad_files(tmp_path, content, message):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(QuizFormatError, match=message):
        load_quiz(path)


def test_load_quiz_missing_file(tmp_path):
    with pytest.raises(QuizFormatError, match="not found"):
        load_quiz(tmp_path / "absent.json")


def test_read_jsonl_skips_blank_lines(tmp_path):
    path = tmp_path / "data.jsonl"
    _write_lines(path, [{"a": 1}, {"b": "é"}])
    path.write_text(path.read_text(encoding="utf-8") + "\n\n", "utf-8")

    assert read_jsonl(path) == [{"a": 1}, {"b": "é"}]


def test_progress_store_save_and_load(tmp_path):
    store = ProgressStore(tmp_path / "progress")
    snapshot = SessionSnapshot(
        answer_history=(True,),
        solved_question_keys=("quiz_q0",),
        total_tries=2,
        elapsed_ms=1234,
        progress_map={
            "quiz_q0": ProgressRecord(
                answered=True,
                attempts=1,
                last_answer_correct=True,
                correct_streak=1,
                last_attempt_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
        },
    )

    target = store.save("ana maria", "quiz", snapshot)
    payload = json.loads(target.read_text(encoding="utf-8"))

    assert target == tmp_path / "progress" / "ana-maria" / "quiz.json"
    assert payload["username"] == "ana maria"
    assert payload["quizId"] == "quiz"
    assert "lastUpdated" in payload
    assert store.load("ana maria", "quiz") == snapshot
    assert store.load("ana maria", "other") is None
    assert not list(target.parent.glob("tmp*"))


def test_progress_store_rejects_corrupt_file(tmp_path):
    store = ProgressStore(tmp_path)
    target = store.path_for("u", "quiz")
    target.parent.mkdir(parents=True)
    target.write_text("{broken", encoding="utf-8")

    with pytest.raises(ProgressStoreError):
        store.load("u", "quiz")


def test_merge_records_keeps_other_fields(tmp_path):
    store = ProgressStore(tmp_path)
    store.save(
        "u",
        "quiz",
        SessionSnapshot(
            total_tries=4,
            elapsed_ms=500,
            progress_map={"quiz_q0": ProgressRecord(attempts=1)},
        ),
    )

    merged = store.merge_records(
        "u",
        "quiz",
        {"quiz_q1": ProgressRecord(answered=True, attempts=1)},
    )

    assert merged.total_tries == 4
    assert merged.elapsed_ms == 500
    assert set(merged.progress_map) == {"quiz_q0", "quiz_q1"}
    assert merged.solved_question_keys == ("quiz_q1",)
    assert store.load("u", "quiz") == merged


def test_failed_write_leaves_no_temp_file(tmp_path):
    target = tmp_path / "progress" / "default" / "quiz.json"

    with pytest.raises(ProgressStoreError, match="Failed to write"):
        storage._atomic_write_json(target, {"bad": object()})

    assert list(target.parent.iterdir()) == []
