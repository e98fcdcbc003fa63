import pytest

from signal2noise.models import (
    FRESH,
    ExtractionResult,
    Resuming,
    TaskRecord,
    finalize,
)


def _result(**overrides):
    data = {"taskName": "Pay rent", "priority": "Top", "dueDate": "2026-11-01", "followUpQuestion": None}
    data.update(overrides)
    return ExtractionResult.model_validate(data)


def test_finalize_keeps_extracted_fields():
    record = finalize(_result())
    assert record.task_name == "Pay rent"
    assert record.priority == "Top"
    assert record.due_date == "2026-11-01"
    assert record.status == "pending"
    assert record.completed_at is None
    assert record.time_tracked == 0


def test_finalize_defaults_null_fields():
    record = finalize(_result(priority=None, dueDate=None))
    assert record.priority == "Medium"
    assert record.due_date == ""


def test_finalize_null_task_name_is_empty_sentinel():
    record = finalize(_result(taskName=None))
    assert record.task_name == ""


def test_finalize_refuses_incomplete_extraction():
    with pytest.raises(ValueError):
        finalize(_result(followUpQuestion="When is this due?"))


def test_extraction_result_requires_every_field():
    with pytest.raises(Exception):
        ExtractionResult.model_validate({"taskName": "x", "priority": None, "dueDate": None})


def test_extraction_result_rejects_unknown_priority():
    with pytest.raises(Exception):
        _result(priority="Urgent")


@pytest.mark.parametrize("bad", ["tomorrow", "2026-13-01", "2026-1-5", "20261101"])
def test_extraction_result_rejects_malformed_dates(bad):
    with pytest.raises(Exception):
        _result(dueDate=bad)


def test_blank_follow_up_question_means_complete():
    result = _result(followUpQuestion="  ")
    assert result.follow_up_question is None
    assert result.is_complete


def test_task_record_camel_case_dump():
    data = TaskRecord(task_name="A").model_dump(by_alias=True)
    assert data["taskName"] == "A"
    assert data["timeTracked"] == 0
    assert data["completedAt"] is None


def test_task_record_rejects_negative_time_tracked():
    with pytest.raises(Exception):
        TaskRecord(task_name="A", time_tracked=-1)


def test_context_wire_shapes():
    prior = _result(followUpQuestion="When?", dueDate=None)
    assert FRESH.to_wire() is None
    wire = Resuming(prior=prior).to_wire()
    assert wire == {
        "prior": {"taskName": "Pay rent", "priority": "Top", "dueDate": None, "followUpQuestion": "When?"}
    }
