import json

import pytest

import job_counter
from job_counter import DynamoJobCounter, FileJobCounter, build_job_counter


def test_first_number_is_one(tmp_path):
    path = tmp_path / "job_counter.json"
    assert FileJobCounter(str(path)).next() == 1
    assert json.loads(path.read_text()) == {"last": 1}


def test_increments_existing_value(tmp_path):
    path = tmp_path / "job_counter.json"
    path.write_text(json.dumps({"last": 41}))
    counter = FileJobCounter(str(path))
    assert counter.next() == 42
    assert counter.next() == 43


@pytest.mark.parametrize("content", ["not json", json.dumps({"last": "7"}), json.dumps([1, 2]), json.dumps({"last": True})])
def test_bad_content_restarts_from_one(tmp_path, content):
    path = tmp_path / "job_counter.json"
    path.write_text(content)
    assert FileJobCounter(str(path)).next() == 1


def test_write_failure_still_returns_value(tmp_path):
    counter = FileJobCounter(str(tmp_path / "missing-dir" / "job_counter.json"))
    assert counter.next() == 1


class FakeTable:
    def __init__(self):
        self.value = 0
        self.calls = []

    def update_item(self, **kwargs):
        self.calls.append(kwargs)
        self.value += kwargs["ExpressionAttributeValues"][":one"]
        return {"Attributes": {"last": self.value}}


class FakeResource:
    def __init__(self, table):
        self.table = table

    def Table(self, name):
        return self.table


class FakeBoto3:
    def __init__(self, table):
        self.table = table

    def resource(self, service, region_name=None):
        assert service == "dynamodb"
        return FakeResource(self.table)


def test_dynamo_counter_uses_atomic_add(monkeypatch):
    table = FakeTable()
    monkeypatch.setattr(job_counter, "boto3", FakeBoto3(table))
    counter = DynamoJobCounter("job_counters", "us-east-1")
    assert counter.next() == 1
    assert counter.next() == 2
    assert table.calls[0]["UpdateExpression"] == "ADD #last :one"


def test_dynamo_counter_requires_boto3(monkeypatch):
    monkeypatch.setattr(job_counter, "boto3", None)
    with pytest.raises(RuntimeError):
        DynamoJobCounter("job_counters", "us-east-1")


def test_build_job_counter_prefers_table(monkeypatch, tmp_path):
    monkeypatch.setattr(job_counter, "boto3", FakeBoto3(FakeTable()))
    assert isinstance(build_job_counter("job_counters", str(tmp_path / "c.json"), "us-east-1"), DynamoJobCounter)
    assert isinstance(build_job_counter(None, str(tmp_path / "c.json"), "us-east-1"), FileJobCounter)


def test_float_value_continues_sequence(tmp_path):
    path = tmp_path / "job_counter.json"
    path.write_text(json.dumps({"last": 5.0}))
    assert FileJobCounter(str(path)).next() == 6
    assert json.loads(path.read_text()) == {"last": 6}


def test_non_finite_value_restarts_from_one(tmp_path):
    path = tmp_path / "job_counter.json"
    path.write_text('{"last": NaN}')
    assert FileJobCounter(str(path)).next() == 1
