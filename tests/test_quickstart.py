import datetime

import pytest

import batch_client_quickstart
import batch_helpers
import config_local
from batch_client_quickstart import query_yes_no, run_quickstart
from fakes import FakeBatchClient, FakeBatchError, FakeBlobServiceClient
from quickstart_config import ConfigurationError, QuickstartConfig


def make_config(**overrides):
    settings = dict(
        batch_account_name="batchacct",
        batch_account_key="a2V5",
        batch_account_url="https://batchacct.westus.batch.azure.com",
        storage_connection_string="DefaultEndpointsProtocol=https;AccountName=s;AccountKey=a2V5",
    )
    settings.update(overrides)
    return QuickstartConfig(**settings)


class Prompts:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.questions = []
        self.pauses = []

    def confirm(self, question):
        self.questions.append(question)
        return self.answers.pop(0)

    def pause(self, prompt):
        self.pauses.append(prompt)


@pytest.fixture
def blob_client():
    return FakeBlobServiceClient(container_pages=[
        (["taskdata0.txt", "taskdata1.txt"], "C1"),
        (["taskdata2.txt"], None),
    ])


def test_end_to_end_three_files(blob_client, capsys):
    batch_client = FakeBatchClient()
    prompts = Prompts(True, True)

    outputs = run_quickstart(make_config(), blob_client, batch_client,
                             confirm=prompts.confirm, pause=prompts.pause)

    assert blob_client.created == ["input"]
    assert batch_client.task.add_calls == [
        ("PythonQuickstartJob", ["Task0", "Task1", "Task2"])]
    assert list(outputs.items()) == [
        ("Task0", "contents of taskdata0.txt\n"),
        ("Task1", "contents of taskdata1.txt\n"),
        ("Task2", "contents of taskdata2.txt\n"),
    ]
    printed = capsys.readouterr().out
    positions = [printed.index(text) for text in outputs.values()]
    assert positions == sorted(positions)
    assert "Elapsed time:" in printed

    assert prompts.questions == ["Delete job? [yes] no: ", "Delete pool? [yes] no: "]
    assert batch_client.job.deleted == ["PythonQuickstartJob"]
    assert batch_client.pool.deleted == ["PythonQuickstartPool"]
    assert prompts.pauses == ["Sample complete, hit ENTER to exit..."]


def test_declined_cleanup_keeps_resources(blob_client):
    batch_client = FakeBatchClient()
    prompts = Prompts(False, False)

    run_quickstart(make_config(), blob_client, batch_client,
                   confirm=prompts.confirm, pause=prompts.pause)

    assert batch_client.job.deleted == []
    assert batch_client.pool.deleted == []
    assert "PythonQuickstartPool" in batch_client.pool.pools


def test_rerun_reuses_pool_job_and_container(blob_client):
    batch_client = FakeBatchClient()

    run_quickstart(make_config(), blob_client, batch_client,
                   confirm=lambda question: False, pause=lambda prompt: None)
    run_quickstart(make_config(job_id="SecondJob"), blob_client, batch_client,
                   confirm=lambda question: False, pause=lambda prompt: None)

    assert blob_client.created == ["input"]
    assert list(batch_client.pool.pools) == ["PythonQuickstartPool"]


def test_pool_failure_propagates_and_still_pauses(blob_client):
    batch_client = FakeBatchClient()
    batch_client.pool.fail_with = FakeBatchError("AccountQuotaExceeded", "Quota exceeded.")
    prompts = Prompts()

    with pytest.raises(FakeBatchError):
        run_quickstart(make_config(), blob_client, batch_client,
                       confirm=prompts.confirm, pause=prompts.pause)

    assert batch_client.job.jobs == {}
    assert batch_client.task.add_calls == []
    assert prompts.pauses == ["Sample complete, hit ENTER to exit..."]


def test_timeout_propagates_and_still_pauses(blob_client, monkeypatch):
    batch_client = FakeBatchClient(polls_until_complete=1000)
    monkeypatch.setattr(batch_helpers.time, "sleep", lambda seconds: None)
    prompts = Prompts()
    config = make_config(task_timeout=datetime.timedelta(0))

    with pytest.raises(batch_helpers.TaskTimeoutError):
        run_quickstart(config, blob_client, batch_client,
                       confirm=prompts.confirm, pause=prompts.pause)

    assert prompts.questions == []
    assert prompts.pauses == ["Sample complete, hit ENTER to exit..."]


def test_missing_credentials_fail_before_any_call(blob_client):
    batch_client = FakeBatchClient()

    with pytest.raises(ConfigurationError) as excinfo:
        run_quickstart(make_config(batch_account_key="", storage_connection_string=""),
                       blob_client, batch_client,
                       confirm=lambda question: True, pause=lambda prompt: None)

    assert "batch account key" in str(excinfo.value)
    assert "storage connection string" in str(excinfo.value)
    assert blob_client.created == []
    assert batch_client.pool.pools == {}


def test_config_from_module_defaults():
    config = QuickstartConfig.from_module(config_local)

    assert config.pool_id == "PythonQuickstartPool"
    assert config.job_id == "PythonQuickstartJob"
    assert config.pool_node_count == 2
    assert config.pool_vm_size == "STANDARD_A1_v2"
    assert config.task_timeout == datetime.timedelta(minutes=30)
    with pytest.raises(ConfigurationError):
        config.validate()


@pytest.mark.parametrize(
    "answer, expected",
    [
        ("", True),
        ("yes", True),
        ("y", True),
        ("maybe", True),
        ("n", False),
        ("No", False),
        (" NO ", False),
    ],
)
def test_query_yes_no(monkeypatch, answer, expected):
    monkeypatch.setattr("builtins.input", lambda prompt: answer)

    assert query_yes_no("Delete job? [yes] no: ") is expected


def test_main_rejects_empty_config(monkeypatch):
    monkeypatch.setattr(config_local, "_BATCH_ACCOUNT_NAME", "")

    with pytest.raises(ConfigurationError):
        batch_client_quickstart.main()


def test_connection_string_without_account_key_is_rejected(blob_client):
    batch_client = FakeBatchClient()
    prompts = Prompts()
    config = make_config(storage_connection_string=(
        "BlobEndpoint=https://s.blob.core.windows.net/;SharedAccessSignature=sv=2021&sig=abc"))

    with pytest.raises(ConfigurationError) as excinfo:
        run_quickstart(config, blob_client, batch_client,
                       confirm=prompts.confirm, pause=prompts.pause)

    assert "AccountKey" in str(excinfo.value)
    assert blob_client.created == []
    assert prompts.pauses == []


def test_connection_string_account_key_keeps_base64_padding():
    config = make_config(storage_connection_string=(
        "DefaultEndpointsProtocol=https;AccountName=s;AccountKey=a2V5cw==;EndpointSuffix=core.windows.net"))

    assert config.validate() is config


def test_job_failure_propagates_and_still_pauses(blob_client):
    batch_client = FakeBatchClient()
    batch_client.job.fail_with = FakeBatchError("PoolNotFound", "The specified pool does not exist.")
    prompts = Prompts()

    with pytest.raises(FakeBatchError):
        run_quickstart(make_config(), blob_client, batch_client,
                       confirm=prompts.confirm, pause=prompts.pause)

    assert "PythonQuickstartPool" in batch_client.pool.pools
    assert batch_client.task.add_calls == []
    assert prompts.questions == []
    assert prompts.pauses == ["Sample complete, hit ENTER to exit..."]
