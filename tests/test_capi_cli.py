"""Tests for the Cloud Controller CLI script."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

# Add scripts directory to path for importing the CLI module
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "scripts"))

import capi_cli
from capi_cli import build_parser, main, parse_query

from capi.config import CapiConfig
from conftest import PLAIN_API, json_response, page, raw_response, task_payload


@pytest.fixture
def config(clean_env):
    return CapiConfig(
        capi_address="https://api.example.com",
        capi_app_guid="app-1",
        capi_space_guid="space-1",
        capi_task_poll_interval=0.01,
    )


def run_cli(argv, config, handler):
    """Run main() against a mocked transport; returns the SystemExit code or 0."""
    with (
        patch.object(capi_cli, "get_config", return_value=config),
        patch.object(
            capi_cli,
            "build_transport",
            return_value=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        ),
        patch.object(capi_cli, "configure_logging"),
        patch("sys.argv", ["capi_cli.py", *argv]),
    ):
        try:
            main()
        except SystemExit as e:
            return e.code
    return 0


# -- Argument Parsing ---------------------------------------------------


def test_parse_query_groups_repeated_keys():
    assert parse_query(["states=FAILED", "names=a", "names=b=c"]) == {
        "states": ["FAILED"],
        "names": ["a", "b=c"],
    }


@pytest.mark.parametrize("pair", ["states", "=FAILED"])
def test_parse_query_rejects_malformed(pair):
    with pytest.raises(ValueError, match="KEY=VALUE"):
        parse_query([pair])


def test_run_arguments():
    args = build_parser().parse_args(
        ["run", "rake db:migrate", "--name", "migrate", "--droplet", "d-1", "--wait"]
    )

    assert args.command == "run"
    assert args.task_command == "rake db:migrate"
    assert args.name == "migrate"
    assert args.droplet == "d-1"
    assert args.wait is True
    assert args.app is None


def test_subcommand_required(capsys):
    with pytest.raises(SystemExit) as exc_info:
        build_parser().parse_args([])

    assert exc_info.value.code == 2


# -- Commands -----------------------------------------------------------


def test_processes_printed_as_json(capsys, config, handler):
    handler.add(json_response(200, page([{"guid": "proc-1", "type": "web", "instances": 2}])))

    assert run_cli(["processes"], config, handler) == 0

    output = json.loads(capsys.readouterr().out)
    assert output[0]["guid"] == "proc-1"
    assert output[0]["instances"] == 2
    assert handler.urls == [f"{PLAIN_API}/v3/apps/app-1/processes"]


def test_app_guid(capsys, config, handler):
    handler.add(json_response(200, {"resources": [{"metadata": {"guid": "guid-a"}}]}))

    assert run_cli(["app-guid", "worker"], config, handler) == 0

    assert json.loads(capsys.readouterr().out) == {"guid": "guid-a"}


def test_tasks_query_forwarded(capsys, config, handler):
    handler.add(json_response(200, page([task_payload("FAILED")])))

    assert run_cli(["tasks", "--app", "app-2", "--query", "states=FAILED"], config, handler) == 0

    request = handler.requests[0]
    assert request.url.path == "/v3/apps/app-2/tasks"
    assert request.url.params["states"] == "FAILED"
    assert json.loads(capsys.readouterr().out)[0]["state"] == "FAILED"


def test_run_with_wait(capsys, config, handler):
    handler.add(
        json_response(202, task_payload("RUNNING")),
        json_response(200, task_payload("SUCCEEDED")),
    )

    assert run_cli(["run", "echo hi", "--name", "greet", "--wait"], config, handler) == 0

    assert json.loads(handler.requests[0].content) == {"command": "echo hi", "name": "greet"}
    output = json.loads(capsys.readouterr().out)
    assert output["state"] == "SUCCEEDED"
    assert output["links"]["self"]["href"] == f"{PLAIN_API}/v3/tasks/task-1"


# -- Error Handling -----------------------------------------------------


def test_missing_address_exits(capsys, clean_env, handler):
    assert run_cli(["processes"], CapiConfig(), handler) == 1

    assert "CAPI_ADDRESS" in capsys.readouterr().err
    assert handler.requests == []


def test_client_error_exits(capsys, config, handler):
    handler.add(raw_response(404, b"not found"))

    assert run_cli(["task", "missing"], config, handler) == 1

    err = capsys.readouterr().err
    assert "Error: unexpected status code 404" in err


def test_task_failure_exits(capsys, config, handler):
    handler.add(json_response(202, task_payload("FAILED")))

    assert run_cli(["run", "false", "--wait"], config, handler) == 1

    assert "task failed" in capsys.readouterr().err


def test_bad_query_exits(capsys, config, handler):
    assert run_cli(["tasks", "--query", "nonsense"], config, handler) == 1

    assert "KEY=VALUE" in capsys.readouterr().err


def test_log_settings_from_environment(clean_env, handler):
    clean_env.setenv("CAPI_ADDRESS", "https://api.example.com")
    clean_env.setenv("CAPI_APP_GUID", "app-1")
    clean_env.setenv("CAPI_LOG_LEVEL", "debug")
    clean_env.setenv("CAPI_LOG_FORMAT", "TEXT")
    handler.add(json_response(200, page([])))

    with (
        patch.object(
            capi_cli,
            "build_transport",
            return_value=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        ),
        patch.object(capi_cli, "configure_logging") as mock_configure,
        patch("sys.argv", ["capi_cli.py", "processes"]),
    ):
        main()

    mock_configure.assert_called_once_with("DEBUG", "text")


def test_config_error_exits(capsys, clean_env):
    with (
        patch.object(capi_cli, "get_config", side_effect=ValueError("bad interval")),
        patch("sys.argv", ["capi_cli.py", "processes"]),
        pytest.raises(SystemExit) as exc_info,
    ):
        main()

    assert exc_info.value.code == 1
    assert "Failed to load configuration" in capsys.readouterr().err
