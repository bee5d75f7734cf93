from unittest import mock

import pytest
from typer.testing import CliRunner

import cargohold.cli
from cargohold.cli import app
from cargohold.errors import EngineCommandError, EngineTimeoutError
from cargohold.inventory import Inventory
from cargohold.operations import DATA_LOSS_WARNING
from cargohold.schemas import EntityKind, Operation, OperationParams, Outcome

from conftest import listing_runner

runner = CliRunner()


@pytest.fixture
def snapshots():
    inventory = Inventory(listing_runner())
    inventory.refresh_all()
    return {kind: inventory.snapshot(kind) for kind in EntityKind}


@pytest.fixture
def mock_manager(snapshots):
    with mock.patch("cargohold.cli.engine_manager") as manager:
        manager.refresh.side_effect = lambda kind, cancel_event=None: snapshots[EntityKind(kind)]
        manager.execute.side_effect = lambda operation, identifier=None, params=None, **kwargs: Outcome(
            operation=operation, success=True, message=f"{operation.value} done", output=""
        )
        yield manager


# --- listings ---

def test_ps_lists_containers(mock_manager):
    result = runner.invoke(app, ["ps"])

    assert result.exit_code == 0
    mock_manager.refresh.assert_called_once_with(EntityKind.CONTAINERS)
    assert "web" in result.stdout
    assert "abc123" in result.stdout
    assert "exited" in result.stdout


def test_images_lists_sizes(mock_manager):
    result = runner.invoke(app, ["images"])
    assert result.exit_code == 0
    assert "postgres" in result.stdout
    assert "1536.0 MB" in result.stdout


def test_networks_and_volumes(mock_manager):
    assert "backend" in runner.invoke(app, ["networks"]).stdout
    assert "pgdata" in runner.invoke(app, ["volumes"]).stdout


def test_empty_listing(mock_manager, snapshots):
    snapshots[EntityKind.VOLUMES] = snapshots[EntityKind.VOLUMES].model_copy(update={"items": ()})
    result = runner.invoke(app, ["volumes"])
    assert result.exit_code == 0
    assert "No volumes found." in result.stdout


def test_listing_engine_error_exits_1(mock_manager):
    mock_manager.refresh.side_effect = EngineCommandError(["docker", "ps"], exit_code=1, stderr="daemon down")
    result = runner.invoke(app, ["ps"])
    assert result.exit_code == 1
    assert "daemon down" in result.stdout


def test_tree_renders_groups_and_inline_errors(mock_manager, snapshots):
    def refresh(kind, cancel_event=None):
        if kind == EntityKind.NETWORKS:
            raise EngineTimeoutError(["docker", "network", "ls"], 5)
        return snapshots[kind]

    mock_manager.refresh.side_effect = refresh
    result = runner.invoke(app, ["tree"])

    assert result.exit_code == 0
    assert "Running (1)" in result.stdout
    assert "Stopped (2)" in result.stdout
    assert "Error:" in result.stdout
    assert "pgdata" in result.stdout


def test_tree_single_kind(mock_manager):
    result = runner.invoke(app, ["tree", "images"])
    assert result.exit_code == 0
    mock_manager.refresh.assert_called_once_with(EntityKind.IMAGES)
    assert "nginx:latest" in result.stdout


# --- operations ---

def test_start_with_argument(mock_manager):
    result = runner.invoke(app, ["start", "web"])
    assert result.exit_code == 0
    mock_manager.execute.assert_called_once_with(Operation.START, "web", None, confirmed=True)
    assert "start done" in result.stdout


def test_stop_prompts_for_missing_id(mock_manager):
    result = runner.invoke(app, ["stop"], input="web\n")
    assert result.exit_code == 0
    mock_manager.execute.assert_called_once_with(Operation.STOP, "web", None, confirmed=True)


def test_empty_prompt_answer_exits_1(mock_manager):
    result = runner.invoke(app, ["restart"], input="\n")
    assert result.exit_code == 1
    mock_manager.execute.assert_not_called()


def test_rm_declined_never_executes(mock_manager):
    result = runner.invoke(app, ["rm", "web"], input="n\n")

    assert result.exit_code == 0
    assert 'remove container "web"' in result.stdout
    assert "Cancelled" in result.stdout
    mock_manager.execute.assert_not_called()


def test_rm_confirmed(mock_manager):
    result = runner.invoke(app, ["rm", "web"], input="y\n")
    assert result.exit_code == 0
    mock_manager.execute.assert_called_once_with(Operation.REMOVE_CONTAINER, "web", None, confirmed=True)


def test_rmi_yes_skips_prompt(mock_manager):
    result = runner.invoke(app, ["rmi", "nginx:latest", "--yes"])
    assert result.exit_code == 0
    assert "Are you sure" not in result.stdout
    mock_manager.execute.assert_called_once_with(Operation.REMOVE_IMAGE, "nginx:latest", None, confirmed=True)


def test_prune_volumes_warns_about_data_loss(mock_manager):
    result = runner.invoke(app, ["prune", "volumes"], input="n\n")
    assert DATA_LOSS_WARNING in result.stdout
    mock_manager.execute.assert_not_called()


def test_prune_all_with_yes(mock_manager):
    result = runner.invoke(app, ["prune", "all", "--yes"])
    assert result.exit_code == 0
    mock_manager.execute.assert_called_once_with(Operation.PRUNE_ALL, None, None, confirmed=True)


def test_tag_and_run_pass_params(mock_manager):
    runner.invoke(app, ["tag", "nginx:latest", "mirror/nginx:1"])
    runner.invoke(app, ["run", "nginx", "--name", "edge", "-P"])

    calls = mock_manager.execute.call_args_list
    assert calls[0] == mock.call(Operation.TAG, "nginx:latest", OperationParams(new_tag="mirror/nginx:1"), confirmed=True)
    assert calls[1] == mock.call(
        Operation.RUN, "nginx", OperationParams(name="edge", publish_all_ports=True), confirmed=True
    )


def test_logs_prints_output(mock_manager):
    mock_manager.execute.side_effect = None
    mock_manager.execute.return_value = Outcome(
        operation=Operation.LOGS, success=True, message="ok", output="hello from web\n"
    )
    result = runner.invoke(app, ["logs", "web"])
    assert result.exit_code == 0
    assert "hello from web" in result.stdout


def test_operation_error_exits_1(mock_manager):
    mock_manager.execute.side_effect = EngineCommandError(
        ["docker", "start", "ghost"], exit_code=1, stderr="No such container"
    )
    result = runner.invoke(app, ["start", "ghost"])
    assert result.exit_code == 1
    assert "No such container" in result.stdout


def test_refresh_errors_are_reported(mock_manager):
    mock_manager.execute.side_effect = None
    mock_manager.execute.return_value = Outcome(
        operation=Operation.PULL, success=True, message="pulled",
        refresh_errors={EntityKind.IMAGES: "flaky"},
    )
    result = runner.invoke(app, ["pull", "nginx"])
    assert result.exit_code == 0
    assert "flaky" in result.stdout


# --- global options and service commands ---

def test_timeout_zero_disables_limit(mock_manager):
    result = runner.invoke(app, ["--timeout", "0", "--engine", "podman", "version"])
    assert result.exit_code == 0
    assert cargohold.cli.settings.command_timeout is None
    assert cargohold.cli.settings.engine_binary == "podman"


def test_invalid_log_level_exits_1(mock_manager):
    result = runner.invoke(app, ["--log-level", "chatty", "ps"])
    assert result.exit_code == 1
    assert "Configuration error" in result.stdout


def test_version(mock_manager):
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "cargohold" in result.stdout


def test_serve_runs_uvicorn(mock_manager):
    with mock.patch("cargohold.cli.uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--port", "8123"])

    assert result.exit_code == 0
    run.assert_called_once()
    assert run.call_args[1]["port"] == 8123
    assert run.call_args[1]["host"] == "127.0.0.1"
