import pytest

from cargohold.errors import (
    ConfirmationRequiredError,
    EngineCommandError,
    InvalidArgumentError,
    MissingIdentifierError,
    MissingParameterError,
)
from cargohold.inventory import Inventory
from cargohold.operations import (
    DATA_LOSS_WARNING,
    OperationExecutor,
    build_args,
    confirmation_message,
    requires_confirmation,
)
from cargohold.schemas import EntityKind, Operation, OperationParams

from conftest import REPORTS, listing_runner

DESTRUCTIVE = {
    Operation.REMOVE_CONTAINER,
    Operation.REMOVE_IMAGE,
    Operation.PRUNE_CONTAINERS,
    Operation.PRUNE_IMAGES,
    Operation.PRUNE_VOLUMES,
    Operation.PRUNE_NETWORKS,
    Operation.PRUNE_ALL,
}


@pytest.fixture
def executor(fake_runner):
    return OperationExecutor(fake_runner, Inventory(fake_runner))


def _verbs(runner):
    return [call.args[0] for call in runner.run.call_args_list]


@pytest.mark.parametrize("operation", list(Operation))
def test_requires_confirmation(operation):
    assert requires_confirmation(operation) == (operation in DESTRUCTIVE)


@pytest.mark.parametrize("operation, identifier, params, expected", [
    (Operation.START, "web", None, ["start", "web"]),
    (Operation.STOP, "web", None, ["stop", "web"]),
    (Operation.RESTART, "web", None, ["restart", "web"]),
    (Operation.REMOVE_CONTAINER, "web", None, ["rm", "web"]),
    (Operation.LOGS, "web", None, ["logs", "--tail", "500", "web"]),
    (Operation.INSPECT, "nginx:latest", None, ["inspect", "nginx:latest"]),
    (Operation.PULL, "nginx:latest", None, ["pull", "nginx:latest"]),
    (Operation.REMOVE_IMAGE, "nginx:latest", None, ["rmi", "nginx:latest"]),
    (Operation.TAG, "nginx:latest", OperationParams(new_tag="mirror/nginx:1"),
     ["tag", "nginx:latest", "mirror/nginx:1"]),
    (Operation.RUN, "nginx", None, ["run", "-d", "nginx"]),
    (Operation.RUN, "nginx", OperationParams(name="edge", publish_all_ports=True),
     ["run", "-d", "--name", "edge", "-P", "nginx"]),
    (Operation.PRUNE_CONTAINERS, None, None, ["container", "prune", "-f"]),
    (Operation.PRUNE_IMAGES, None, None, ["image", "prune", "-f"]),
    (Operation.PRUNE_VOLUMES, None, None, ["volume", "prune", "-f"]),
    (Operation.PRUNE_NETWORKS, None, None, ["network", "prune", "-f"]),
    (Operation.PRUNE_ALL, None, None, ["system", "prune", "-f", "--volumes"]),
])
def test_build_args(operation, identifier, params, expected):
    assert build_args(operation, identifier, params) == expected


@pytest.mark.parametrize("identifier", [None, "", "   "])
def test_missing_identifier_rejected(identifier):
    with pytest.raises(MissingIdentifierError):
        build_args(Operation.START, identifier)


def test_tag_without_new_tag_rejected():
    with pytest.raises(MissingParameterError) as excinfo:
        build_args(Operation.TAG, "nginx", OperationParams(new_tag=" "))
    assert excinfo.value.parameter == "new_tag"


def test_unknown_operation_name():
    with pytest.raises(ValueError):
        requires_confirmation("explode")


def test_confirmation_messages():
    assert confirmation_message("remove-container", "web") == 'Are you sure you want to remove container "web"?'
    assert confirmation_message(Operation.PRUNE_VOLUMES).endswith(DATA_LOSS_WARNING)
    assert DATA_LOSS_WARNING in confirmation_message(Operation.PRUNE_ALL)
    assert DATA_LOSS_WARNING not in confirmation_message(Operation.PRUNE_IMAGES)
    assert confirmation_message(Operation.START, "web") == ""


def test_unconfirmed_remove_never_runs_rm(executor, fake_runner):
    with pytest.raises(ConfirmationRequiredError) as excinfo:
        executor.execute("remove-container", "web")

    assert "web" in excinfo.value.prompt
    fake_runner.run.assert_not_called()


def test_confirmed_remove_runs_rm_then_refreshes_containers(executor, fake_runner):
    outcome = executor.execute(Operation.REMOVE_CONTAINER, "web", confirmed=True)

    assert _verbs(fake_runner) == [["rm", "web"], ["ps", "-a", "--format", "{{json .}}"]]
    assert outcome.success
    assert outcome.message == 'Container "web" removed'
    assert outcome.refreshed == [EntityKind.CONTAINERS]
    assert executor.inventory.snapshot(EntityKind.CONTAINERS) is not None


def test_missing_identifier_never_spawns(executor, fake_runner):
    with pytest.raises(MissingIdentifierError):
        executor.execute(Operation.STOP, None)
    fake_runner.run.assert_not_called()


def test_prune_all_refreshes_every_kind_and_warns(executor, fake_runner):
    outcome = executor.execute(Operation.PRUNE_ALL, confirmed=True)

    assert _verbs(fake_runner)[0] == ["system", "prune", "-f", "--volumes"]
    assert set(outcome.refreshed) == set(EntityKind)
    assert outcome.warning == DATA_LOSS_WARNING


def test_logs_output_returned_without_refresh():
    reports = dict(REPORTS, logs="line one\nline two\n")
    runner = listing_runner(reports)
    executor = OperationExecutor(runner, Inventory(runner))

    outcome = executor.execute(Operation.LOGS, "web")

    assert outcome.output == "line one\nline two\n"
    assert outcome.refreshed == []
    assert runner.run.call_count == 1


def test_engine_failure_propagates_without_refresh():
    reports = dict(REPORTS, start=EngineCommandError(["docker", "start", "ghost"], exit_code=1,
                                                     stderr="No such container: ghost"))
    runner = listing_runner(reports)
    executor = OperationExecutor(runner, Inventory(runner))

    with pytest.raises(EngineCommandError, match="No such container"):
        executor.execute(Operation.START, "ghost")

    assert runner.run.call_count == 1


def test_refresh_failure_after_success_is_reported_not_raised():
    reports = dict(REPORTS, images=EngineCommandError(["docker", "images"], exit_code=1, stderr="flaky"))
    runner = listing_runner(reports)
    executor = OperationExecutor(runner, Inventory(runner))

    outcome = executor.execute(Operation.PULL, "nginx:latest")

    assert outcome.success
    assert outcome.refreshed == []
    assert "flaky" in outcome.refresh_errors[EntityKind.IMAGES]


def test_tag_success_message_names_new_tag(executor):
    outcome = executor.execute(Operation.TAG, "nginx:latest", OperationParams(new_tag="mirror/nginx:1"))
    assert outcome.message == 'Image tagged as "mirror/nginx:1"'


@pytest.mark.parametrize("operation, identifier, params, parameter", [
    (Operation.REMOVE_CONTAINER, "-f", None, "identifier"),
    (Operation.RUN, "--privileged", None, "identifier"),
    (Operation.LOGS, " --follow", None, "identifier"),
    (Operation.TAG, "nginx", OperationParams(new_tag="--force"), "new_tag"),
    (Operation.RUN, "nginx", OperationParams(name="-v=/:/host"), "name"),
])
def test_option_like_operands_rejected(operation, identifier, params, parameter):
    with pytest.raises(InvalidArgumentError) as excinfo:
        build_args(operation, identifier, params)
    assert excinfo.value.parameter == parameter


def test_option_like_identifier_never_spawns(executor, fake_runner):
    with pytest.raises(InvalidArgumentError):
        executor.execute(Operation.REMOVE_CONTAINER, "--all", confirmed=True)
    fake_runner.run.assert_not_called()


def test_dash_inside_identifier_is_fine():
    assert build_args(Operation.START, "my-web-1") == ["start", "my-web-1"]
