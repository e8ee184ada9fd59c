"""Unit tests for the deployment pipeline."""

import re

import pytest

from dockfleet.models.deployment import ComposePlan, SingleContainerSpec
from dockfleet.models.errors import EngineConflictError, EngineError
from dockfleet.services.deployment import (
    DeploymentPipeline,
    build_container_config,
    build_service_config,
    format_progress,
    parse_port,
)

LINE_PATTERN = re.compile(r"^\[\d{4}-\d{2}-\d{2}T[\d:.]+Z\] .*\n$")


def pull_events(*events):
    """Async generator function standing in for EngineClient.pull_image."""

    async def _pull(image):
        for event in events:
            yield event

    return _pull


def failing_pull(message):
    async def _pull(image):
        yield {"status": "Pulling from library/" + image}
        raise EngineError(message)

    return _pull


@pytest.fixture
def engine(mock_engine):
    mock_engine.pull_image = pull_events({"status": "Pull complete", "id": "abc"})
    return mock_engine


def progress_lines(sink):
    return [event.data for event in sink.events if event.type == "logs"]


def completions(sink):
    return [event for event in sink.events if event.type == "deployment_complete"]


class TestFormatProgress:
    """Tests for pull progress rendering."""

    def test_with_id_and_progress(self):
        event = {"id": "a1b2", "status": "Downloading", "progressDetail": {"current": 10, "total": 100}}

        assert format_progress(event) == "a1b2: Downloading [10/100]"

    def test_without_id(self):
        assert format_progress({"status": "Digest: sha256:abc"}) == "Digest: sha256:abc"

    def test_empty_progress_detail_omitted(self):
        assert format_progress({"id": "x", "status": "Pull complete", "progressDetail": {}}) == "x: Pull complete"

    def test_record_without_status_skipped(self):
        assert format_progress({"progressDetail": {}}) is None


class TestBuildContainerConfig:
    """Tests for single-container config translation."""

    def test_full_translation(self):
        spec = SingleContainerSpec.model_validate(
            {
                "image": "nginx:1.25",
                "name": "web",
                "cmd": "nginx -g 'daemon off;'",
                "env": [{"key": "MODE", "value": "prod"}],
                "ports": [{"host": "8080", "container": "80"}],
                "volumes": [{"host": "/srv/www", "container": "/usr/share/nginx/html"}],
                "memory": 256,
                "cpuShares": 512,
                "restartPolicy": "on-failure",
            }
        )

        config = build_container_config(spec, max_retries=3)

        assert config["Image"] == "nginx:1.25"
        assert config["Cmd"] == ["nginx", "-g", "daemon off;"]
        assert config["Env"] == ["MODE=prod"]
        assert config["ExposedPorts"] == {"80/tcp": {}}
        host_config = config["HostConfig"]
        assert host_config["PortBindings"] == {"80/tcp": [{"HostPort": "8080"}]}
        assert host_config["Binds"] == ["/srv/www:/usr/share/nginx/html"]
        assert host_config["Memory"] == 256 * 1024 * 1024
        assert host_config["CpuShares"] == 512
        assert host_config["RestartPolicy"] == {"Name": "on-failure", "MaximumRetryCount": 3}

    def test_other_restart_policies_have_no_retries(self):
        spec = SingleContainerSpec(image="redis", restart_policy="always")

        config = build_container_config(spec, max_retries=3)

        assert config["HostConfig"]["RestartPolicy"] == {"Name": "always", "MaximumRetryCount": 0}

    def test_minimal_spec(self):
        config = build_container_config(SingleContainerSpec(image="alpine"))

        assert config == {"Image": "alpine", "HostConfig": {}}


class TestBuildServiceConfig:
    """Tests for compose service config translation."""

    @pytest.fixture
    def plan(self):
        return ComposePlan.model_validate(
            {
                "projectName": "shop",
                "services": {
                    "api": {
                        "image": "shop/api",
                        "environment": ["DEBUG=1"],
                        "ports": ["8000:80", "9000"],
                        "volumes": ["data:/var/lib/data", "./conf:/etc/conf:ro"],
                        "networks": ["front", "back"],
                        "restart": "unless-stopped",
                    }
                },
                "networks": {"front": None, "back": "overlay"},
                "volumes": {"data": None},
            }
        )

    def test_default_container_name(self, plan):
        _, name, _ = build_service_config(plan, "api", plan.services["api"])

        assert name == "shop_api_1"

    def test_named_volumes_are_project_scoped(self, plan):
        config, _, _ = build_service_config(plan, "api", plan.services["api"])

        assert config["HostConfig"]["Binds"] == ["shop_data:/var/lib/data", "./conf:/etc/conf:ro"]

    def test_first_network_in_create_rest_connected_later(self, plan):
        config, _, extra = build_service_config(plan, "api", plan.services["api"])

        assert list(config["NetworkingConfig"]["EndpointsConfig"]) == ["shop_front"]
        assert config["HostConfig"]["NetworkMode"] == "shop_front"
        assert extra == ["shop_back"]

    def test_ports_and_env(self, plan):
        config, _, _ = build_service_config(plan, "api", plan.services["api"])

        assert config["Env"] == ["DEBUG=1"]
        assert config["ExposedPorts"] == {"80/tcp": {}, "9000/tcp": {}}
        assert config["HostConfig"]["PortBindings"] == {"80/tcp": [{"HostPort": "8000"}]}
        assert config["HostConfig"]["RestartPolicy"]["Name"] == "unless-stopped"

    def test_parse_port_variants(self):
        assert parse_port("53:53/udp") == ("53/udp", {"HostPort": "53"})
        assert parse_port("127.0.0.1:8080:80") == ("80/tcp", {"HostIp": "127.0.0.1", "HostPort": "8080"})
        assert parse_port("3000") == ("3000/tcp", {})


class TestDeployContainer:
    """Tests for single-container deployment."""

    @pytest.mark.asyncio
    async def test_success(self, engine, sink):
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_container(SingleContainerSpec(image="nginx", name="web"))

        assert outcome.status == "success"
        assert outcome.container_id == "container-id"
        engine.create_container.assert_awaited_once()
        engine.start_container.assert_awaited_once_with("container-id")

        lines = progress_lines(sink)
        assert all(LINE_PATTERN.match(line) for line in lines)
        assert any("Pulling image: nginx" in line for line in lines)
        assert any("abc: Pull complete" in line for line in lines)
        assert all(event.topic == "deployment" for event in sink.events)

        done = completions(sink)
        assert len(done) == 1
        assert done[0].data.container_id == "container-id"
        assert sink.events[-1] is done[0]

    @pytest.mark.asyncio
    async def test_pull_error_aborts(self, engine, sink):
        engine.pull_image = failing_pull("manifest unknown")
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_container(SingleContainerSpec(image="nope"))

        assert outcome.status == "error"
        assert outcome.error == "manifest unknown"
        engine.create_container.assert_not_called()
        assert progress_lines(sink)[-1].endswith("ERROR: manifest unknown\n")
        assert len(completions(sink)) == 1

    @pytest.mark.asyncio
    async def test_start_failure_reports_error(self, engine, sink):
        engine.start_container.side_effect = EngineError("port is already allocated", engine_status=500)
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_container(SingleContainerSpec(image="nginx"))

        assert outcome.status == "error"
        assert "port is already allocated" in outcome.error
        done = completions(sink)
        assert len(done) == 1
        assert done[0].data.status == "error"


class TestDeployCompose:
    """Tests for compose stack deployment."""

    @pytest.fixture
    def plan(self):
        return ComposePlan.model_validate(
            {
                "projectName": "stack",
                "services": {
                    "db": {"image": "postgres:16", "volumes": ["pgdata:/var/lib/postgresql/data"], "networks": ["back"]},
                    "web": {"image": "nginx", "networks": ["front", "back"]},
                },
                "networks": {"front": "bridge", "back": "bridge"},
                "volumes": {"pgdata": None},
            }
        )

    @pytest.mark.asyncio
    async def test_ordering(self, engine, sink, plan):
        engine.create_container.side_effect = ["db-id", "web-id"]
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_compose(plan)

        assert outcome.status == "success"
        assert outcome.container_ids == ["db-id", "web-id"]

        lines = progress_lines(sink)
        markers = [
            "Creating network: front",
            "Creating network: back",
            "Creating volume: pgdata",
            "Deploying service: db",
            "Deploying service: web",
        ]
        positions = [next(i for i, line in enumerate(lines) if marker in line) for marker in markers]
        assert positions == sorted(positions)

        created_networks = [call.args[0] for call in engine.create_network.await_args_list]
        assert created_networks == ["stack_front", "stack_back"]
        engine.create_volume.assert_awaited_once()
        assert engine.create_volume.await_args.args[0] == "stack_pgdata"
        engine.connect_network.assert_awaited_once_with("stack_back", "web-id")

        done = completions(sink)
        assert len(done) == 1
        assert done[0].data.container_ids == ["db-id", "web-id"]

    @pytest.mark.asyncio
    async def test_existing_network_counts_as_success(self, engine, sink, plan):
        engine.create_network.side_effect = [EngineConflictError("network with name stack_front already exists"), "id"]
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_compose(plan)

        assert outcome.status == "success"
        assert any("Network front already exists" in line for line in progress_lines(sink))

    @pytest.mark.asyncio
    async def test_already_exists_message_without_conflict_status(self, engine, sink, plan):
        engine.create_volume.side_effect = EngineError("volume stack_pgdata already exists", engine_status=500)
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_compose(plan)

        assert outcome.status == "success"

    @pytest.mark.asyncio
    async def test_unresolved_reference_fails_before_engine_calls(self, engine, sink):
        plan = ComposePlan.model_validate(
            {
                "projectName": "broken",
                "services": {"app": {"image": "app", "networks": ["missing"], "volumes": ["ghost:/data"]}},
            }
        )
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_compose(plan)

        assert outcome.status == "error"
        assert "missing" in outcome.error
        assert "ghost" in outcome.error
        engine.create_network.assert_not_called()
        engine.create_container.assert_not_called()
        assert len(completions(sink)) == 1

    @pytest.mark.asyncio
    async def test_failure_mid_stack_stops_and_reports_once(self, engine, sink, plan):
        engine.create_container.side_effect = ["db-id", EngineError("Conflict. The container name is in use")]
        pipeline = DeploymentPipeline(engine, sink)

        outcome = await pipeline.deploy_compose(plan)

        assert outcome.status == "error"
        assert engine.start_container.await_count == 1
        assert len(completions(sink)) == 1
        assert "ERROR:" in progress_lines(sink)[-1]
