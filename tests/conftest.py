import json
from unittest import mock

import pytest

from cargohold.runner import EngineRunner, RunResult


def report(*rows):
    """Line-delimited JSON the way the engine prints `--format '{{json .}}'`."""
    return "\n".join(json.dumps(row) for row in rows) + "\n"


WEB_CONTAINER = {
    "ID": "abc123",
    "Names": "web",
    "Image": "nginx:latest",
    "Networks": "bridge",
    "CreatedAt": "2024-01-01",
    "State": "running",
    "Status": "Up 2 hours",
}

DB_CONTAINER = {
    "ID": "def4567890abcdef",
    "Names": "db",
    "Image": "postgres:16",
    "Networks": "",
    "CreatedAt": "2024-01-02 09:15:00 +0000 UTC",
    "State": "exited",
    "Status": "Exited (0) 3 days ago",
    "Ports": "",
    "Labels": "com.example.tier=data",
}

API_CONTAINER = {
    "ID": "0123456789abcdef",
    "Names": "api",
    "Image": "registry.local:5000/team/api",
    "Networks": "backend",
    "CreatedAt": "2024-01-03 12:00:00.123456789 +0100 CET",
    "State": "paused",
    "Status": "Up 1 hour (Paused)",
    "Ports": "0.0.0.0:8080->80/tcp, :::8080->80/tcp, 443/tcp",
}

NGINX_IMAGE = {
    "ID": "sha256:1111aaaa2222bbbb3333",
    "Repository": "nginx",
    "Tag": "latest",
    "CreatedAt": "2024-02-01 08:00:00 +0000 UTC",
    "Size": "187MB",
}

POSTGRES_IMAGE = {
    "ID": "4444cccc5555",
    "Repository": "postgres",
    "Tag": "16",
    "CreatedAt": "2024-03-01 08:00:00 +0000 UTC",
    "Size": "1.5GB",
}

BRIDGE_NETWORK = {
    "ID": "9f8e7d6c5b4a3210",
    "Name": "bridge",
    "Driver": "bridge",
    "Scope": "local",
    "CreatedAt": "2024-01-01 00:00:00.000000000 +0000 UTC",
    "IPv6": "false",
    "Internal": "false",
    "Labels": "",
}

BACKEND_NETWORK = {
    "ID": "0a1b2c3d4e5f6789",
    "Name": "backend",
    "Driver": "overlay",
    "Scope": "swarm",
    "CreatedAt": "2024-01-05 00:00:00 +0000 UTC",
    "Labels": "com.docker.compose.project=shop",
}

DATA_VOLUME = {
    "Name": "pgdata",
    "Driver": "local",
    "Mountpoint": "/var/lib/docker/volumes/pgdata/_data",
    "Scope": "local",
    "Labels": "com.docker.compose.project=shop,com.docker.compose.volume=pgdata",
}

CACHE_VOLUME = {
    "Name": "cache",
    "Driver": "local",
    "Mountpoint": "/var/lib/docker/volumes/cache/_data",
    "Labels": "",
}

REPORTS = {
    "ps": report(WEB_CONTAINER, DB_CONTAINER, API_CONTAINER),
    "images": report(NGINX_IMAGE, POSTGRES_IMAGE),
    "network": report(BRIDGE_NETWORK, BACKEND_NETWORK),
    "volume": report(DATA_VOLUME, CACHE_VOLUME),
}


def listing_runner(reports=None):
    """A runner double that answers listing commands from `reports` and echoes everything else."""
    reports = REPORTS if reports is None else reports
    runner = mock.MagicMock(spec=EngineRunner)

    def run(args, cancel_event=None):
        stdout = reports.get(args[0], "")
        if isinstance(stdout, Exception):
            raise stdout
        return RunResult(args=("docker", *args), stdout=stdout)

    runner.run.side_effect = run
    return runner


@pytest.fixture
def fake_runner():
    return listing_runner()
