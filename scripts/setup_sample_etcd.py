"""Utility that launches a sample etcd Docker container for etcdui."""

from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from etcdui.config import CONFIG_FILE, AppConfig, EndpointConfig, ProfileConfig, load_config, save_config

DEFAULT_CONTAINER = "etcdui-sample-etcd"
DEFAULT_PORT = 23790
DOCKER_IMAGE = "quay.io/coreos/etcd:v3.5.17"
PROFILE_NAME = "Docker Sample"

SAMPLE_KEYS = {
    "/app/config/feature_flags": '{"dark_mode": true, "beta": false}',
    "/app/config/log_level": "info",
    "/app/services/api/replicas": "3",
    "/app/services/worker/replicas": "2",
    "/registry/nodes/node-a": "10.0.0.11",
    "/registry/nodes/node-b": "10.0.0.12",
}


def run(cmd: list[str], *, check: bool = True, **kwargs) -> subprocess.CompletedProcess[str]:
    print("$", " ".join(cmd))
    return subprocess.run(cmd, check=check, text=True, **kwargs)


def container_exists(name: str) -> bool:
    result = subprocess.run(
        ["docker", "ps", "-a", "--filter", f"name={name}", "--format", "{{.ID}}"],
        text=True,
        capture_output=True,
    )
    return bool(result.stdout.strip())


def start_container(name: str, port: int) -> None:
    if container_exists(name):
        print(f"Container '{name}' already exists. Reusing it.")
        run(["docker", "start", name], check=False)
    else:
        run(
            [
                "docker",
                "run",
                "-d",
                "--name",
                name,
                "-p",
                f"{port}:2379",
                DOCKER_IMAGE,
                "etcd",
                "--advertise-client-urls",
                "http://0.0.0.0:2379",
                "--listen-client-urls",
                "http://0.0.0.0:2379",
            ]
        )
    wait_for_start(name)


def wait_for_start(name: str, retries: int = 15, delay: float = 1.0) -> None:
    for _ in range(retries):
        result = subprocess.run(
            ["docker", "exec", name, "etcdctl", "endpoint", "health"],
            text=True,
            capture_output=True,
        )
        if result.returncode == 0:
            return
        time.sleep(delay)
    print("Warning: etcd did not report healthy; continuing anyway.")


def seed_data(name: str) -> None:
    for key, value in SAMPLE_KEYS.items():
        run(["docker", "exec", name, "etcdctl", "put", key, value])


def update_config(port: int) -> None:
    try:
        config = load_config()
    except Exception:
        config = AppConfig()
    profiles = list(config.profiles)
    target = next((p for p in profiles if p.name == PROFILE_NAME), None)
    if target is None:
        profiles.append(
            ProfileConfig(
                name=PROFILE_NAME,
                endpoints=[EndpointConfig(host="localhost", port=port)],
            )
        )
        config = config.with_profiles(profiles)
        if config.active_profile is None:
            config = config.with_active_profile(PROFILE_NAME)
        save_config(config)
        print(f"Added '{PROFILE_NAME}' profile to {CONFIG_FILE}.")
    else:
        print(f"Profile '{PROFILE_NAME}' already present in config; leaving as-is.")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--container", default=DEFAULT_CONTAINER, help="Docker container name")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Host port to expose etcd on")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        start_container(args.container, args.port)
        seed_data(args.container)
    except FileNotFoundError:
        print("Docker is not installed or not on PATH.")
        return 1
    update_config(args.port)
    print(f"Sample etcd is ready at localhost:{args.port}. Use the '{PROFILE_NAME}' profile.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
