"""dockerdash command line: interactive menu by default, or one-shot commands.

Usage:
    dockerdash                      # interactive menu
    dockerdash ls
    dockerdash logs web --tail 50
    dockerdash stats                # live dashboard
    dockerdash stats web            # live stats for one container
    dockerdash rebuild web --no-cache
    dockerdash config set refreshInterval 1000
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dockerdash import docker_api
from dockerdash.banner import show_status
from dockerdash.build import run_build
from dockerdash.charts import CYAN, DIM, RED, RESET, fmt_bytes
from dockerdash.compose import (
    compose_down,
    compose_logs,
    compose_rebuild,
    compose_restart,
    compose_status,
    compose_up,
    find_compose_files,
)
from dockerdash.config import (
    CONFIG_DIR,
    DEFAULT_CONFIG,
    dump_default_config,
    get_config,
    load_config,
    set_config,
)
from dockerdash.dashboard import show_container_stats, show_dashboard
from dockerdash.docker_api import DockerError
from dockerdash.logs import print_logs, stream_logs
from dockerdash.menu import confirm, main_menu, rebuild
from dockerdash.tables import (
    containers_table,
    history_table,
    images_table,
    networks_table,
    volumes_table,
)

VERSION = "1.0.0"
DEBUG_LOG = CONFIG_DIR / "debug.log"

log = logging.getLogger(__name__)


# ── Logging ────────────────────────────────────────────────────────────────


def setup_logging(debug: bool, path: Path = DEBUG_LOG) -> None:
    """Send DEBUG records to a file; stdout belongs to the renderer."""
    if not debug:
        logging.getLogger("dockerdash").addHandler(logging.NullHandler())
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=path,
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log.debug("dockerdash %s starting", VERSION)


def check_docker() -> None:
    if docker_api.is_docker_running():
        return
    show_status("Docker is not running", "error")
    print(f"{RED}\nPlease make sure the Docker daemon is running.{RESET}")
    print(f"{DIM}Try: sudo systemctl start docker{RESET}")
    raise SystemExit(1)


# ── Commands ───────────────────────────────────────────────────────────────


def cmd_menu(args: argparse.Namespace, config: dict[str, Any]) -> int:
    main_menu(config)
    return 0


def cmd_list(args: argparse.Namespace, config: dict[str, Any]) -> int:
    show_all = config["showAllContainers"] and not args.running
    containers = docker_api.list_containers(all=show_all)
    if not containers:
        show_status("No containers found", "warning")
        return 0
    print(containers_table(containers))
    return 0


def cmd_logs(args: argparse.Namespace, config: dict[str, Any]) -> int:
    tail = args.tail if args.tail is not None else config["logTail"]
    if args.no_follow:
        print_logs(args.container, tail=tail)
    else:
        stream_logs(args.container, tail=tail)
    return 0


def cmd_stats(args: argparse.Namespace, config: dict[str, Any]) -> int:
    if args.container:
        show_container_stats(args.container, config)
    else:
        show_dashboard(config)
    return 0


def cmd_dashboard(args: argparse.Namespace, config: dict[str, Any]) -> int:
    show_dashboard(config)
    return 0


def _lifecycle(
    fn: Callable[[str], None], doing: str, done: str
) -> Callable[[argparse.Namespace, dict[str, Any]], int]:
    def command(args: argparse.Namespace, config: dict[str, Any]) -> int:
        print(f"{doing} {args.container}...")
        fn(args.container)
        show_status(f"Container {args.container} {done}", "success")
        return 0

    return command


def cmd_remove(args: argparse.Namespace, config: dict[str, Any]) -> int:
    docker_api.remove_container(args.container, force=args.force)
    show_status(f"Container {args.container} removed", "success")
    return 0


def cmd_rebuild(args: argparse.Namespace, config: dict[str, Any]) -> int:
    return 0 if rebuild(args.container, no_cache=args.no_cache) else 1


def cmd_build(args: argparse.Namespace, config: dict[str, Any]) -> int:
    ok = run_build(args.context, tag=args.tag, dockerfile=args.file, no_cache=args.no_cache)
    return 0 if ok else 1


def cmd_images(args: argparse.Namespace, config: dict[str, Any]) -> int:
    if args.history:
        print(history_table(docker_api.image_history(args.history)))
    else:
        print(images_table(docker_api.list_images()))
    return 0


def cmd_volumes(args: argparse.Namespace, config: dict[str, Any]) -> int:
    print(volumes_table(docker_api.list_volumes()))
    return 0


def cmd_networks(args: argparse.Namespace, config: dict[str, Any]) -> int:
    print(networks_table(docker_api.list_networks()))
    return 0


_PRUNERS: dict[str, Callable[[], dict[str, Any]]] = {
    "containers": docker_api.prune_containers,
    "images": docker_api.prune_images,
    "volumes": docker_api.prune_volumes,
    "networks": docker_api.prune_networks,
    "build-cache": docker_api.prune_build_cache,
    "system": docker_api.system_prune,
}


def cmd_prune(args: argparse.Namespace, config: dict[str, Any]) -> int:
    if not args.yes and not confirm(f"Prune unused {args.target}?"):
        print("Cancelled.")
        return 0
    result = _PRUNERS[args.target]()
    show_status(f"Reclaimed {fmt_bytes(docker_api.reclaimed_bytes(result))}", "success")
    return 0


def _echo(line: str) -> None:
    print(line, end="" if line.endswith("\n") else "\n")


def cmd_compose(args: argparse.Namespace, config: dict[str, Any]) -> int:
    project_dir = str(args.dir)
    if not find_compose_files(args.dir):
        show_status(f"No compose file found in {project_dir}", "error")
        return 1

    if args.action == "ps":
        services = compose_status(project_dir)
        if not services:
            show_status("No services running", "warning")
        for svc in services:
            print(f"  {CYAN}{svc.get('Service', svc.get('Name', '?')):<20}{RESET} {svc.get('State', '')}")
        return 0

    if args.action == "up":
        result = compose_up(project_dir, build=args.build, on_output=_echo)
    elif args.action == "down":
        result = compose_down(project_dir, remove_volumes=args.volumes, on_output=_echo)
    elif args.action == "restart":
        result = compose_restart(project_dir, args.service)
    elif args.action == "rebuild":
        result = compose_rebuild(project_dir, args.service, no_cache=args.no_cache, on_output=_echo)
    else:
        result = compose_logs(
            project_dir, args.service, tail=config["logTail"], follow=args.follow, on_output=_echo
        )
    if not result.ok:
        show_status(f"compose {args.action} failed (exit {result.code})", "error")
        return 1
    return 0


def _parse_value(raw: str) -> Any:
    """Accept JSON literals (numbers, booleans); anything else is a string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def cmd_config(args: argparse.Namespace, config: dict[str, Any]) -> int:
    if args.action == "show":
        print(json.dumps(config, indent=2))
    elif args.action == "defaults":
        print(dump_default_config(), end="")
    elif args.action == "get":
        value = get_config(args.key, args.config)
        if value is None:
            print(f"dockerdash: unknown config key: {args.key}", file=sys.stderr)
            return 1
        print(json.dumps(value))
    elif args.action == "set":
        try:
            set_config(args.key, _parse_value(args.value), args.config)
        except ValueError as e:
            print(f"dockerdash: {e}", file=sys.stderr)
            return 1
        show_status(f"{args.key} updated", "success")
    return 0


# ── Parser ─────────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dockerdash",
        description="A terminal UI for managing Docker containers with real-time monitoring.",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument(
        "--config", type=Path, default=None, metavar="PATH", help="Path to JSON config file"
    )
    parser.add_argument(
        "--debug", action="store_true", help=f"Write debug log to {DEBUG_LOG}"
    )
    parser.set_defaults(func=cmd_menu, command=None)
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("list", aliases=["ls"], help="List containers")
    p.add_argument("--running", action="store_true", help="Only running containers")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("logs", help="View container logs")
    p.add_argument("container")
    p.add_argument("-t", "--tail", type=int, default=None, help="Lines of history (default: logTail)")
    p.add_argument("--no-follow", action="store_true", help="Print and exit")
    p.set_defaults(func=cmd_logs)

    p = sub.add_parser("stats", help="Live stats for one container, or the dashboard")
    p.add_argument("container", nargs="?")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("dashboard", aliases=["dash"], help="Live dashboard of running containers")
    p.set_defaults(func=cmd_dashboard)

    for name, fn, doing, done in (
        ("start", docker_api.start_container, "Starting", "started"),
        ("stop", docker_api.stop_container, "Stopping", "stopped"),
        ("restart", docker_api.restart_container, "Restarting", "restarted"),
    ):
        p = sub.add_parser(name, help=f"{name.capitalize()} a container")
        p.add_argument("container")
        p.set_defaults(func=_lifecycle(fn, doing, done))

    p = sub.add_parser("remove", aliases=["rm"], help="Remove a container")
    p.add_argument("container")
    p.add_argument("-f", "--force", action="store_true", help="Remove even if running")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("rebuild", help="Rebuild container (stop, refresh image, recreate)")
    p.add_argument("container")
    p.add_argument("--no-cache", action="store_true", help="Build without cache")
    p.set_defaults(func=cmd_rebuild)

    p = sub.add_parser("build", help="Build an image with live progress")
    p.add_argument("context", nargs="?", default=".")
    p.add_argument("-t", "--tag")
    p.add_argument("-f", "--file", default="Dockerfile")
    p.add_argument("--no-cache", action="store_true")
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("images", help="List images")
    p.add_argument("--history", metavar="IMAGE", help="Show layer history of IMAGE")
    p.set_defaults(func=cmd_images)

    sub.add_parser("volumes", help="List volumes").set_defaults(func=cmd_volumes)
    sub.add_parser("networks", help="List networks").set_defaults(func=cmd_networks)

    p = sub.add_parser("prune", help="Remove unused Docker objects")
    p.add_argument("target", nargs="?", default="system", choices=sorted(_PRUNERS))
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(func=cmd_prune)

    p = sub.add_parser("compose", help="Docker Compose project helpers")
    p.add_argument("action", choices=["ps", "up", "down", "restart", "rebuild", "logs"])
    p.add_argument("service", nargs="?")
    p.add_argument("--dir", type=Path, default=Path.cwd(), help="Project directory")
    p.add_argument("--build", action="store_true", help="up: build images first")
    p.add_argument("--volumes", action="store_true", help="down: also remove volumes")
    p.add_argument("--no-cache", action="store_true", help="rebuild: build without cache")
    p.add_argument("--follow", action="store_true", help="logs: follow output")
    p.set_defaults(func=cmd_compose)

    p = sub.add_parser("config", help="Show or change settings")
    csub = p.add_subparsers(dest="action", required=True)
    csub.add_parser("show", help="Print the effective configuration")
    csub.add_parser("defaults", help="Print the default configuration")
    g = csub.add_parser("get", help="Print one setting")
    g.add_argument("key")
    s = csub.add_parser("set", help="Change one setting")
    s.add_argument("key", help=f"One of: {', '.join(DEFAULT_CONFIG)}")
    s.add_argument("value")
    p.set_defaults(func=cmd_config)

    return parser


# ── Entry point ────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.debug)
    config = load_config(args.config)

    try:
        if args.command != "config":
            check_docker()
        code = args.func(args, config)
    except DockerError as e:
        show_status(f"Failed to {e.action}: {e.message}", "error")
        code = 1
    except KeyboardInterrupt:
        print(f"\n\n{CYAN}Goodbye!{RESET}\n")
        code = 0
    except Exception as e:  # last-resort report; details go to the debug log
        log.exception("unexpected error")
        print(f"dockerdash: unexpected error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
