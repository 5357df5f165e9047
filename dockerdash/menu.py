"""Interactive menus: containers, images, volumes, networks and system prune.

Prompts use plain ``input()``; a failed Docker call prints a red status line
and drops back to the menu it came from.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from dockerdash import docker_api
from dockerdash.banner import clear_screen, show_banner, show_header, show_status
from dockerdash.build import quick_rebuild
from dockerdash.charts import BOLD, CYAN, DIM, GREEN, RED, RESET, YELLOW, fmt_bytes
from dockerdash.dashboard import show_container_stats, show_dashboard
from dockerdash.docker_api import DockerError
from dockerdash.logs import stream_logs
from dockerdash.models import ContainerSummary
from dockerdash.shell import open_shell
from dockerdash.tables import (
    containers_table,
    history_table,
    images_table,
    networks_table,
    volumes_table,
)

Choice = tuple[str, str]  # (key, label)


# ── Prompt helpers ─────────────────────────────────────────────────────────


def _hr() -> str:
    return f"{DIM}{'─' * 60}{RESET}"


def ask(prompt: str) -> str | None:
    """Read one line; *None* when stdin is closed."""
    try:
        return input(prompt).strip()
    except EOFError:
        return None


def choose(title: str, choices: list[Choice]) -> str | None:
    """Show numbered *choices* and return the chosen key, or None on EOF."""
    print(f"\n  {BOLD}{title}{RESET}")
    for i, (_, label) in enumerate(choices, 1):
        print(f"    {CYAN}[{i}]{RESET} {label}")
    while True:
        answer = ask(f"\n  Choice [1-{len(choices)}]: ")
        if answer is None:
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1][0]
        print(f"  {YELLOW}Enter a number between 1 and {len(choices)}{RESET}")


def confirm(message: str, default: bool = False) -> bool:
    hint = "Y/n" if default else "y/N"
    answer = ask(f"  {message} [{hint}]: ")
    if not answer:
        return default
    return answer.lower() in ("y", "yes")


def pause() -> None:
    ask(f"\n  {DIM}Press Enter to continue...{RESET}")


def attempt(success: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
    """Call *fn*; report ``✓ success`` or ``✕ Failed to <action>: <message>``."""
    try:
        fn(*args, **kwargs)
    except DockerError as e:
        show_status(f"Failed to {e.action}: {e.message}", "error")
        return False
    show_status(success, "success")
    return True


# ── Main menu ──────────────────────────────────────────────────────────────


def main_menu(config: dict[str, Any]) -> None:
    while True:
        clear_screen()
        show_banner()
        counts = docker_api.container_counts()
        choice = choose(
            "What would you like to do?",
            [
                (
                    "containers",
                    f"Containers ({GREEN}{counts['running']} running{RESET}, "
                    f"{RED}{counts['stopped']} stopped{RESET})",
                ),
                ("images", "Images"),
                ("volumes", "Volumes"),
                ("networks", "Networks"),
                ("dashboard", "Live Dashboard"),
                ("prune", "System Prune"),
                ("exit", "Exit"),
            ],
        )
        if choice in (None, "exit"):
            print(f"\n{CYAN}Goodbye!{RESET}\n")
            return
        if choice == "containers":
            containers_menu(config)
        elif choice == "images":
            images_menu()
        elif choice == "volumes":
            volumes_menu()
        elif choice == "networks":
            networks_menu()
        elif choice == "dashboard":
            try:
                show_dashboard(config)
            except DockerError as e:
                show_status(f"Failed to {e.action}: {e.message}", "error")
            pause()
        elif choice == "prune":
            system_prune_menu()


# ── Containers ─────────────────────────────────────────────────────────────


def containers_menu(config: dict[str, Any]) -> None:
    while True:
        clear_screen()
        show_header("Containers")
        containers = docker_api.list_containers(all=config["showAllContainers"])
        if not containers:
            show_status("No containers found", "warning")
            pause()
            return

        choices: list[Choice] = [
            (c.id, f"{GREEN + '●' if c.running else RED + '○'}{RESET} {c.name}")
            for c in containers
        ]
        choices.append(("back", f"{DIM}← Back to main menu{RESET}"))
        choice = choose("Select a container:", choices)
        if choice in (None, "back"):
            return
        selected = next(c for c in containers if c.id == choice)
        container_actions_menu(config, selected)


_LIFECYCLE: dict[str, tuple[Callable[[str], None], str, str]] = {
    "start": (docker_api.start_container, "Starting", "started"),
    "stop": (docker_api.stop_container, "Stopping", "stopped"),
    "restart": (docker_api.restart_container, "Restarting", "restarted"),
}


def container_actions_menu(config: dict[str, Any], container: ContainerSummary) -> None:
    name = container.name
    while True:
        clear_screen()
        show_header(f"Container: {name}")
        print(containers_table([container]))

        choices: list[Choice] = [("logs", "View Logs"), ("stats", "View Stats")]
        if container.running:
            choices += [("shell", "Open Shell"), ("restart", "Restart"), ("stop", "Stop")]
        else:
            choices.append(("start", "Start"))
        choices += [("rebuild", "Rebuild"), ("remove", "Remove"), ("back", "← Back")]

        action = choose("Action:", choices)
        if action in (None, "back"):
            return

        try:
            if action == "logs":
                stream_logs(name, tail=config["logTail"])
            elif action == "stats":
                show_container_stats(name, config)
            elif action == "shell":
                open_shell(name, docker_api.detect_shell(name))
            elif action == "rebuild":
                rebuild(name)
                pause()
                return
            elif action == "remove":
                force = confirm("Force remove (if running)?")
                if not confirm(f"Are you sure you want to remove {name}?"):
                    continue
                removed = attempt(
                    f"Container {name} removed", docker_api.remove_container, name, force=force
                )
                pause()
                if removed:
                    return
                continue
            else:
                fn, doing, done = _LIFECYCLE[action]
                print(f"\n  {doing} {name}...")
                attempt(f"Container {name} {done}", fn, name)
                pause()
        except DockerError as e:
            show_status(f"Failed to {e.action}: {e.message}", "error")
            pause()

        # state may have changed; refresh the summary
        try:
            refreshed = [c for c in docker_api.list_containers(all=True) if c.name == name]
        except DockerError as e:
            show_status(f"Failed to {e.action}: {e.message}", "error")
            pause()
            continue
        if not refreshed:
            return
        container = refreshed[0]


def rebuild(name: str, no_cache: bool = False) -> bool:
    """Quick-rebuild a container, echoing progress. Returns True on success."""
    print(f"\n  Rebuilding {name}...")
    result = quick_rebuild(
        name,
        no_cache=no_cache,
        on_output=lambda msg: print(f"  {DIM}{msg.rstrip()}{RESET}"),
    )
    if not result.success:
        show_status(f"Rebuild failed: {result.error}", "error")
        return False
    show_status(f"Container {name} rebuilt successfully", "success")
    if result.method == "compose":
        print(f"  {DIM}Used Docker Compose ({result.project}/{result.service}){RESET}")
    return True


# ── Images / volumes / networks ────────────────────────────────────────────


def images_menu() -> None:
    while True:
        clear_screen()
        show_header("Images")
        print(images_table(docker_api.list_images()))
        action = choose(
            "Action:",
            [
                ("history", "Show layer history"),
                ("remove", "Remove an image"),
                ("prune", "Prune dangling images"),
                ("back", "← Back"),
            ],
        )
        if action in (None, "back"):
            return
        if action == "history":
            ref = ask("  Image (name:tag or id): ")
            if ref:
                try:
                    print(history_table(docker_api.image_history(ref)))
                except DockerError as e:
                    show_status(f"Failed to {e.action}: {e.message}", "error")
        elif action == "remove":
            ref = ask("  Image to remove (name:tag or id): ")
            if ref and confirm(f"Remove image {ref}?"):
                attempt(f"Image {ref} removed", docker_api.remove_image, ref)
        elif action == "prune":
            _prune("dangling images", docker_api.prune_images)
        pause()


def volumes_menu() -> None:
    while True:
        clear_screen()
        show_header("Volumes")
        print(volumes_table(docker_api.list_volumes()))
        action = choose(
            "Action:",
            [("remove", "Remove a volume"), ("prune", "Prune unused volumes"), ("back", "← Back")],
        )
        if action in (None, "back"):
            return
        if action == "remove":
            name = ask("  Volume to remove: ")
            if name:
                try:
                    users = docker_api.volume_containers(name)
                except DockerError as e:
                    show_status(f"Failed to {e.action}: {e.message}", "error")
                    pause()
                    continue
                if users:
                    names = ", ".join(c.name for c in users)
                    show_status(f"Volume {name} is used by: {names}", "warning")
                if confirm(f"Remove volume {name}?"):
                    attempt(f"Volume {name} removed", docker_api.remove_volume, name, force=bool(users))
        elif action == "prune":
            _prune("unused volumes", docker_api.prune_volumes)
        pause()


def networks_menu() -> None:
    while True:
        clear_screen()
        show_header("Networks")
        networks = docker_api.list_networks()
        print(networks_table(networks))
        action = choose(
            "Action:",
            [("remove", "Remove a network"), ("prune", "Prune unused networks"), ("back", "← Back")],
        )
        if action in (None, "back"):
            return
        if action == "remove":
            name = ask("  Network to remove: ")
            if name and any(n.is_system and name in (n.name, n.id[:12]) for n in networks):
                show_status(f"{name} is a built-in network and cannot be removed", "warning")
            elif name and confirm(f"Remove network {name}?"):
                attempt(f"Network {name} removed", docker_api.remove_network, name)
        elif action == "prune":
            _prune("unused networks", docker_api.prune_networks)
        pause()


def _prune(what: str, fn: Callable[[], dict[str, Any]]) -> None:
    if not confirm(f"Remove all {what}?"):
        return
    try:
        result = fn()
    except DockerError as e:
        show_status(f"Failed to {e.action}: {e.message}", "error")
        return
    show_status(f"Pruned {what}, reclaimed {fmt_bytes(docker_api.reclaimed_bytes(result))}", "success")


def system_prune_menu() -> None:
    clear_screen()
    show_header("System Prune")
    print(f"  {YELLOW}This removes stopped containers, dangling images,")
    print(f"  unused volumes and unused networks.{RESET}\n")
    print(_hr())
    if confirm("Continue?"):
        try:
            result = docker_api.system_prune()
        except DockerError as e:
            show_status(f"Failed to {e.action}: {e.message}", "error")
        else:
            show_status(
                f"System pruned, reclaimed {fmt_bytes(docker_api.reclaimed_bytes(result))}",
                "success",
            )
    pause()
