"""Wrappers around the external toolchain.

Every operation here is a thin pass-through to docker or git. Arguments are
forwarded verbatim and the wrapped tool's exit code is returned unchanged.
"""

import logging
import os
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path

from sitestage.config import Config, ContainerConfig, DeployConfig

logger = logging.getLogger(__name__)

# Exit code reported when the executable itself is missing (as POSIX shells do)
COMMAND_NOT_FOUND = 127


class CommandRunner:
    """Runs toolchain commands with an extended PATH."""

    def __init__(self, cwd: Path, *, path_prepend: Sequence[str] = ()) -> None:
        """Initialize the runner.

        Args:
            cwd: Working directory for every command
            path_prepend: Entries placed in front of PATH (e.g., asdf shims)
        """
        self._cwd = cwd
        self._path_prepend = list(path_prepend)

    @property
    def cwd(self) -> Path:
        """Working directory for commands."""
        return self._cwd

    def env(self) -> dict[str, str]:
        """Build the environment passed to commands."""
        env = dict(os.environ)
        if self._path_prepend:
            entries = list(self._path_prepend)
            if env.get("PATH"):
                entries.append(env["PATH"])
            env["PATH"] = os.pathsep.join(entries)
        return env

    def run(self, argv: Sequence[str]) -> int:
        """Run a command, streaming its output.

        Args:
            argv: Command and arguments

        Returns:
            Exit code of the command
        """
        logger.info(f"Running: {shlex.join(argv)}")
        try:
            completed = subprocess.run(list(argv), cwd=self._cwd, env=self.env(), check=False)
        except FileNotFoundError:
            logger.error(f"Command not found: {argv[0]}")
            return COMMAND_NOT_FOUND
        if completed.returncode != 0:
            logger.error(f"Command exited with {completed.returncode}: {shlex.join(argv)}")
        return completed.returncode

    def capture(self, argv: Sequence[str]) -> tuple[int, str]:
        """Run a command and capture its standard output.

        Args:
            argv: Command and arguments

        Returns:
            Tuple of (exit code, stdout text)
        """
        logger.debug(f"Capturing: {shlex.join(argv)}")
        try:
            completed = subprocess.run(
                list(argv),
                cwd=self._cwd,
                env=self.env(),
                check=False,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError:
            logger.error(f"Command not found: {argv[0]}")
            return COMMAND_NOT_FOUND, ""
        return completed.returncode, completed.stdout


def create_runner(config: Config) -> CommandRunner:
    """Create a command runner rooted at the project directory."""
    return CommandRunner(config.project_dir, path_prepend=config.toolchain.path_prepend)


class ContainerRunner:
    """Builds the toolchain image and runs commands inside it."""

    def __init__(
        self,
        config: ContainerConfig,
        project_dir: Path,
        runner: CommandRunner,
    ) -> None:
        self._config = config
        self._project_dir = project_dir
        self._runner = runner

    def build_image(self) -> int:
        """Build the toolchain image from the configured Dockerfile."""
        return self._runner.run(
            ["docker", "build", "-t", self._config.image, "-f", self._config.dockerfile, "."],
        )

    def wrap(
        self,
        argv: Sequence[str],
        *,
        ports: Sequence[int] = (),
        interactive: bool = False,
    ) -> list[str]:
        """Wrap a command so it runs inside the toolchain container.

        The project directory is mounted at the container workdir.

        Args:
            argv: Command to run inside the container
            ports: Ports to publish on the host
            interactive: Allocate a TTY and keep stdin open

        Returns:
            docker run command line
        """
        mount = f"{self._project_dir.resolve()}:{self._config.workdir}"
        command = ["docker", "run"]
        if interactive:
            command.append("-ti")
        command.extend(["--rm", "-v", mount])
        for port in ports:
            command.extend(["--expose", str(port), "-p", f"{port}:{port}"])
        command.extend(["-w", self._config.workdir, self._config.image])
        command.extend(argv)
        return command

    def run_shell(self, port: int) -> int:
        """Open an interactive shell in the toolchain container."""
        return self._runner.run(self.wrap(["/bin/bash"], ports=[port], interactive=True))


def deploy(
    runner: CommandRunner,
    config: DeployConfig,
    paths: Sequence[Path],
) -> int:
    """Commit the built site and push it to every configured remote.

    Stops at the first failing step.

    Args:
        runner: Command runner rooted at the repository
        config: Deploy configuration
        paths: Paths to stage (builds directory and current pointer)

    Returns:
        Exit code of the last command run
    """
    staged = [os.path.relpath(path, runner.cwd) for path in paths]
    steps: list[list[str]] = [
        ["git", "add", "-A", *staged],
        ["git", "commit", "-m", config.message],
    ]
    steps.extend(["git", "push", remote, config.branch] for remote in config.remotes)

    for step in steps:
        code = runner.run(step)
        if code != 0:
            return code
    return 0


def clean(runner: CommandRunner) -> int:
    """Remove dangling docker images and stopped containers, then prune.

    Having nothing to remove is not an error.

    Returns:
        Exit code of ``docker system prune``
    """
    code, output = runner.capture(["docker", "images", "-a", "-q", "-f", "dangling=true"])
    images = output.split()
    if code == 0 and images:
        runner.run(["docker", "rmi", *images])
    else:
        logger.info("No dangling images to remove")

    code, output = runner.capture(
        ["docker", "ps", "--filter=status=exited", "--filter=status=created", "-q"],
    )
    containers = output.split()
    if code == 0 and containers:
        runner.run(["docker", "rm", *containers])
    else:
        logger.info("No exited or created containers to remove")

    return runner.run(["docker", "system", "prune", "-f"])
