"""Tests for toolchain wrappers."""

import os
import sys
from collections.abc import Sequence
from pathlib import Path

from sitestage.config import ContainerConfig, DeployConfig
from sitestage.core.toolchain import (
    COMMAND_NOT_FOUND,
    CommandRunner,
    ContainerRunner,
    clean,
    deploy,
)


class ScriptedRunner(CommandRunner):
    """Runner returning scripted exit codes and output."""

    def __init__(
        self,
        cwd: Path,
        *,
        failing: Sequence[str] = (),
        outputs: dict[str, str] | None = None,
    ) -> None:
        super().__init__(cwd)
        self.commands: list[list[str]] = []
        self._failing = list(failing)
        self._outputs = outputs or {}

    def run(self, argv: Sequence[str]) -> int:
        self.commands.append(list(argv))
        return 1 if " ".join(argv) in self._failing else 0

    def capture(self, argv: Sequence[str]) -> tuple[int, str]:
        self.commands.append(list(argv))
        return 0, self._outputs.get(argv[1], "")


class TestCommandRunner:
    """Tests for CommandRunner."""

    def test__path_prepend__extends_path(self, tmp_path: Path) -> None:
        """Configured entries come before the inherited PATH."""
        runner = CommandRunner(tmp_path, path_prepend=["/opt/a", "/opt/b"])

        path = runner.env()["PATH"].split(os.pathsep)

        assert path[:2] == ["/opt/a", "/opt/b"]

    def test__no_prepend__path_unchanged(self, tmp_path: Path) -> None:
        """Without entries the environment is inherited as is."""
        runner = CommandRunner(tmp_path)

        assert runner.env().get("PATH") == os.environ.get("PATH")

    def test__run__returns_exit_code(self, tmp_path: Path) -> None:
        """The wrapped command's exit code is passed through."""
        runner = CommandRunner(tmp_path)

        code = runner.run([sys.executable, "-c", "import sys; sys.exit(7)"])

        assert code == 7

    def test__run__uses_working_directory(self, tmp_path: Path) -> None:
        """Commands run in the runner's working directory."""
        runner = CommandRunner(tmp_path)

        runner.run([sys.executable, "-c", "open('marker', 'w').close()"])

        assert (tmp_path / "marker").exists()

    def test__missing_executable__returns_127(self, tmp_path: Path) -> None:
        """A missing executable reports the shell's not-found code."""
        runner = CommandRunner(tmp_path)

        assert runner.run(["definitely-not-a-real-command-xyz"]) == COMMAND_NOT_FOUND

    def test__capture__returns_stdout(self, tmp_path: Path) -> None:
        """Captured output is returned as text."""
        runner = CommandRunner(tmp_path)

        code, output = runner.capture([sys.executable, "-c", "print('abc')"])

        assert code == 0
        assert output.strip() == "abc"


class TestContainerRunner:
    """Tests for ContainerRunner."""

    def test__build_image__tags_from_config(self, tmp_path: Path) -> None:
        """Build the image with the configured tag and Dockerfile."""
        runner = ScriptedRunner(tmp_path)
        container = ContainerRunner(
            ContainerConfig(image="blog:latest", dockerfile="Dockerfile.build"),
            tmp_path,
            runner,
        )

        assert container.build_image() == 0
        assert runner.commands == [
            ["docker", "build", "-t", "blog:latest", "-f", "Dockerfile.build", "."],
        ]

    def test__wrap__mounts_project_and_publishes_ports(self, tmp_path: Path) -> None:
        """Wrapped commands mount the project at the workdir."""
        container = ContainerRunner(ContainerConfig(image="blog:latest"), tmp_path, ScriptedRunner(tmp_path))

        command = container.wrap(["bundle", "exec", "jekyll", "serve"], ports=[4000])

        assert command == [
            "docker",
            "run",
            "--rm",
            "-v",
            f"{tmp_path.resolve()}:/source",
            "--expose",
            "4000",
            "-p",
            "4000:4000",
            "-w",
            "/source",
            "blog:latest",
            "bundle",
            "exec",
            "jekyll",
            "serve",
        ]

    def test__run_shell__interactive_bash(self, tmp_path: Path) -> None:
        """The shell runs interactively with a TTY."""
        runner = ScriptedRunner(tmp_path)
        container = ContainerRunner(ContainerConfig(), tmp_path, runner)

        container.run_shell(4000)

        command = runner.commands[0]
        assert command[:3] == ["docker", "run", "-ti"]
        assert command[-1] == "/bin/bash"


class TestDeploy:
    """Tests for deploy()."""

    def test__all_steps_succeed__pushes_every_remote(self, tmp_path: Path) -> None:
        """Stage, commit, then push to each remote."""
        runner = ScriptedRunner(tmp_path)
        config = DeployConfig(remotes=["origin", "heroku"], branch="master", message="release")

        code = deploy(runner, config, [tmp_path / ".builds", tmp_path / "_site"])

        assert code == 0
        assert runner.commands == [
            ["git", "add", "-A", ".builds", "_site"],
            ["git", "commit", "-m", "release"],
            ["git", "push", "origin", "master"],
            ["git", "push", "heroku", "master"],
        ]

    def test__failing_step__stops_and_returns_code(self, tmp_path: Path) -> None:
        """A failing push stops the remaining steps."""
        runner = ScriptedRunner(tmp_path, failing=["git push origin master"])
        config = DeployConfig(remotes=["origin", "heroku"])

        code = deploy(runner, config, [tmp_path / "_site"])

        assert code == 1
        assert ["git", "push", "heroku", "master"] not in runner.commands


class TestClean:
    """Tests for clean()."""

    def test__nothing_to_remove__only_prunes(self, tmp_path: Path) -> None:
        """Empty listings skip rmi and rm."""
        runner = ScriptedRunner(tmp_path)

        assert clean(runner) == 0
        assert runner.commands[-1] == ["docker", "system", "prune", "-f"]
        assert not any(cmd[:2] in (["docker", "rmi"], ["docker", "rm"]) for cmd in runner.commands)

    def test__dangling_images_and_containers__removed(self, tmp_path: Path) -> None:
        """Listed ids are passed to rmi and rm."""
        runner = ScriptedRunner(tmp_path, outputs={"images": "aaa\nbbb\n", "ps": "ccc\n"})

        clean(runner)

        assert ["docker", "rmi", "aaa", "bbb"] in runner.commands
        assert ["docker", "rm", "ccc"] in runner.commands
