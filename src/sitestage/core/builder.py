"""Versioned site builds.

Each build runs the external site generator into a fresh directory and then
swaps the current-build pointer to it:

    .builds/
    ├── 20261019T101500123456Z/     # previous build
    └── 20261019T113000654321Z/     # current build
    _site -> .builds/20261019T113000654321Z

The pointer is replaced with an atomic rename, so a request never sees a
half-written tree. A failed build leaves the pointer untouched.
"""

import hashlib
import logging
import os
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from sitestage.config import Config
from sitestage.core.toolchain import CommandRunner, ContainerRunner, create_runner

logger = logging.getLogger(__name__)

BUILD_ID_RE = re.compile(r"^\d{8}T\d{12}Z(-\d+)?$")


class BuildError(RuntimeError):
    """Site build failed; the current build is unchanged."""

    def __init__(self, message: str, returncode: int = 1) -> None:
        super().__init__(message)
        self.returncode = returncode


@dataclass
class BuildResult:
    """Outcome of a successful build."""

    build_id: str
    build_dir: Path
    digest: str
    pruned: list[Path] = field(default_factory=list)


def tree_digest(root: Path) -> str:
    """Compute a SHA-256 digest of a directory tree.

    Covers relative paths and file contents, so two builds of the same
    content produce the same digest.

    Args:
        root: Directory to hash

    Returns:
        Hex digest
    """
    digest = hashlib.sha256()
    files = sorted(
        (path for path in root.rglob("*") if path.is_file()),
        key=lambda path: path.relative_to(root).as_posix(),
    )
    for path in files:
        digest.update(path.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")
    return digest.hexdigest()


def new_build_id(now: datetime | None = None) -> str:
    """Return a sortable UTC timestamp build id."""
    moment = now or datetime.now(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%S%fZ")


class SiteBuilder:
    """Runs the site generator and manages the current-build pointer."""

    def __init__(
        self,
        config: Config,
        runner: CommandRunner,
        *,
        container: ContainerRunner | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            config: Application configuration
            runner: Runner for the generator command
            container: Runs the generator inside the toolchain image when given
        """
        self._config = config
        self._runner = runner
        self._container = container

    @property
    def builds_dir(self) -> Path:
        """Directory holding versioned builds."""
        return self._config.site.builds_dir

    @property
    def output_dir(self) -> Path:
        """Current-build pointer."""
        return self._config.site.output_dir

    def current_build(self) -> Path | None:
        """Return the build directory the pointer refers to, if any."""
        if not self.output_dir.is_symlink():
            return None
        target = self.output_dir.resolve()
        return target if target.is_dir() else None

    def build(self, *, drafts: bool = False) -> BuildResult:
        """Build the site and make it current.

        Args:
            drafts: Ask the generator to render drafts too

        Returns:
            BuildResult describing the new current build

        Raises:
            BuildError: If the generator fails or extra files are missing
        """
        self.builds_dir.mkdir(parents=True, exist_ok=True)
        build_id = self._unique_build_id()
        destination = self.builds_dir / build_id

        try:
            returncode = self._runner.run(self._command(destination, drafts=drafts))
            if returncode != 0:
                raise BuildError(f"Site builder exited with {returncode}", returncode)
            if not destination.is_dir():
                raise BuildError(f"Site builder produced no output in {destination}")
            self._copy_extra_files(destination)
            digest = tree_digest(destination)
        except BaseException:
            if destination.exists():
                shutil.rmtree(destination, ignore_errors=True)
            raise

        self._swap(destination)
        pruned = self._prune()

        logger.info(f"Build {build_id} is current (digest {digest[:12]})")
        return BuildResult(build_id=build_id, build_dir=destination, digest=digest, pruned=pruned)

    def _command(self, destination: Path, *, drafts: bool) -> list[str]:
        """Expand the configured generator command."""
        source = self._config.site.source_dir
        if self._container is not None:
            project_dir = self._config.project_dir.absolute()
            source_arg = os.path.relpath(source.absolute(), project_dir)
            destination_arg = os.path.relpath(destination.absolute(), project_dir)
        else:
            source_arg = str(source.absolute())
            destination_arg = str(destination.absolute())

        command = [
            arg.replace("{source}", source_arg).replace("{destination}", destination_arg)
            for arg in self._config.build.command
        ]
        if drafts and self._config.build.drafts_flag:
            command.append(self._config.build.drafts_flag)

        if self._container is not None:
            return self._container.wrap(command)
        return command

    def _copy_extra_files(self, destination: Path) -> None:
        for extra in self._config.site.extra_files:
            if not extra.is_file():
                raise BuildError(f"Extra file not found: {extra}")
            shutil.copy2(extra, destination / extra.name)

    def _swap(self, build_dir: Path) -> None:
        """Point the output directory at build_dir atomically."""
        output = self.output_dir
        output.parent.mkdir(parents=True, exist_ok=True)

        if output.exists() and not output.is_symlink():
            logger.warning(f"Replacing in-place build directory {output} with a build pointer")
            shutil.rmtree(output)

        target = os.path.relpath(build_dir.absolute(), output.parent.absolute())
        temp_link = output.with_name(f".{output.name}.{build_dir.name}.tmp")
        if temp_link.is_symlink():
            temp_link.unlink()
        os.symlink(target, temp_link, target_is_directory=True)
        os.replace(temp_link, output)

    def _prune(self) -> list[Path]:
        """Delete old builds beyond keep_builds, never the current one."""
        builds = self._list_builds()
        keep = set(builds[-self._config.site.keep_builds :])
        current = self.current_build()

        pruned: list[Path] = []
        for build in builds:
            if build in keep or (current is not None and build.resolve() == current):
                continue
            logger.debug(f"Pruning old build {build.name}")
            shutil.rmtree(build)
            pruned.append(build)
        return pruned

    def _list_builds(self) -> list[Path]:
        if not self.builds_dir.is_dir():
            return []
        return sorted(
            (
                path
                for path in self.builds_dir.iterdir()
                if path.is_dir() and not path.is_symlink() and BUILD_ID_RE.match(path.name)
            ),
            key=lambda path: path.name,
        )

    def _unique_build_id(self) -> str:
        build_id = new_build_id()
        candidate = build_id
        counter = 1
        while (self.builds_dir / candidate).exists():
            candidate = f"{build_id}-{counter}"
            counter += 1
        return candidate


def stage_paths(builder: SiteBuilder) -> Sequence[Path]:
    """Paths a deployment must publish: all builds plus the pointer."""
    return [builder.builds_dir, builder.output_dir]


def create_builder(config: Config) -> SiteBuilder:
    """Create a builder, running the generator in the container if enabled."""
    runner = create_runner(config)
    container = None
    if config.container.enabled:
        container = ContainerRunner(config.container, config.project_dir, runner)
    return SiteBuilder(config, runner, container=container)
