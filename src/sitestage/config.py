"""Configuration management for Sitestage.

Supports TOML configuration format with auto-discovery.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "sitestage.toml"

DEFAULT_BUILD_COMMAND = [
    "bundle",
    "exec",
    "jekyll",
    "build",
    "--source",
    "{source}",
    "--destination",
    "{destination}",
]
DEFAULT_PERMALINK = "/log/:year/:month/:day/:title"
DEFAULT_DEPLOY_MESSAGE = "rebuild of _site/ dir for release"


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 4000


@dataclass
class SiteConfig:
    """Content and build output layout."""

    source_dir: Path = field(default_factory=lambda: Path("."))
    output_dir: Path = field(default_factory=lambda: Path("_site"))
    builds_dir: Path = field(default_factory=lambda: Path(".builds"))
    posts_dir: str = "_posts"
    drafts_dir: str = "_drafts"
    permalink: str = DEFAULT_PERMALINK
    extra_files: list[Path] = field(default_factory=list)
    keep_builds: int = 3


@dataclass
class BuildConfig:
    """External site builder configuration."""

    command: list[str] = field(default_factory=lambda: list(DEFAULT_BUILD_COMMAND))
    drafts_flag: str = "--drafts"


@dataclass
class ToolchainConfig:
    """Toolchain environment configuration."""

    path_prepend: list[str] = field(default_factory=list)


@dataclass
class ContainerConfig:
    """Build container configuration."""

    enabled: bool = False
    image: str = "sitestage:latest"
    dockerfile: str = "Dockerfile"
    workdir: str = "/source"


@dataclass
class DeployConfig:
    """Git-based deployment configuration."""

    remotes: list[str] = field(default_factory=lambda: ["origin"])
    branch: str = "master"
    message: str = DEFAULT_DEPLOY_MESSAGE


@dataclass
class LiveReloadConfig:
    """Live reload configuration."""

    enabled: bool = False
    watch_patterns: list[str] | None = None


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    site: SiteConfig
    build: BuildConfig
    toolchain: ToolchainConfig
    container: ContainerConfig
    deploy: DeployConfig
    live_reload: LiveReloadConfig
    project_dir: Path = field(default_factory=lambda: Path("."))
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """Load configuration from file.

        If config_path is provided, loads from that file.
        Otherwise, searches for sitestage.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls._load_from_file(config_path)

        discovered_path = cls._discover_config()
        if discovered_path is None:
            return cls._default()

        return cls._load_from_file(discovered_path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents.

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def _default(cls) -> Config:
        """Create config with all defaults.

        Returns:
            Config instance with default values
        """
        return cls(
            server=ServerConfig(),
            site=SiteConfig(),
            build=BuildConfig(),
            toolchain=ToolchainConfig(),
            container=ContainerConfig(),
            deploy=DeployConfig(),
            live_reload=LiveReloadConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> Config:
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            data = tomllib.load(f)

        if not isinstance(data, dict):
            raise ValueError("Configuration must be a dictionary")

        config_dir = path.parent

        return cls(
            server=cls._parse_server(data.get("server")),
            site=cls._parse_site(data.get("site"), config_dir),
            build=cls._parse_build(data.get("build")),
            toolchain=cls._parse_toolchain(data.get("toolchain")),
            container=cls._parse_container(data.get("container")),
            deploy=cls._parse_deploy(data.get("deploy")),
            live_reload=cls._parse_live_reload(data.get("live_reload")),
            project_dir=config_dir,
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        """Parse server configuration section.

        Args:
            data: Raw server section data

        Returns:
            ServerConfig instance
        """
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 4000)
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_site(cls, data: object, config_dir: Path) -> SiteConfig:
        """Parse site configuration section.

        Args:
            data: Raw site section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            SiteConfig instance
        """
        if data is None:
            return SiteConfig(
                source_dir=config_dir,
                output_dir=config_dir / "_site",
                builds_dir=config_dir / ".builds",
            )

        if not isinstance(data, dict):
            raise ValueError("site section must be a dictionary")

        source_dir = _require_str(data, "site", "source_dir", ".")
        output_dir = _require_str(data, "site", "output_dir", "_site")
        builds_dir = _require_str(data, "site", "builds_dir", ".builds")
        posts_dir = _require_str(data, "site", "posts_dir", "_posts")
        drafts_dir = _require_str(data, "site", "drafts_dir", "_drafts")
        permalink = _require_str(data, "site", "permalink", DEFAULT_PERMALINK)
        if not permalink.startswith("/"):
            raise ValueError("site.permalink must start with '/'")

        extra_files = [
            config_dir / item
            for item in _require_str_list(data, "site", "extra_files", [])
        ]

        keep_builds = data.get("keep_builds", 3)
        if not isinstance(keep_builds, int) or isinstance(keep_builds, bool):
            raise ValueError("site.keep_builds must be an integer")
        if keep_builds < 1:
            raise ValueError("site.keep_builds must be at least 1")

        return SiteConfig(
            source_dir=config_dir / source_dir,
            output_dir=config_dir / output_dir,
            builds_dir=config_dir / builds_dir,
            posts_dir=posts_dir,
            drafts_dir=drafts_dir,
            permalink=permalink,
            extra_files=extra_files,
            keep_builds=keep_builds,
        )

    @classmethod
    def _parse_build(cls, data: object) -> BuildConfig:
        """Parse build configuration section.

        Args:
            data: Raw build section data

        Returns:
            BuildConfig instance
        """
        if data is None:
            return BuildConfig()

        if not isinstance(data, dict):
            raise ValueError("build section must be a dictionary")

        command = _require_str_list(data, "build", "command", DEFAULT_BUILD_COMMAND)
        if not command:
            raise ValueError("build.command must not be empty")

        drafts_flag = _require_str(data, "build", "drafts_flag", "--drafts")

        return BuildConfig(command=command, drafts_flag=drafts_flag)

    @classmethod
    def _parse_toolchain(cls, data: object) -> ToolchainConfig:
        """Parse toolchain configuration section.

        Args:
            data: Raw toolchain section data

        Returns:
            ToolchainConfig instance
        """
        if data is None:
            return ToolchainConfig()

        if not isinstance(data, dict):
            raise ValueError("toolchain section must be a dictionary")

        return ToolchainConfig(
            path_prepend=_require_str_list(data, "toolchain", "path_prepend", []),
        )

    @classmethod
    def _parse_container(cls, data: object) -> ContainerConfig:
        """Parse container configuration section.

        Args:
            data: Raw container section data

        Returns:
            ContainerConfig instance
        """
        if data is None:
            return ContainerConfig()

        if not isinstance(data, dict):
            raise ValueError("container section must be a dictionary")

        enabled = data.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ValueError("container.enabled must be a boolean")

        return ContainerConfig(
            enabled=enabled,
            image=_require_str(data, "container", "image", "sitestage:latest"),
            dockerfile=_require_str(data, "container", "dockerfile", "Dockerfile"),
            workdir=_require_str(data, "container", "workdir", "/source"),
        )

    @classmethod
    def _parse_deploy(cls, data: object) -> DeployConfig:
        """Parse deploy configuration section.

        Args:
            data: Raw deploy section data

        Returns:
            DeployConfig instance
        """
        if data is None:
            return DeployConfig()

        if not isinstance(data, dict):
            raise ValueError("deploy section must be a dictionary")

        return DeployConfig(
            remotes=_require_str_list(data, "deploy", "remotes", ["origin"]),
            branch=_require_str(data, "deploy", "branch", "master"),
            message=_require_str(data, "deploy", "message", DEFAULT_DEPLOY_MESSAGE),
        )

    @classmethod
    def _parse_live_reload(cls, data: object) -> LiveReloadConfig:
        """Parse live_reload configuration section.

        Args:
            data: Raw live_reload section data

        Returns:
            LiveReloadConfig instance
        """
        if data is None:
            return LiveReloadConfig()

        if not isinstance(data, dict):
            raise ValueError("live_reload section must be a dictionary")

        enabled = data.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ValueError("live_reload.enabled must be a boolean")

        watch_patterns: list[str] | None = None
        if data.get("watch_patterns") is not None:
            watch_patterns = _require_str_list(data, "live_reload", "watch_patterns", [])

        return LiveReloadConfig(enabled=enabled, watch_patterns=watch_patterns)

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        output_dir: Path | None = None,
        live_reload_enabled: bool | None = None,
        container_enabled: bool | None = None,
    ) -> Config:
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.

        Args:
            host: Override server.host
            port: Override server.port
            output_dir: Override site.output_dir
            live_reload_enabled: Override live_reload.enabled
            container_enabled: Override container.enabled

        Returns:
            New Config instance with overrides applied
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        site = self.site
        if output_dir is not None:
            site = replace(self.site, output_dir=output_dir)

        live_reload = self.live_reload
        if live_reload_enabled is not None:
            live_reload = replace(self.live_reload, enabled=live_reload_enabled)

        container = self.container
        if container_enabled is not None:
            container = replace(self.container, enabled=container_enabled)

        return replace(
            self,
            server=server,
            site=site,
            live_reload=live_reload,
            container=container,
        )


def _require_str(data: dict, section: str, key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{section}.{key} must be a string")
    return value


def _require_str_list(
    data: dict,
    section: str,
    key: str,
    default: list[str],
) -> list[str]:
    raw = data.get(key, default)
    if not isinstance(raw, list):
        raise ValueError(f"{section}.{key} must be a list")
    items: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise ValueError(f"{section}.{key} items must be strings")
        items.append(item)
    return items
