"""Tests for configuration loading."""

from pathlib import Path
from unittest.mock import patch

import pytest
from sitestage.config import DEFAULT_BUILD_COMMAND, Config


class TestConfigLoad:
    """Tests for Config.load()."""

    def test__explicit_path__loads_config(self, tmp_path: Path) -> None:
        """Load config from explicit path."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text("""
[server]
host = "0.0.0.0"
port = 3000

[site]
source_dir = "blog"
output_dir = "public"
builds_dir = "releases"
posts_dir = "posts"
drafts_dir = "drafts"
permalink = "/:year/:title"
extra_files = ["blog-files/ads.txt"]
keep_builds = 5

[build]
command = ["jekyll", "build", "-d", "{destination}"]
drafts_flag = "--unpublished"

[toolchain]
path_prepend = ["/root/.asdf/shims", "/root/.asdf/bin"]

[container]
enabled = true
image = "johnmurray_io:latest"
dockerfile = "Dockerfile.build"
workdir = "/src"

[deploy]
remotes = ["origin", "heroku"]
branch = "main"
message = "release"

[live_reload]
enabled = true
watch_patterns = ["*.md"]
""")

        config = Config.load(config_file)

        assert config.server.host == "0.0.0.0"
        assert config.server.port == 3000
        assert config.site.source_dir == tmp_path / "blog"
        assert config.site.output_dir == tmp_path / "public"
        assert config.site.builds_dir == tmp_path / "releases"
        assert config.site.posts_dir == "posts"
        assert config.site.drafts_dir == "drafts"
        assert config.site.permalink == "/:year/:title"
        assert config.site.extra_files == [tmp_path / "blog-files/ads.txt"]
        assert config.site.keep_builds == 5
        assert config.build.command == ["jekyll", "build", "-d", "{destination}"]
        assert config.build.drafts_flag == "--unpublished"
        assert config.toolchain.path_prepend == ["/root/.asdf/shims", "/root/.asdf/bin"]
        assert config.container.enabled is True
        assert config.container.image == "johnmurray_io:latest"
        assert config.container.dockerfile == "Dockerfile.build"
        assert config.container.workdir == "/src"
        assert config.deploy.remotes == ["origin", "heroku"]
        assert config.deploy.branch == "main"
        assert config.deploy.message == "release"
        assert config.live_reload.enabled is True
        assert config.live_reload.watch_patterns == ["*.md"]
        assert config.project_dir == tmp_path
        assert config.config_path == config_file

    def test__minimal_config__uses_defaults(self, tmp_path: Path) -> None:
        """Load minimal config with defaults relative to config file."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text("")

        config = Config.load(config_file)

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 4000
        assert config.site.source_dir == tmp_path
        assert config.site.output_dir == tmp_path / "_site"
        assert config.site.builds_dir == tmp_path / ".builds"
        assert config.site.permalink == "/log/:year/:month/:day/:title"
        assert config.site.keep_builds == 3
        assert config.build.command == DEFAULT_BUILD_COMMAND
        assert config.container.enabled is False
        assert config.deploy.remotes == ["origin"]
        assert config.live_reload.enabled is False

    def test__missing_explicit_path__raises_error(self, tmp_path: Path) -> None:
        """Raise FileNotFoundError for missing explicit config file."""
        config_file = tmp_path / "nonexistent.toml"

        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Config.load(config_file)

    def test__no_path_no_discovery__returns_defaults(self) -> None:
        """Return defaults when no config file found."""
        with patch.object(Config, "_discover_config", return_value=None):
            config = Config.load()

        assert config.server.port == 4000
        assert config.site.output_dir == Path("_site")
        assert config.config_path is None


class TestConfigDiscovery:
    """Tests for config file discovery."""

    def test__config_in_current_dir__found(self, tmp_path: Path) -> None:
        """Find config in current directory."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text("[server]\nport = 9000")

        with patch("pathlib.Path.cwd", return_value=tmp_path):
            discovered = Config._discover_config()

        assert discovered == config_file

    def test__config_in_parent_dir__found(self, tmp_path: Path) -> None:
        """Find config in parent directory."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text("[server]\nport = 9000")
        nested = tmp_path / "_posts" / "nested"
        nested.mkdir(parents=True)

        with patch("pathlib.Path.cwd", return_value=nested):
            discovered = Config._discover_config()

        assert discovered == config_file


class TestConfigValidation:
    """Tests for invalid configuration values."""

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ('[server]\nport = "80"', "server.port must be an integer"),
            ("[server]\nhost = 1", "server.host must be a string"),
            ("[site]\noutput_dir = 1", "site.output_dir must be a string"),
            ('[site]\npermalink = "log/:title"', "site.permalink must start with '/'"),
            ("[site]\nkeep_builds = 0", "site.keep_builds must be at least 1"),
            ('[site]\nextra_files = "ads.txt"', "site.extra_files must be a list"),
            ("[build]\ncommand = []", "build.command must not be empty"),
            ("[build]\ncommand = [1]", "build.command items must be strings"),
            ('[container]\nenabled = "yes"', "container.enabled must be a boolean"),
            ('[deploy]\nremotes = "origin"', "deploy.remotes must be a list"),
            ("[live_reload]\nenabled = 1", "live_reload.enabled must be a boolean"),
            ('server = "x"', "server section must be a dictionary"),
        ],
    )
    def test__invalid_value__raises_value_error(
        self,
        tmp_path: Path,
        content: str,
        message: str,
    ) -> None:
        """Reject values of the wrong type."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text(content)

        with pytest.raises(ValueError, match=message):
            Config.load(config_file)


class TestConfigOverrides:
    """Tests for Config.with_overrides()."""

    def test__overrides__applied_without_mutation(self, tmp_path: Path) -> None:
        """Return a new config, leaving the original untouched."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text("")
        config = Config.load(config_file)

        updated = config.with_overrides(
            host="0.0.0.0",
            port=9999,
            output_dir=tmp_path / "public",
            live_reload_enabled=True,
            container_enabled=True,
        )

        assert updated.server.host == "0.0.0.0"
        assert updated.server.port == 9999
        assert updated.site.output_dir == tmp_path / "public"
        assert updated.live_reload.enabled is True
        assert updated.container.enabled is True
        assert config.server.port == 4000
        assert config.site.output_dir == tmp_path / "_site"

    def test__no_overrides__same_values(self, tmp_path: Path) -> None:
        """None overrides keep existing values."""
        config_file = tmp_path / "sitestage.toml"
        config_file.write_text("[server]\nport = 5000")
        config = Config.load(config_file)

        assert config.with_overrides() == config
