"""Shared test fixtures."""

import sys
from pathlib import Path

import pytest
from sitestage.config import (
    BuildConfig,
    Config,
    ContainerConfig,
    DeployConfig,
    LiveReloadConfig,
    ServerConfig,
    SiteConfig,
    ToolchainConfig,
)

FAKE_GENERATOR = """\
import shutil
import sys
from pathlib import Path

source, destination = Path(sys.argv[1]), Path(sys.argv[2])
shutil.copytree(source / "pages", destination)
if "--drafts" in sys.argv:
    (destination / "drafts.html").write_text("<p>drafts</p>")
"""

FAILING_GENERATOR = """\
import sys
from pathlib import Path

Path(sys.argv[2]).mkdir(parents=True)
(Path(sys.argv[2]) / "partial.html").write_text("partial")
sys.exit(3)
"""


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """Create a built site tree.

    Layout:
        index.html
        about.html
        css/main.css
        log/2015/04/28/Play-Typed-Action.html
        projects/index.html
    """
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "log" / "2015" / "04" / "28").mkdir(parents=True)
    (root / "projects").mkdir()

    (root / "index.html").write_text("<html><body>home</body></html>")
    (root / "about.html").write_text("<html><body>about</body></html>")
    (root / "css" / "main.css").write_text("body { color: black; }")
    (root / "log" / "2015" / "04" / "28" / "Play-Typed-Action.html").write_text(
        "<html><body>Play Typed Action</body></html>",
    )
    (root / "projects" / "index.html").write_text("<html><body>projects</body></html>")
    return root


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    """Create a site source directory whose pages the fake generator copies."""
    source = tmp_path / "blog"
    (source / "pages").mkdir(parents=True)
    (source / "pages" / "index.html").write_text("<html><body>home</body></html>")
    (source / "pages" / "about.html").write_text("<html><body>about</body></html>")
    return source


@pytest.fixture
def fake_generator(tmp_path: Path) -> list[str]:
    """Build command running a generator that copies source/pages."""
    script = tmp_path / "fake_generator.py"
    script.write_text(FAKE_GENERATOR)
    return [sys.executable, str(script), "{source}", "{destination}"]


@pytest.fixture
def failing_generator(tmp_path: Path) -> list[str]:
    """Build command running a generator that writes partial output and fails."""
    script = tmp_path / "failing_generator.py"
    script.write_text(FAILING_GENERATOR)
    return [sys.executable, str(script), "{source}", "{destination}"]


@pytest.fixture
def test_config(tmp_path: Path, source_dir: Path, fake_generator: list[str]) -> Config:
    """Create a test configuration with tmp_path directories."""
    return Config(
        server=ServerConfig(),
        site=SiteConfig(
            source_dir=source_dir,
            output_dir=tmp_path / "_site",
            builds_dir=tmp_path / ".builds",
        ),
        build=BuildConfig(command=fake_generator),
        toolchain=ToolchainConfig(),
        container=ContainerConfig(),
        deploy=DeployConfig(),
        live_reload=LiveReloadConfig(enabled=False),
        project_dir=tmp_path,
    )
