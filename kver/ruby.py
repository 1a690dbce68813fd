"""Plugin that builds and installs Ruby from source releases."""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
from pathlib import Path

from .plugin import (
    Plugin,
    PluginError,
    download,
    extract_tar_gz,
    fix_exec_perms,
    register,
)

CACHE_URL = "https://cache.ruby-lang.org/pub/ruby"
INDEX_URL = f"{CACHE_URL}/index.txt"

FALLBACK_VERSIONS = ("3.3.0", "3.2.2", "3.1.4", "2.7.8")

_VERSION_RE = re.compile(r"ruby-([0-9]+\.[0-9]+\.[0-9]+)\.tar\.gz")


def download_url(version: str) -> str:
    """Return the source tarball URL for *version*."""
    major_minor, dot, _patch = version.rpartition(".")
    if not dot:
        raise PluginError(f"invalid ruby version: {version}")
    return f"{CACHE_URL}/{major_minor}/ruby-{version}.tar.gz"


def parse_index_txt(text: str) -> list[str]:
    """Return the distinct release versions named in ``index.txt``, sorted."""
    versions = set()
    for line in text.splitlines():
        match = _VERSION_RE.search(line)
        if match:
            versions.add(match.group(1))
    return sorted(versions)


class RubyPlugin(Plugin):
    """Manages Ruby builds under ~/.kver/languages/ruby."""

    name = "ruby"
    display_name = "Ruby"
    env_var = "RUBY_HOME"

    def install(self, version: str) -> None:
        """Download, configure, compile and install the given Ruby release."""
        target = self.install_dir(version)
        with self._cleanup_on_failure(target), tempfile.TemporaryDirectory(
            prefix="kver-ruby-src-"
        ) as tmp:
            work = Path(tmp)

            self._title("Step 1/5: Download Ruby tarball")
            url = download_url(version)
            print(f"[kver][ruby] Downloading {url}")
            tarball = download(url, work / f"ruby-{version}.tar.gz")
            self._separator()

            self._title("Step 2/5: Extract Ruby source")
            extract_tar_gz(tarball, work)
            self._separator()

            source = next(
                (
                    entry
                    for entry in sorted(work.iterdir(), key=lambda p: p.name)
                    if entry.is_dir() and entry.name.startswith("ruby-")
                ),
                None,
            )
            if source is None:
                raise PluginError("failed to find extracted ruby source dir")

            try:
                os.chmod(source / "configure", 0o755)
            except OSError as exc:
                raise PluginError(f"failed to chmod configure: {exc}") from exc
            try:
                fix_exec_perms(source)
            except OSError as exc:
                raise PluginError(f"failed to fix exec perms: {exc}") from exc

            self._title("Step 3/5: Configure build")
            self._run("configure", ["./configure", f"--prefix={target}"], source)
            self._separator()

            make_args = ["make", f"-j{os.cpu_count() or 1}"]

            self._title("Step 4/5: Compile (make -jN)")
            self._run("make", make_args, source)
            self._separator()

            self._title("Step 5/5: Install to target directory")
            self._run("make install", [*make_args, "install"], source)
            self._separator()

            self._title(f"Ruby {version} installed successfully!")
            print(f"[kver][ruby] Installed at: {target}")
            self._separator()

    def list(self) -> list[str]:
        """Return installed versions in directory-name order."""
        try:
            entries = sorted(self.versions_dir.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise PluginError(str(exc)) from exc
        return [
            entry.name
            for entry in entries
            if entry.is_dir() and not entry.is_symlink()
        ]

    def list_remote(self) -> list[str]:
        """Return released versions, or a built-in list if the index is unreachable."""
        try:
            versions = parse_index_txt(self._fetch_text(INDEX_URL))
        except PluginError:
            return list(FALLBACK_VERSIONS)
        return versions or list(FALLBACK_VERSIONS)

    def set_local(self, version: str, project_dir) -> None:
        """Write a fresh project .kver naming *version*, then activate it."""
        try:
            (Path(project_dir) / ".kver").write_text(
                f"ruby = {version}\n", encoding="utf-8"
            )
        except OSError as exc:
            raise PluginError(f"failed to write .kver: {exc}") from exc
        self.use(version)

    @staticmethod
    def _run(label: str, args: list[str], cwd: Path) -> None:
        try:
            subprocess.run(args, cwd=cwd, check=True)
        except (subprocess.CalledProcessError, OSError) as exc:
            raise PluginError(f"{label} failed: {exc}") from exc


register("ruby", RubyPlugin())