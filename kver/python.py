"""Plugin that builds and installs CPython from source releases."""

from __future__ import annotations

import contextlib
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

FTP_URL = "https://www.python.org/ftp/python/"

_VERSION_RE = re.compile(r">([0-9]+\.[0-9]+\.[0-9]+)/<")


def parse_ftp_index(text: str) -> list[str]:
    """Return the release versions named in the FTP directory index, sorted."""
    versions = []
    for line in text.splitlines():
        match = _VERSION_RE.search(line)
        if match:
            versions.append(match.group(1))
    return sorted(versions)


def link_executables(bin_dir, version: str) -> list[str]:
    """Add the usual python/pip convenience links in *bin_dir*.

    Returns the names of the links that were created.
    """
    bin_dir = Path(bin_dir)
    parts = version.split(".")
    if len(parts) < 2:
        raise PluginError(f"invalid python version: {version}")
    suffix = ".".join(parts[:3])
    links = (
        ("python3", f"python{suffix}"),
        ("python", "python3"),
        ("pip3", f"pip{suffix}"),
        ("pip", "pip3"),
    )
    created = []
    for link_name, target_name in links:
        link_path = bin_dir / link_name
        if link_path.exists() or not (bin_dir / target_name).exists():
            continue
        with contextlib.suppress(OSError):
            os.symlink(target_name, link_path)
            created.append(link_name)
    return created


class PythonPlugin(Plugin):
    """Manages CPython builds under ~/.kver/languages/python."""

    name = "python"
    display_name = "Python"
    env_var = "PYTHON_HOME"

    def install(self, version: str) -> None:
        """Download, configure, compile and install the given CPython release."""
        target = self.install_dir(version)
        with self._cleanup_on_failure(target), tempfile.TemporaryDirectory(
            prefix="kver-python-src-"
        ) as tmp:
            work = Path(tmp)

            self._title("Step 1/5: Download Python tarball")
            url = f"{FTP_URL}{version}/Python-{version}.tgz"
            print(f"[kver][python] Downloading {url}")
            tarball = download(url, work / f"Python-{version}.tgz")
            self._separator()

            self._title("Step 2/5: Extract Python source")
            extract_tar_gz(tarball, work)
            self._separator()

            source = next(
                (
                    entry
                    for entry in sorted(work.iterdir(), key=lambda p: p.name)
                    if entry.is_dir() and entry.name.startswith("Python-")
                ),
                None,
            )
            if source is None:
                raise PluginError("failed to find extracted python source dir")

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

            link_executables(target / "bin", version)

            self._title(f"Python {version} installed successfully!")
            print(f"[kver][python] Installed at: {target}")
            self._separator()

    def list_remote(self) -> list[str]:
        """Return the versions listed on the Python FTP index."""
        return parse_ftp_index(self._fetch_text(FTP_URL))

    @staticmethod
    def _run(label: str, args: list[str], cwd: Path) -> None:
        try:
            subprocess.run(args, cwd=cwd, check=True)
        except (subprocess.CalledProcessError, OSError) as exc:
            raise PluginError(f"{label} failed: {exc}") from exc


register("python", PythonPlugin())