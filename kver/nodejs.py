"""Plugin that installs official Node.js binary releases."""

from __future__ import annotations

import contextlib
import os
import platform
import shutil
import stat
import sys
import tempfile
from collections.abc import Iterator
from pathlib import Path

from .plugin import Plugin, PluginError, download, extract_tar_gz, register

DIST_URL = "https://nodejs.org/dist"
INDEX_URL = f"{DIST_URL}/index.tab"

_NODE_ARCH = {
    "amd64": "x64",
    "x86_64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


def node_arch(machine: str) -> str:
    """Map a machine name to the architecture label used in Node.js tarballs."""
    try:
        return _NODE_ARCH[machine.lower()]
    except KeyError:
        raise PluginError(f"unsupported arch: {machine}") from None


def _node_os() -> str:
    for prefix in ("linux", "darwin"):
        if sys.platform.startswith(prefix):
            return prefix
    return sys.platform


def parse_index_tab(text: str) -> list[str]:
    """Return the versions listed in a Node.js ``index.tab`` file, in file order."""
    versions = []
    for line in text.splitlines():
        if line.startswith("v"):
            fields = line.split()
            if fields:
                versions.append(fields[0].removeprefix("v"))
    return versions


def _walk(root: Path) -> Iterator[Path]:
    yield root
    info = root.lstat()
    if stat.S_ISDIR(info.st_mode):
        for child in sorted(root.iterdir(), key=lambda p: p.name):
            yield from _walk(child)


def _remove(path: Path) -> None:
    with contextlib.suppress(OSError):
        if path.is_dir() and not path.is_symlink():
            path.rmdir()
        else:
            path.unlink()


def copy_dir(src, dst) -> None:
    """Copy the tree *src* to *dst*, keeping symbolic links as links."""
    src = Path(src)
    dst = Path(dst)
    for path in _walk(src):
        target = dst / path.relative_to(src)
        if os.path.lexists(target):
            _remove(target)
        info = path.lstat()
        mode = stat.S_IMODE(info.st_mode)
        if stat.S_ISLNK(info.st_mode):
            os.symlink(os.readlink(path), target)
        elif stat.S_ISDIR(info.st_mode):
            os.makedirs(target, mode=mode, exist_ok=True)
        else:
            fd = os.open(target, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, mode)
            with open(path, "rb") as source, os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(source, out)


class NodejsPlugin(Plugin):
    """Manages Node.js releases under ~/.kver/languages/nodejs."""

    name = "nodejs"
    display_name = "Node.js"
    env_var = "NODEJS_HOME"

    def install(self, version: str) -> None:
        """Download the release tarball for this platform and install it."""
        target = self.install_dir(version)
        with self._cleanup_on_failure(target):
            self._title("Step 1/3: Download Node.js tarball")
            arch = node_arch(platform.machine())
            url = f"{DIST_URL}/v{version}/node-v{version}-{_node_os()}-{arch}.tar.gz"
            print(f"[kver][nodejs] Downloading {url}")
            tarball = download(url, Path(tempfile.gettempdir()) / url.rsplit("/", 1)[-1])
            self._separator()

            self._title("Step 2/3: Extract Node.js tarball to install directory")
            parent = target.parent
            shutil.rmtree(target, ignore_errors=True)
            parent.mkdir(parents=True, exist_ok=True)
            extract_tar_gz(tarball, parent)
            extracted = next(
                (
                    entry
                    for entry in sorted(parent.iterdir(), key=lambda p: p.name)
                    if entry.is_dir() and entry.name.startswith("node-v")
                ),
                None,
            )
            if extracted is None:
                raise PluginError("failed to find extracted nodejs dir")
            if extracted != target:
                shutil.rmtree(target, ignore_errors=True)
                try:
                    os.rename(extracted, target)
                except OSError as exc:
                    raise PluginError(f"failed to move extracted dir: {exc}") from exc
            self._separator()

            self._make_bin_executable(target)

            self._title(f"Step 3/3: Node.js {version} installed successfully!")
            print(f"[kver][nodejs] Installed at: {target}")
            self._separator()

    def list_remote(self) -> list[str]:
        """Return the versions listed in the Node.js distribution index."""
        return parse_index_tab(self._fetch_text(INDEX_URL))


register("nodejs", NodejsPlugin())