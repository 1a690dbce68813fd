"""Language plugin base class, the plugin registry and shared install helpers."""

from __future__ import annotations

import abc
import contextlib
import os
import shutil
import tarfile
import urllib.error
import urllib.request
from collections.abc import Iterator
from pathlib import Path

_SEPARATOR = "\033[1;34m----------------------------------------\033[0m"


class PluginError(Exception):
    """Raised when a plugin operation fails."""


def kver_home(home=None) -> Path:
    """Return the kver data directory below *home* (the user's home by default)."""
    base = Path(home) if home is not None else Path.home()
    return base / ".kver"


class Plugin(abc.ABC):
    """A manager for installed versions of one language."""

    name: str = ""
    display_name: str = ""
    env_var: str = ""

    def __init__(self, home=None):
        self._home = Path(home) if home is not None else None

    @property
    def home(self) -> Path:
        return self._home if self._home is not None else Path.home()

    @property
    def root(self) -> Path:
        return kver_home(self.home)

    @property
    def versions_dir(self) -> Path:
        return self.root / "languages" / self.name

    @property
    def env_file(self) -> Path:
        return self.root / "env.d" / f"{self.name}.sh"

    def install_dir(self, version: str) -> Path:
        """Directory that holds the given installed version."""
        return self.versions_dir / version

    @abc.abstractmethod
    def install(self, version: str) -> None:
        """Download and install *version*."""

    @abc.abstractmethod
    def list_remote(self) -> list[str]:
        """Return the versions available for download."""

    def uninstall(self, version: str) -> None:
        """Remove an installed version and the active environment file."""
        with contextlib.suppress(OSError):
            self.env_file.unlink()
        try:
            shutil.rmtree(self.install_dir(version))
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise PluginError(f"failed to remove {self.name} version: {exc}") from exc
        print(f"[kver] {self.display_name} {version} uninstalled.")

    def list(self) -> list[str]:
        """Return installed versions in sorted order."""
        try:
            return sorted(
                entry.name
                for entry in self.versions_dir.iterdir()
                if entry.is_dir() and not entry.is_symlink()
            )
        except OSError as exc:
            raise PluginError(str(exc)) from exc

    def use(self, version: str) -> None:
        """Write the environment file that activates *version*."""
        target = self._require_installed(version)
        script = (
            f'export {self.env_var}="{target}"\n'
            f'export PATH="{target / "bin"}:$PATH"\n'
        )
        try:
            self.env_file.parent.mkdir(parents=True, exist_ok=True)
            self.env_file.write_text(script)
        except OSError as exc:
            raise PluginError(str(exc)) from exc
        print(f"[kver] Now using {self.name} {version}")

    def set_global(self, version: str) -> None:
        """Make *version* the global default."""
        self.use(version)

    def set_local(self, version: str, project_dir) -> None:
        """Record *version* in the project's .kver file."""
        self._require_installed(version)
        try:
            with open(Path(project_dir) / ".kver", "a", encoding="utf-8") as handle:
                handle.write(f"{self.name} = {version}\n")
        except OSError as exc:
            raise PluginError(str(exc)) from exc
        print(f"[kver] Set local {self.name} version to {version}")

    def activate_shell(self, version: str) -> str:
        """Shell code that puts *version* on the PATH."""
        return (
            f'export {self.env_var}="{self.install_dir(version)}"\n'
            f'export PATH="${self.env_var}/bin:$PATH"\n'
        )

    def _require_installed(self, version: str) -> Path:
        target = self.install_dir(version)
        if not target.exists():
            raise PluginError(f"{self.name} version not installed: {version}")
        return target

    def _title(self, text: str) -> None:
        print(f"\n\033[1;36m[kver][{self.name}] {text}\033[0m")

    @staticmethod
    def _separator() -> None:
        print(_SEPARATOR)

    @staticmethod
    @contextlib.contextmanager
    def _cleanup_on_failure(target: Path) -> Iterator[None]:
        """Remove *target* if the enclosed block raises."""
        try:
            yield
        except BaseException:
            shutil.rmtree(target, ignore_errors=True)
            raise

    @staticmethod
    def _make_bin_executable(install_dir: Path) -> None:
        for dirpath, _dirs, files in os.walk(Path(install_dir) / "bin"):
            for filename in files:
                with contextlib.suppress(OSError):
                    os.chmod(os.path.join(dirpath, filename), 0o755)

    @staticmethod
    def _fetch_text(url: str) -> str:
        try:
            with urllib.request.urlopen(url) as response:
                return response.read().decode("utf-8", errors="replace")
        except OSError as exc:
            raise PluginError(f"failed to fetch {url}: {exc}") from exc


_registry: dict[str, Plugin] = {}


def register(lang: str, plugin: Plugin) -> None:
    """Register *plugin* under the language name *lang*."""
    _registry[lang] = plugin


def get(lang: str) -> Plugin | None:
    """Return the plugin registered for *lang*, or None."""
    return _registry.get(lang)


def all_plugins() -> dict[str, Plugin]:
    """Return every registered plugin keyed by language name."""
    return dict(_registry)


def download(url: str, dest) -> Path:
    """Download *url* into the file *dest* and return its path."""
    dest = Path(dest)
    try:
        with urllib.request.urlopen(url) as response:
            status = getattr(response, "status", None)
            if status is not None and status != 200:
                reason = getattr(response, "reason", "") or ""
                raise PluginError(f"download failed: {status} {reason}".rstrip())
            with open(dest, "wb") as out:
                shutil.copyfileobj(response, out)
    except urllib.error.HTTPError as exc:
        raise PluginError(f"download failed: {exc.code} {exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise PluginError(f"failed to download: {exc.reason}") from exc
    except OSError as exc:
        raise PluginError(str(exc)) from exc
    return dest


def extract_tar_gz(tarball, dest) -> None:
    """Unpack a gzip tarball into *dest*.

    Directories are created; every other entry becomes a plain file holding
    the entry's data (empty for links and special files).
    """
    dest = os.fspath(dest)
    try:
        with tarfile.open(tarball, "r:gz") as archive:
            for member in archive:
                out_path = os.path.normpath(os.path.join(dest, member.name))
                if member.isdir():
                    os.makedirs(out_path, exist_ok=True)
                    continue
                os.makedirs(os.path.dirname(out_path), exist_ok=True)
                source = archive.extractfile(member) if member.isreg() else None
                with open(out_path, "wb") as out:
                    if source is not None:
                        with source:
                            shutil.copyfileobj(source, out)
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise PluginError(str(exc)) from exc


def fix_exec_perms(root) -> None:
    """Mark build scripts and tools below *root* executable."""
    for dirpath, _dirs, files in os.walk(root):
        for filename in files:
            path = os.path.join(dirpath, filename)
            if (
                path.endswith(".sh")
                or filename.startswith(("ifchange", "configure"))
                or "/tool/" in path
            ):
                os.chmod(path, 0o755)