import io
import os
import subprocess
import tarfile
import urllib.error
import urllib.request
from pathlib import Path

import pytest

from kver import plugin as plugin_mod
from kver.plugin import PluginError
from kver.python import PythonPlugin, link_executables, parse_ftp_index


class _Response(io.BytesIO):
    status = 200
    reason = "OK"


def _tarball_bytes(version):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, data in (
            (f"Python-{version}/configure", b"#!/bin/sh\n"),
            (f"Python-{version}/Tools/build.sh", b"echo build\n"),
            (f"Python-{version}/README", b"readme\n"),
        ):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


@pytest.fixture
def fake_urlopen(monkeypatch):
    requested = []

    def install(payload):
        def opener(url, *args, **kwargs):
            requested.append(url)
            return _Response(payload)

        monkeypatch.setattr(urllib.request, "urlopen", opener)
        return requested

    return install


def test_parse_ftp_index_extracts_and_sorts():
    text = (
        '<a href="3.9.0/">3.9.0/</a>\n'
        '<a href="3.12.1/">3.12.1/</a>\n'
        '<a href="2.7.18/">2.7.18/</a>\n'
        '<a href="doc/">doc/</a>\n'
        '<a href="3.13/">3.13/</a>\n'
    )
    assert parse_ftp_index(text) == ["2.7.18", "3.12.1", "3.9.0"]


def test_parse_ftp_index_empty():
    assert parse_ftp_index("<html></html>") == []


def test_link_executables_with_patch_version(tmp_path):
    (tmp_path / "python3.12.1").write_text("bin")
    (tmp_path / "pip3.12.1").write_text("bin")
    created = link_executables(tmp_path, "3.12.1")
    assert created == ["python3", "python", "pip3", "pip"]
    assert os.readlink(tmp_path / "python3") == "python3.12.1"
    assert os.readlink(tmp_path / "python") == "python3"
    assert os.readlink(tmp_path / "pip3") == "pip3.12.1"
    assert os.readlink(tmp_path / "pip") == "pip3"


def test_link_executables_major_minor_only(tmp_path):
    (tmp_path / "python3.11").write_text("bin")
    created = link_executables(tmp_path, "3.11")
    assert created == ["python3", "python"]
    assert os.readlink(tmp_path / "python3") == "python3.11"
    assert not (tmp_path / "pip").exists()


def test_link_executables_keeps_existing(tmp_path):
    (tmp_path / "python3.12.1").write_text("bin")
    (tmp_path / "python3").write_text("real")
    created = link_executables(tmp_path, "3.12.1")
    assert created == ["python"]
    assert (tmp_path / "python3").read_text() == "real"


def test_link_executables_rejects_bad_version(tmp_path):
    with pytest.raises(PluginError):
        link_executables(tmp_path, "3")


def test_registered():
    plugin = plugin_mod.get("python")
    assert plugin.name == "python"
    assert plugin_mod.all_plugins()["python"] is plugin
    assert isinstance(plugin, PythonPlugin)


def test_use_requires_install(tmp_path):
    with pytest.raises(PluginError, match="python version not installed: 3.12.1"):
        PythonPlugin(home=tmp_path).use("3.12.1")


def test_use_writes_env_file(tmp_path):
    plug = PythonPlugin(home=tmp_path)
    target = plug.install_dir("3.12.1")
    target.mkdir(parents=True)
    plug.set_global("3.12.1")
    env = (tmp_path / ".kver" / "env.d" / "python.sh").read_text()
    assert env == (
        f'export PYTHON_HOME="{target}"\n'
        f'export PATH="{target / "bin"}:$PATH"\n'
    )


def test_set_local_appends(tmp_path):
    plug = PythonPlugin(home=tmp_path)
    plug.install_dir("3.12.1").mkdir(parents=True)
    project = tmp_path / "proj"
    project.mkdir()
    plug.set_local("3.12.1", project)
    plug.set_local("3.12.1", project)
    assert (project / ".kver").read_text() == "python = 3.12.1\npython = 3.12.1\n"


def test_list_and_uninstall(tmp_path):
    plug = PythonPlugin(home=tmp_path)
    for version in ("3.9.0", "3.12.1"):
        plug.install_dir(version).mkdir(parents=True)
    assert plug.list() == ["3.12.1", "3.9.0"]
    plug.uninstall("3.9.0")
    assert plug.list() == ["3.12.1"]


def test_activate_shell(tmp_path):
    plug = PythonPlugin(home=tmp_path)
    target = tmp_path / ".kver" / "languages" / "python" / "3.12.1"
    assert plug.activate_shell("3.12.1") == (
        f'export PYTHON_HOME="{target}"\nexport PATH="$PYTHON_HOME/bin:$PATH"\n'
    )


def test_list_remote(fake_urlopen):
    requested = fake_urlopen(b'<a href="3.10.4/">3.10.4/</a>\n<a href="3.1.0/">3.1.0/</a>\n')
    assert PythonPlugin().list_remote() == ["3.1.0", "3.10.4"]
    assert requested == ["https://www.python.org/ftp/python/"]


def test_install_builds_and_links(tmp_path, fake_urlopen, monkeypatch):
    version = "3.12.1"
    requested = fake_urlopen(_tarball_bytes(version))
    plug = PythonPlugin(home=tmp_path)
    target = plug.install_dir(version)
    calls = []

    def fake_run(args, cwd=None, check=False, **kwargs):
        calls.append(list(args))
        if args[0] == "./configure":
            assert os.access(Path(cwd) / "configure", os.X_OK)
            assert os.access(Path(cwd) / "Tools" / "build.sh", os.X_OK)
        if args[-1] == "install":
            bin_dir = target / "bin"
            bin_dir.mkdir(parents=True)
            (bin_dir / f"python{version}").write_text("bin")
            (bin_dir / f"pip{version}").write_text("bin")
        return subprocess.CompletedProcess(args, 0)

    monkeypatch.setattr(subprocess, "run", fake_run)
    plug.install(version)

    assert requested == ["https://www.python.org/ftp/python/3.12.1/Python-3.12.1.tgz"]
    assert calls[0] == ["./configure", f"--prefix={target}"]
    assert calls[1][0] == "make" and calls[1][1].startswith("-j")
    assert calls[2] == [*calls[1], "install"]
    assert os.readlink(target / "bin" / "python") == "python3"
    assert os.readlink(target / "bin" / "pip3") == f"pip{version}"


def test_install_failure_removes_target(tmp_path, fake_urlopen, monkeypatch):
    version = "3.12.1"
    fake_urlopen(_tarball_bytes(version))
    plug = PythonPlugin(home=tmp_path)
    target = plug.install_dir(version)

    def fake_run(args, cwd=None, check=False, **kwargs):
        if args[0] == "./configure":
            target.mkdir(parents=True)
            return subprocess.CompletedProcess(args, 0)
        raise subprocess.CalledProcessError(2, args)

    monkeypatch.setattr(subprocess, "run", fake_run)
    with pytest.raises(PluginError, match="make failed"):
        plug.install(version)
    assert not target.exists()


def test_install_download_error(tmp_path, monkeypatch):
    def opener(url, *args, **kwargs):
        raise urllib.error.URLError("offline")

    monkeypatch.setattr(urllib.request, "urlopen", opener)
    plug = PythonPlugin(home=tmp_path)
    with pytest.raises(PluginError, match="failed to download"):
        plug.install("3.12.1")
    assert not plug.install_dir("3.12.1").exists()