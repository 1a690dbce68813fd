# kver

kver is a Python library that manages several versions of Python, Node.js
and Ruby side by side. Everything lives under `~/.kver`:

- `~/.kver/languages/<lang>/<version>` holds the installed toolchains
- `~/.kver/env.d/<lang>.sh` holds the shell snippet for the selected version
- a `.kver` file in a project directory holds `lang = version` lines

## Installation

```sh
pip install .
```

## Plugins

Each language is a `kver.plugin.Plugin` subclass. Importing its module
registers an instance that works on the current user's home directory:

| Module        | Class          | Registered as | Environment variable |
|---------------|----------------|---------------|----------------------|
| `kver.python` | `PythonPlugin` | `python`      | `PYTHON_HOME`        |
| `kver.nodejs` | `NodejsPlugin` | `nodejs`      | `NODEJS_HOME`        |
| `kver.ruby`   | `RubyPlugin`   | `ruby`        | `RUBY_HOME`          |

```python
import kver.nodejs
from kver import plugin

node = plugin.get("nodejs")          # None if nothing is registered under that name
print(node.list_remote())            # versions in the Node.js distribution index
node.install("20.11.1")
node.use("20.11.1")                  # writes ~/.kver/env.d/nodejs.sh
print(node.activate_shell("20.11.1"))
```

`plugin.all_plugins()` returns every registered plugin by name, and
`plugin.register(lang, plugin)` adds one. To work below another directory
than the home directory, create a plugin yourself, for example
`RubyPlugin(home="/tmp/sandbox")`.

Every plugin offers:

- `install_dir(version)`: the directory of an installed version
- `install(version)`: download and install; a failed install removes the partly written directory
- `uninstall(version)`: remove the version and the plugin's `env.d` file
- `list()`: installed versions (sorted by name)
- `list_remote()`: versions available upstream
- `use(version)` and `set_global(version)`: write the `env.d/<lang>.sh` file exporting the home variable and putting its `bin` directory on `PATH`
- `set_local(version, project_dir)`: append `lang = version` to the project's `.kver`
- `activate_shell(version)`: return shell code that exports the home variable and puts its `bin` directory on `PATH`

Failures raise `kver.plugin.PluginError`, including `use` and `set_local`
for a version that is not installed.

### Language details

- **Node.js** installs the official binary tarball for the running system
  (`linux` or `darwin`, `x64` or `arm64`; other machines raise `PluginError`).
- **Python** downloads the source release, then runs `./configure`, `make`
  and `make install`, so a C toolchain is needed. Afterwards it adds the
  `python3`, `python`, `pip3` and `pip` links where they are missing.
- **Ruby** is built from source the same way. Its `list_remote()` falls back
  to a short built-in list when the release index cannot be read, and its
  `set_local()` overwrites the project's `.kver` with a single `ruby` line and
  then calls `use()`.

## Helpers

- `kver.plugin`: `kver_home`, `download`, `extract_tar_gz`, `fix_exec_perms`
- `kver.nodejs`: `node_arch`, `parse_index_tab`, `copy_dir`
- `kver.python`: `parse_ftp_index`, `link_executables`
- `kver.ruby`: `parse_index_txt`, `download_url`

## What it does not do

- There is no command-line program; everything is done through the Python API.
- There is no Go plugin.
- Nothing reads a project's `.kver` file back or reports which versions are
  active; the library only writes these files and returns shell code from
  `activate_shell`. Applying that code to a shell is left to the caller.