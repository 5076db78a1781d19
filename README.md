# k0sctl

Building blocks for bootstrapping and managing k0s Kubernetes clusters on a
set of Linux hosts, and a small command line tool.

The package provides:

- a command line tool, `k0sctl`, with `version` and `completion` commands;
- a phase manager (`k0sctl.manager`) that runs cluster operations step by
  step and cleans up after a failed step;
- OS support ("configurers") for common Linux distributions, which build and
  run the shell commands k0s needs on a host;
- helpers for k0s configuration files, admin kubeconfigs, `k0s status`
  output, k0s version comparison, k0s binary downloads and k0sctl release
  lookups.

## Installation

```sh
pip install .
```

Python 3.10 or newer is required.

## Command line

Show the tool's version and commit:

```sh
k0sctl version
```

Print the latest released k0s version (add `--pre` to accept pre-releases):

```sh
k0sctl version --k0s
k0sctl version --k0s --pre
```

Generate a shell completion script for `bash`, `zsh` or `fish`:

```sh
k0sctl completion --shell bash > /etc/bash_completion.d/k0sctl
k0sctl completion --shell zsh > /usr/local/share/zsh/site-functions/_k0sctl
k0sctl completion --shell fish > ~/.config/fish/completions/k0sctl.fish
```

When `--shell` is not given, the shell is taken from the `SHELL` environment
variable, and `bash` is used when that is unset. A shell path such as
`/bin/zsh` is accepted too. The scripts call the program with a final
`--generate-bash-completion` argument, which makes it print the commands or
flags that can come next.

Global flags are `--debug` (`-d`), `--trace` and `--no-redact`. The `DEBUG`
and `TRACE` environment variables switch on debug and trace logging as well.

## Library use

### Versions

```python
from k0sctl.k0s_version import parse_version

newer = parse_version("1.23.3+k0s.1")
older = parse_version("1.23.3+k0s.0")
assert newer.greater_than(older)
```

`parse_version` raises `InvalidVersionError` for malformed input.

### k0s configuration

```python
from k0sctl.k0sconfig import equal_config

a = "# generated-by-k0sctl 2023-01-01T00:00:00Z\nspec: {}\n"
b = "# generated-by-k0sctl 2023-02-01T00:00:00Z\nspec: {}\n"
assert equal_config(a, b)
```

`node_api_config(cfg, address, private_address, controller_addresses)`
returns a copy of a k0s configuration with the API address, the certificate
SANs (including `127.0.0.1`) and, where needed, the etcd peer address set,
and with `apiVersion` and `kind` filled in when missing.

### Kubeconfig

```python
from k0sctl.kubeconfig import api_address, kube_config

server = api_address("10.0.0.1", 6443)       # "https://10.0.0.1:6443"
# kube_config(raw_admin_conf, "my-cluster", server) renames the "local"
# cluster, the "Default" context and the "user" user, and points the
# cluster at the given server address.
```

IPv6 addresses are put in brackets by `api_address`.

### k0s status

```python
from k0sctl.status import K0sStatus, version_needs_upgrade

status = K0sStatus.from_json(output_of_k0s_status_json)
if status.is_running():
    print(status.normalized_role())

assert version_needs_upgrade("1.23.3+k0s.1", "1.23.3+k0s.0")
```

### Running phases

```python
from k0sctl.manager import Manager

manager = Manager(config, concurrency=30, concurrent_uploads=5)
manager.add_phase(phase_one, phase_two)
manager.run()
```

A phase needs `title()` and `run()`. It may also define `set_manager`,
`prepare`, `should_run`, `before`, `set_prop`, `after` and `clean_up`; the
manager calls whichever a phase has. When a phase fails, the clean-up of every
phase that already ran is called and the error is raised. `GenericPhase` is a
base class that keeps the config and runs functions across hosts in parallel
with `parallel_do`; `Unlock` is a phase that calls a cancel function.

### Operating system support

`k0sctl.distros.resolve_configurer` picks the configurer for a host from its
`OSVersion`, and raises `UnsupportedOSError` when none fits. Supported systems
are Alpine, Arch Linux, CoreOS, Debian, Ubuntu, Flatcar, SLES, openSUSE,
Slackware, AlmaLinux, Amazon Linux, CentOS, Fedora, Oracle Linux, RHEL and
Rocky Linux. Configurers run their commands through a host object that you
supply, with `exec`, `exec_output` and `sudo` methods (see
`k0sctl.configurer.Host`).

### Releases and binaries

`k0sctl.github.latest_release(preok)` fetches the latest k0sctl release and
`select_latest_release` picks the greatest version from a list of `Release`
objects. `k0sctl.binaries.Binary` downloads a k0s binary for one OS and
architecture into the user cache directory.

### Configuration files and logs

`k0sctl.cli.load_config_text(path)` reads a configuration file (`-` reads a
piped standard input; `k0sctl.yaml` falls back to `k0sctl.yml`) and expands
environment variables in it. `k0sctl.cli.log_file()` opens
`k0sctl/k0sctl.log` in the user cache directory for appending.

## Telemetry

Usage events go through the client returned by
`k0sctl.analytics.get_client()`; the default `NullClient` only logs them.
`set_client` installs another publisher.

## What the package does not do

The package does not connect to hosts: there is no SSH or WinRM layer, and
the host objects the configurers and phases work on must be provided by the
caller. The command line has no commands that install, upgrade, reset or
back up a cluster, fetch a kubeconfig from it, create a configuration
template or edit the cluster's dynamic configuration. There is no parser or
validator for the full cluster configuration file beyond reading its text.

## Running the tests

```sh
pip install ".[test]"
pytest
```