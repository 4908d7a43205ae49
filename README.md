# kindkit

Building blocks for managing local Kubernetes clusters whose "nodes" are
containers. It has no third-party dependencies.

## Modules

- **`kindkit.errors`** – `KindError` (an error with a message, an optional
  cause and the stack where it was made), `WrappedError` and the helpers
  `new`, `new_without_stack`, `errorf`, `wrap`, `wrapf`, `with_stack` and
  `stack_trace`. `Aggregate` holds several errors; `new_aggregate` builds a
  flattened one (a single error is returned as itself), `aggregate_errors`
  finds the deepest aggregate in a cause chain and `Aggregate.matches` checks
  whether an error or error type is among its members.
  `until_error_concurrent` runs callables in threads and raises the first
  failure; `aggregate_concurrent` waits for all of them and raises the single
  failure or an aggregate of several.
- **`kindkit.cmdexec`** – `LocalCmd`, `LocalCmder` and `command` for running
  programs with settable environment and streams. A failing command raises
  `RunError`, which carries the command line, the combined stdout and stderr
  output and the underlying error. Helpers: `output`, `output_lines`,
  `combined_output_lines`, `inherit_output`, `run_with_stdout_reader`,
  `run_with_stdin_writer`, `pretty_command` and `run_error_for_error`.
- **`kindkit.fs`** – `temp_dir` (mountable temporary directories, using
  `/private/var` on macOS), `is_abs` (also accepts POSIX absolute paths),
  `copy` (recursive, keeps modes, dereferences symlinks like `cp -r`) and
  `copy_file`.
- **`kindkit.iostreams`** – the `IOStreams` dataclass (`in_`, `out`,
  `err_out`) and `standard_io_streams()`.
- **`kindkit.version`** – `version()`, `display_version()`, `truncate()` and
  the `main()` command.
- **`kindkit.nodeutils`** – the abstract `Node` class (`role()`,
  `command(name, *args)` and `str()` for its name), role selection
  (`select_nodes_by_role`, `internal_nodes`, `external_load_balancer_node`,
  `api_server_endpoint_node`, `control_plane_nodes`,
  `bootstrap_control_plane_node`, `secondary_control_plane_nodes`), and
  operations run on a node: `kube_version`, `write_file`, `copy_node_to_node`,
  `load_image_archive`, `image_id`, `image_tags`, `retag_image` and
  `parse_snapshotter`.
- **`kindkit.images`** – `load_docker_images` loads host images into the
  nodes that lack them, re-tagging where an image is present under another
  name; `load_image_archive_file` imports an archive into all or the named
  nodes. Also `remove_duplicates`, `sanitize_image`,
  `check_if_image_retag_required`, `local_image_id` and `save_images`.

## Command line

Print the version with the Python version and platform, or only the semantic
version with `-q`:

```
kindkit-version
kindkit-version -q
```

## Examples

Running commands and reading their output:

```python
from kindkit import cmdexec

print(cmdexec.output_lines(cmdexec.command("echo", "hello")))  # ['hello']
print(cmdexec.pretty_command("echo", "hello world"))  # echo 'hello world'
```

A failed command raises an error from which the `RunError` can be recovered,
even after it has been wrapped:

```python
from kindkit import cmdexec, errors

try:
    cmdexec.command("false").run()
except Exception as exc:
    run_error = cmdexec.run_error_for_error(errors.wrap(exc, "step failed"))
    print(run_error.pretty_command())  # false
```

Running work concurrently and collecting every failure:

```python
from kindkit import errors

def ok():
    return None

def fails():
    raise errors.new("boom")

try:
    errors.aggregate_concurrent([ok, fails])
except errors.KindError as exc:
    print(exc)  # boom
```

Normalising image references:

```python
from kindkit.images import remove_duplicates, sanitize_image

print(sanitize_image("ubuntu:18.04"))               # docker.io/library/ubuntu:18.04
print(sanitize_image("registry.k8s.io/pause:3.6"))  # registry.k8s.io/pause:3.6
print(remove_duplicates(["one", "two", "two", "one"]))  # ['one', 'two']
```

Finding the snapshotter in a containerd configuration dump:

```python
from kindkit.nodeutils import parse_snapshotter

config = """
[plugins."io.containerd.grpc.v1.cri".containerd]
  snapshotter = "overlayfs"
"""
print(parse_snapshotter(config))  # overlayfs
```

## What it does not do

kindkit does not create, list or delete clusters, and it has no command-line
tool beyond `kindkit-version`. It ships no concrete `Node` implementation:
to use `nodeutils` and `images`, subclass `Node` so that `command()` returns
a command run inside your node container (for example a `LocalCmd` running
`docker exec`), and pass your own list of nodes.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.