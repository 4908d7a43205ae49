"""Selecting cluster nodes by role and working with files and images on them."""

from __future__ import annotations

import abc
import io
import json
import posixpath
import tomllib
from collections.abc import Iterable
from typing import IO, Any

from .cmdexec import output, output_lines
from .errors import errorf, new, wrap, wrapf

__all__ = [
    "WORKER_ROLE",
    "CONTROL_PLANE_ROLE",
    "EXTERNAL_LOAD_BALANCER_ROLE",
    "Node",
    "select_nodes_by_role",
    "internal_nodes",
    "external_load_balancer_node",
    "api_server_endpoint_node",
    "control_plane_nodes",
    "bootstrap_control_plane_node",
    "secondary_control_plane_nodes",
    "kube_version",
    "write_file",
    "copy_node_to_node",
    "load_image_archive",
    "parse_snapshotter",
    "image_id",
    "image_tags",
    "retag_image",
]

WORKER_ROLE = "worker"
CONTROL_PLANE_ROLE = "control-plane"
EXTERNAL_LOAD_BALANCER_ROLE = "external-load-balancer"

_SNAPSHOTTER_PATH = ("plugins", "io.containerd.grpc.v1.cri", "containerd", "snapshotter")
_SNAPSHOTTER_ERROR = "failed to detect containerd snapshotter"


class Node(abc.ABC):
    """A cluster node that commands can be run on; str() gives its name."""

    @abc.abstractmethod
    def role(self) -> str:
        """Return the node's role."""

    @abc.abstractmethod
    def command(self, name: str, *args: str) -> Any:
        """Return a command that runs on the node."""

    @abc.abstractmethod
    def __str__(self) -> str:
        """Return the node's name."""


def select_nodes_by_role(all_nodes: Iterable[Node], role: str) -> list[Node]:
    """Return the nodes whose role is role."""
    return [node for node in all_nodes if node.role() == role]


def internal_nodes(all_nodes: Iterable[Node]) -> list[Node]:
    """Return the Kubernetes nodes, leaving out e.g. the external load balancer."""
    return [node for node in all_nodes if node.role() in (WORKER_ROLE, CONTROL_PLANE_ROLE)]


def external_load_balancer_node(all_nodes: Iterable[Node]) -> Node | None:
    """Return the external load balancer node, or None if there is none."""
    balancers = select_nodes_by_role(all_nodes, EXTERNAL_LOAD_BALANCER_ROLE)
    if not balancers:
        return None
    if len(balancers) > 1:
        raise errorf(
            "unexpected number of %s nodes %d", EXTERNAL_LOAD_BALANCER_ROLE, len(balancers)
        )
    return balancers[0]


def api_server_endpoint_node(all_nodes: Iterable[Node]) -> Node:
    """Return the node hosting the API server endpoint.

    That is the load balancer if there is one, otherwise the single control
    plane node.
    """
    all_nodes = list(all_nodes)
    try:
        balancer = external_load_balancer_node(all_nodes)
    except Exception as exc:
        raise wrap(exc, "failed to find api-server endpoint node") from exc
    if balancer is not None:
        return balancer
    try:
        planes = control_plane_nodes(all_nodes)
    except Exception as exc:
        raise wrap(exc, "failed to find api-server endpoint node") from exc
    if len(planes) != 1:
        raise errorf(
            "expected one control plane node or a load balancer, not %d and none", len(planes)
        )
    return planes[0]


def control_plane_nodes(all_nodes: Iterable[Node]) -> list[Node]:
    """Return the control plane nodes sorted by name, the bootstrap node first."""
    return sorted(select_nodes_by_role(all_nodes, CONTROL_PLANE_ROLE), key=str)


def bootstrap_control_plane_node(all_nodes: Iterable[Node]) -> Node:
    """Return the bootstrap control plane node."""
    planes = control_plane_nodes(all_nodes)
    if not planes:
        raise errorf("expected at least one %s node", CONTROL_PLANE_ROLE)
    return planes[0]


def secondary_control_plane_nodes(all_nodes: Iterable[Node]) -> list[Node]:
    """Return the control plane nodes other than the bootstrap one."""
    planes = control_plane_nodes(all_nodes)
    if not planes:
        raise errorf("expected at least one %s node", CONTROL_PLANE_ROLE)
    return planes[1:]


def kube_version(node: Node) -> str:
    """Return the Kubernetes version installed on node."""
    try:
        lines = output_lines(node.command("cat", "/kind/version"))
    except Exception as exc:
        raise wrap(exc, "failed to get file") from exc
    if len(lines) != 1:
        raise errorf("file should only be one line, got %d lines", len(lines))
    return lines[0]


def write_file(node: Node, dest: str, content: str) -> None:
    """Write content to dest on node, creating its directory."""
    directory = posixpath.dirname(dest)
    try:
        node.command("mkdir", "-p", directory).run()
    except Exception as exc:
        raise wrapf(exc, "failed to create directory %s", directory) from exc
    node.command("cp", "/dev/stdin", dest).set_stdin(io.BytesIO(content.encode())).run()


def copy_node_to_node(a: Node, b: Node, file: str) -> None:
    """Copy file from node a to the same path on node b."""
    directory = posixpath.dirname(file)
    try:
        b.command("mkdir", "-p", directory).run()
    except Exception as exc:
        raise wrapf(exc, 'failed to create directory "%s"', directory) from exc
    buffer = io.BytesIO()
    try:
        a.command("cat", file).set_stdout(buffer).run()
    except Exception as exc:
        raise wrapf(exc, 'failed to read "%s" from node', file) from exc
    buffer.seek(0)
    try:
        b.command("cp", "/dev/stdin", file).set_stdin(buffer).run()
    except Exception as exc:
        raise wrapf(exc, 'failed to write "%s" to node', file) from exc


def load_image_archive(node: Node, image: IO[bytes]) -> None:
    """Import the image archive read from image into node's containerd."""
    snapshotter = _get_snapshotter(node)
    cmd = node.command(
        "ctr",
        "--namespace=k8s.io",
        "images",
        "import",
        "--all-platforms",
        "--digests",
        "--snapshotter=" + snapshotter,
        "-",
    ).set_stdin(image)
    try:
        cmd.run()
    except Exception as exc:
        raise wrap(exc, "failed to load image") from exc


def _get_snapshotter(node: Node) -> str:
    try:
        dumped = output(node.command("containerd", "config", "dump"))
    except Exception as exc:
        raise wrap(exc, _SNAPSHOTTER_ERROR) from exc
    return parse_snapshotter(dumped.decode("utf-8", errors="replace"))


def parse_snapshotter(config: str) -> str:
    """Return the CRI snapshotter named in a containerd TOML config."""
    try:
        current: Any = tomllib.loads(config)
    except tomllib.TOMLDecodeError as exc:
        raise wrap(exc, _SNAPSHOTTER_ERROR) from exc
    for key in _SNAPSHOTTER_PATH:
        if not isinstance(current, dict) or key not in current:
            raise new(_SNAPSHOTTER_ERROR)
        current = current[key]
    if not isinstance(current, str):
        raise new(_SNAPSHOTTER_ERROR)
    return current


def _inspect_image(node: Node, image: str) -> dict[str, Any]:
    buffer = io.BytesIO()
    node.command("crictl", "inspecti", image).set_stdout(buffer).run()
    data = json.loads(buffer.getvalue())
    status = data.get("status") if isinstance(data, dict) else None
    return status if isinstance(status, dict) else {}


def image_id(node: Node, image: str) -> str:
    """Return the ID of image on node."""
    return _inspect_image(node, image).get("id") or ""


def image_tags(node: Node, image_id: str) -> set[str]:
    """Return the repository tags on node that refer to image_id."""
    return set(_inspect_image(node, image_id).get("repoTags") or [])


def retag_image(node: Node, image_id: str, image_name: str) -> None:
    """Tag image_id as image_name on node."""
    node.command(
        "ctr", "--namespace=k8s.io", "images", "tag", "--force", image_id, image_name
    ).set_stdout(io.BytesIO()).run()