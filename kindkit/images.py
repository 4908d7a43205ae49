"""Loading container images into cluster nodes, from the host or from an archive."""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Callable, Iterable, Sequence
from functools import partial

from . import nodeutils
from .cmdexec import command, output_lines
from .errors import errorf, new_without_stack, until_error_concurrent, wrap
from .fs import temp_dir
from .nodeutils import Node

__all__ = [
    "remove_duplicates",
    "sanitize_image",
    "check_if_image_retag_required",
    "local_image_id",
    "save_images",
    "load_docker_images",
    "load_image_archive_file",
]

_DEFAULT_DOMAIN = "docker.io/"
_OFFICIAL_REPO_NAME = "library"

TagFetcher = Callable[[Node, str], Iterable[str]]


def _quote(value: str) -> str:
    return json.dumps(value)


def remove_duplicates(items: Iterable[str]) -> list[str]:
    """Return items without duplicates, keeping the first occurrence of each."""
    return list(dict.fromkeys(items))


def sanitize_image(image: str) -> str:
    """Return the fully qualified form of an image reference."""
    name = image
    if "/" not in image:
        name = f"{_OFFICIAL_REPO_NAME}/{image}"
    domain, sep, _ = name.partition("/")
    if not sep or (not any(ch in domain for ch in ".:") and domain != "localhost"):
        name = _DEFAULT_DOMAIN + name
    if ":" not in name:
        name += ":latest"
    return name


def check_if_image_retag_required(
    node: Node | None,
    image_id: str,
    image_name: str,
    tag_fetcher: TagFetcher,
) -> tuple[bool, bool, str]:
    """Return whether image_id exists on node, whether it needs a new tag, and that tag."""
    try:
        tags = set(tag_fetcher(node, image_id))
    except Exception:  # noqa: BLE001 - an unreadable image counts as absent
        return False, False, ""
    if not tags:
        return False, False, ""
    sanitized = sanitize_image(image_name)
    return True, sanitized not in tags, sanitized


def local_image_id(name: str) -> str:
    """Return the ID of a container image present on the host."""
    lines = output_lines(command("docker", "image", "inspect", "-f", "{{ .Id }}", name))
    if len(lines) != 1:
        raise errorf("Docker image ID should only be one line, got %d lines", len(lines))
    return lines[0]


def save_images(images: Sequence[str], dest: str) -> None:
    """Save images from the host into the archive dest."""
    command("docker", "save", "-o", dest, *images).run()


def _load_image(archive_path: str, node: Node) -> None:
    try:
        archive = open(archive_path, "rb")
    except OSError as exc:
        raise wrap(exc, "failed to open image") from exc
    with archive:
        nodeutils.load_image_archive(node, archive)


def _select_nodes(
    nodes: Sequence[Node], node_names: Iterable[str] | None, quote_names: bool
) -> list[Node]:
    if not nodes:
        raise new_without_stack("no nodes found")
    names = list(node_names or [])
    if not names:
        return list(nodes)
    by_name = {str(node): node for node in nodes}
    selected = []
    for name in names:
        if name not in by_name:
            shown = _quote(name) if quote_names else name
            raise new_without_stack(f"unknown node: {shown}")
        selected.append(by_name[name])
    return selected


def load_docker_images(
    nodes: Sequence[Node],
    image_names: Iterable[str],
    node_names: Iterable[str] | None = None,
    logger: logging.Logger | None = None,
) -> None:
    """Load host images into the nodes that lack them, re-tagging where that is enough."""
    log = logger or logging.getLogger(__name__)
    names = remove_duplicates(image_names)
    ids = []
    for name in names:
        try:
            ids.append(local_image_id(name))
        except Exception as exc:
            raise new_without_stack(f"image: {_quote(name)} not present locally") from exc

    candidates = _select_nodes(list(nodes), node_names, quote_names=True)

    selected: dict[str, Node] = {}
    for name, wanted_id in zip(names, ids):
        processed = False
        for node in candidates:
            exists, retag_required, sanitized = check_if_image_retag_required(
                node, wanted_id, name, nodeutils.image_tags
            )
            if exists and not retag_required:
                continue
            if retag_required:
                log.info(
                    "Image with ID: %s already present on the node %s but is missing "
                    "the tag %s. re-tagging...",
                    wanted_id,
                    node,
                    sanitized,
                )
                try:
                    nodeutils.retag_image(node, wanted_id, sanitized)
                except Exception as exc:  # noqa: BLE001 - fall back to loading
                    log.error(
                        "failed to re-tag image on the node %s due to an error %s. "
                        "Will load it instead...",
                        node,
                        exc,
                    )
                    selected[str(node)] = node
                else:
                    processed = True
                continue
            try:
                found_id = nodeutils.image_id(node, name)
            except Exception:  # noqa: BLE001 - treat as missing
                found_id = None
            if found_id != wanted_id:
                selected[str(node)] = node
                log.info(
                    "Image: %s with ID %s not yet present on node %s, loading...",
                    _quote(name),
                    _quote(wanted_id),
                    _quote(str(node)),
                )
        if not selected and not processed:
            log.info(
                "Image: %s with ID %s found to be already present on all nodes.",
                _quote(name),
                _quote(wanted_id),
            )

    if not selected:
        return

    try:
        directory = temp_dir("", "images-tar")
    except OSError as exc:
        raise wrap(exc, "failed to create tempdir") from exc
    try:
        archive_path = os.path.join(directory, "images.tar")
        save_images(names, archive_path)
        until_error_concurrent(
            [partial(_load_image, archive_path, node) for node in selected.values()]
        )
    finally:
        shutil.rmtree(directory, ignore_errors=True)


def load_image_archive_file(
    nodes: Sequence[Node],
    archive_path: str,
    node_names: Iterable[str] | None = None,
) -> None:
    """Load the image archive at archive_path into all or the named nodes."""
    os.stat(archive_path)
    selected = _select_nodes(list(nodes), node_names, quote_names=False)
    until_error_concurrent([partial(_load_image, archive_path, node) for node in selected])