"""Resource resolution: map logical artifacts to node-local staging entries.

Two families are staged for every launch, merged into whatever the role
provider has already put into the context:

1. the generated configuration bundle, each file keyed under the fixed
   ``propagatedconf/`` directory so command arguments can refer to it
   relatively;
2. the optional binary image, unpacked under the fixed install directory.
   No image means the role runs a pre-installed binary.

Config entries are always added before the image entry, and the mapping
keeps that order.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from launchspine.core.errors import ResourceStagingError
from launchspine.launch.keys import LOCAL_TARBALL_INSTALL_SUBDIR, PROPAGATED_CONF_DIR_NAME
from launchspine.launch.models import (
    ClusterDescriptor,
    LocalResource,
    ResourceType,
    ResourceVisibility,
)
from launchspine.launch.protocols import FilesystemHandle

logger = structlog.get_logger(__name__)


def create_resource(
    filesystem: FilesystemHandle,
    path: str | Path,
    resource_type: ResourceType = ResourceType.FILE,
) -> LocalResource:
    """Describe *path* as a localizable resource. Raises ``OSError``."""
    status = filesystem.status(path)
    return LocalResource(
        locator=filesystem.qualify(path),
        size=status.size,
        timestamp=status.modification_time,
        type=resource_type,
        visibility=ResourceVisibility.APPLICATION,
    )


def submit_directory(
    filesystem: FilesystemHandle,
    source_dir: str | Path,
    dest_dir_name: str,
) -> dict[str, LocalResource]:
    """Stage every regular file directly under *source_dir*.

    Each file becomes a ``FILE`` resource keyed ``<dest_dir_name>/<name>``.
    Raises ``OSError``.
    """
    resources: dict[str, LocalResource] = {}
    for status in filesystem.list_files(source_dir):
        name = Path(status.path).name
        resources[f"{dest_dir_name}/{name}"] = LocalResource(
            locator=filesystem.qualify(status.path),
            size=status.size,
            timestamp=status.modification_time,
            type=ResourceType.FILE,
            visibility=ResourceVisibility.APPLICATION,
        )
    return resources


def maybe_add_image_path(
    filesystem: FilesystemHandle,
    resources: dict[str, LocalResource],
    image_path: str | Path | None,
) -> bool:
    """Add the binary image as an archive resource if one is configured.

    Returns True if an image was staged. Raises ``OSError`` if the image
    is configured but unreadable.
    """
    if image_path is None:
        return False
    resources[LOCAL_TARBALL_INSTALL_SUBDIR] = create_resource(
        filesystem, image_path, ResourceType.ARCHIVE
    )
    return True


def resolve_resources(
    filesystem: FilesystemHandle,
    conf_dir: str | Path,
    descriptor: ClusterDescriptor,
    resources: dict[str, LocalResource],
) -> dict[str, LocalResource]:
    """Merge the config bundle, then the optional image, into *resources*.

    Raises:
        ResourceStagingError: Either family could not be staged.
    """
    try:
        resources.update(submit_directory(filesystem, conf_dir, PROPAGATED_CONF_DIR_NAME))
    except OSError as exc:
        raise ResourceStagingError(
            f"cannot stage config bundle from {conf_dir}", cause=exc
        ).with_context(conf_dir=str(conf_dir)) from exc

    if descriptor.image_path is not None:
        logger.info("launch.image", image_path=descriptor.image_path)
        try:
            maybe_add_image_path(filesystem, resources, descriptor.image_path)
        except OSError as exc:
            raise ResourceStagingError(
                f"cannot stage image {descriptor.image_path}", cause=exc
            ).with_context(image_path=descriptor.image_path) from exc
    return resources
