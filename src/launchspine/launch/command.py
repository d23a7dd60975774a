"""Start-command assembly.

The command line is a contract: process restart and log collection parse
it positionally. Arguments are always emitted in this order::

    <executable> --config propagatedconf <server-command> start \\
        1><LOG_DIR>/out.txt 2><LOG_DIR>/err.txt

``<LOG_DIR>`` is expanded by the container runtime, never here.
"""

from __future__ import annotations

import posixpath

from launchspine.launch.keys import (
    ACTION_START,
    ARG_CONFIG,
    LOCAL_TARBALL_INSTALL_SUBDIR,
    LOG_DIR_EXPANSION_VAR,
    PROPAGATED_CONF_DIR_NAME,
    STDERR_FILE,
    STDOUT_FILE,
)
from launchspine.launch.models import ClusterDescriptor


def resolve_executable_path(descriptor: ClusterDescriptor, executable_name: str) -> str:
    """Path of the role executable.

    Relative to the unpacked image when the descriptor names one, absolute
    under the pre-installed home otherwise.
    """
    if descriptor.image_path is not None:
        return posixpath.join(LOCAL_TARBALL_INSTALL_SUBDIR, "bin", executable_name)
    if not descriptor.install_home:
        raise ValueError(
            f"cluster {descriptor.name!r} has neither an image path nor an install home"
        )
    home = descriptor.install_home
    if not posixpath.isabs(home):
        raise ValueError(f"install home must be absolute: {home!r}")
    return posixpath.join(home, "bin", executable_name)


def build_command_args(executable: str, server_command: str) -> list[str]:
    """The ordered argument list for a role start."""
    return [
        executable,
        ARG_CONFIG,
        PROPAGATED_CONF_DIR_NAME,
        server_command,
        ACTION_START,
        f"1>{LOG_DIR_EXPANSION_VAR}/{STDOUT_FILE}",
        f"2>{LOG_DIR_EXPANSION_VAR}/{STDERR_FILE}",
    ]


def assemble_command(executable: str, server_command: str) -> str:
    """Join :func:`build_command_args` with single spaces."""
    return " ".join(build_command_args(executable, server_command))
