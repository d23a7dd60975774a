"""Well-known names shared by the launcher and what runs in the container.

These strings are part of the contract with the launched process (the
staged config directory it is pointed at) and with the container runtime
(the log directory placeholder it expands). Changing one requires a
coordinated change downstream.
"""

# Relative directory the generated configuration bundle is staged under.
PROPAGATED_CONF_DIR_NAME = "propagatedconf"

# Relative directory a staged binary image is unpacked into.
LOCAL_TARBALL_INSTALL_SUBDIR = "image"

# Placeholder the container runtime replaces with the container log dir.
LOG_DIR_EXPANSION_VAR = "<LOG_DIR>"

# Role options with this prefix become process environment variables.
ROLE_ENV_PREFIX = "env."

# Role option overriding the log directory exported to the process.
ROLE_LOG_DIR_OPTION = "log.dir"

ARG_CONFIG = "--config"
ACTION_START = "start"

STDOUT_FILE = "out.txt"
STDERR_FILE = "err.txt"
