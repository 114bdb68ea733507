"""
stackdeploy Constants

Centralized defaults for inputs, file locations and timeouts.
"""

# Default Remote Configuration
DEFAULT_REMOTE_PORT = 22
DEFAULT_DEPLOY_TIMEOUT = 600

# SSH File Layout (relative to SSH_DIR)
DEFAULT_SSH_DIR = "~/.ssh"
SSH_KEY_NAME = "docker"
SSH_CONFIG_NAME = "config"
KNOWN_HOSTS_NAME = "known_hosts"

# File Modes
SSH_DIR_MODE = 0o700
PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644
SSH_CONFIG_MODE = 0o600
KNOWN_HOSTS_MODE = 0o600

# Env File
DEFAULT_ENV_FILE_PATH = "~/.env"

# Docker Configuration
DEFAULT_DOCKER_REGISTRY = "docker.io"
DEFAULT_STACK_WAIT_SCRIPT = "/stack-wait.sh"

# Passphrase Unlock
DEFAULT_SSH_ADD_TIMEOUT = 20
MAX_PASSPHRASE_SENDS = 3
UNLOCK_KILL_GRACE = 2

# Debug
SSH_VERBOSE_FLAG = "-vvv"
DEBUG_OFF_VALUES = ("0",)

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
