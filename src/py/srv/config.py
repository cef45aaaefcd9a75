from os import getenv

PORT: int = int(getenv("PORT", 8000))

# If we're starting the server in a development environment, we want it to be
# accessible from everywhere
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

ROOT: str = getenv("SRV_ROOT", ".")

# Mounts `.zip` archives found under the root
ARCHIVES: bool = getenv("SRV_ARCHIVES", "1") == "1"

# Sends paths with a trailing slash straight to the not-found page
REJECT_TRAILING_SLASH: bool = getenv("SRV_REJECT_TRAILING_SLASH", "0") == "1"

# Use 200 to serve `404.html` as a regular page
NOT_FOUND_STATUS: int = int(getenv("SRV_NOT_FOUND_STATUS", 404))

LOG_REQUESTS: bool = getenv("SRV_LOG_REQUESTS", "1") == "1"

# NOTE: `SRV_LOG_LEVEL` is read by `utils.logging`, as it applies before
# the configuration is loaded.

# EOF
