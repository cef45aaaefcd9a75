from .http.model import (
	HTTPRequest,
	HTTPResponse,
)  # NOQA: F401
from .model import Service  # NOQA: F401
from .sources import (
	Source,
	PlainSource,
	ArchiveSource,
	ResolutionError,
	ResourceNotFound,
	ResourceForbidden,
	ResourceFailure,
)  # NOQA: F401
from .services.files import FileServer  # NOQA: F401
from .server import run  # NOQA: F401


# EOF
