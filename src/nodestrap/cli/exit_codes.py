"""Exit codes returned by the nodestrap CLI."""

from nodestrap.core.errors import INTERNAL_ERROR_EXIT_CODE

EXIT_SUCCESS = 0
EXIT_BOOTSTRAP_FAILED = 1
EXIT_INVALID_USAGE = 2
EXIT_TOOLCHAIN_MISSING = 3
EXIT_TOOLCHAIN_INCOMPATIBLE = 4
EXIT_SERVICE_ERROR = 5
EXIT_INTERNAL_ERROR = INTERNAL_ERROR_EXIT_CODE
