"""Process exit codes."""

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
