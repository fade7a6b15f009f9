"""Built-in ``tiercache`` sub-commands: cache entries and settings."""
