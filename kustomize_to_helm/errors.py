class ManifestParseError(ValueError):
    """
    Exception class indicating the manifest stream could not be read or decoded.
    The conversion is aborted and no output is produced.
    """

    def __init__(self, reason, path=None, document=None):
        self.reason = reason
        self.path = path
        self.document = document

    def __str__(self):
        location = self.path or "<stream>"
        if self.document is not None:
            location = f"{location} (document {self.document})"
        return f"{location}: {self.reason}"


class ValuesParseError(ValueError):
    """
    Exception class indicating an existing values.yaml is not a valid YAML mapping.
    """

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason

    def __str__(self):
        return f"{self.path}: {self.reason}"


class ChartWriteError(OSError):
    def __init__(self, path, reason):
        self.path = path
        self.reason = reason

    def __str__(self):
        return f"Failed to write '{self.path}': {self.reason}"
