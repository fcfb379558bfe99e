"""Typed errors for notation quality measurement."""


#============================================
class NotationQaError(Exception):
	"""Base error for the measurement toolkit."""


#============================================
class MarkupParseError(NotationQaError):
	"""Markup could not be parsed into a geometry tree."""

	def __init__(self, message: str, source: str | None = None):
		self.source = source
		if source:
			message = f"Markup parse error in {source}: {message}"
		super().__init__(message)


#============================================
class FixtureMetadataError(NotationQaError):
	"""Fixture declaration failed schema validation."""

	def __init__(self, file_path: str, message: str, field: str | None = None):
		self.file_path = str(file_path)
		self.field = field
		super().__init__(f"Metadata error in {self.file_path}: {message}")


#============================================
class ConfigError(NotationQaError):
	"""Split, gate, or scoring configuration document is malformed."""

	def __init__(self, message: str, file_path: str | None = None):
		self.file_path = file_path
		if file_path:
			message = f"Config error in {file_path}: {message}"
		super().__init__(message)


#============================================
class ProbeError(NotationQaError):
	"""Isolated page probe failed or returned malformed output."""
