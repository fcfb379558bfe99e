"""Logging setup helpers for measurement tools."""

# Standard Library
import logging
import pathlib

_LOGGER_CONFIGURED = False
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


#============================================
def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
	"""Configure console logging once per process, with an optional file handler."""
	global _LOGGER_CONFIGURED
	if _LOGGER_CONFIGURED:
		return
	logger = logging.getLogger("notationqa")
	logger.setLevel(level)
	formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
	console_handler = logging.StreamHandler()
	console_handler.setLevel(level)
	console_handler.setFormatter(formatter)
	logger.addHandler(console_handler)
	if log_file:
		log_path = pathlib.Path(log_file)
		log_path.parent.mkdir(parents=True, exist_ok=True)
		file_handler = logging.FileHandler(log_path, encoding="utf-8")
		file_handler.setLevel(level)
		file_handler.setFormatter(formatter)
		logger.addHandler(file_handler)
	_LOGGER_CONFIGURED = True


#============================================
def get_logger(name: str) -> logging.Logger:
	"""Return a logger under the toolkit namespace."""
	if name.startswith("notationqa"):
		return logging.getLogger(name)
	return logging.getLogger(f"notationqa.{name}")


#============================================
def verbosity_to_level(verbose: int) -> int:
	"""Map a repeated -v count to a logging level."""
	if verbose >= 2:
		return logging.DEBUG
	if verbose == 1:
		return logging.INFO
	return logging.WARNING
