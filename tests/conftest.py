# Standard Library
import os


def repo_root():
	root = _find_repo_root(os.path.dirname(os.path.abspath(__file__)))
	if not root:
		root = _find_repo_root(os.getcwd())
	if not root:
		raise RuntimeError("repo root could not be resolved from current working directory")
	return root


#============================================
def _find_repo_root(start_dir):
	current = os.path.abspath(start_dir)
	while True:
		if _looks_like_repo_root(current):
			return current
		parent = os.path.dirname(current)
		if parent == current:
			return ""
		current = parent


#============================================
def _looks_like_repo_root(path):
	if not path:
		return False
	if not os.path.isdir(path):
		return False
	if not os.path.isfile(os.path.join(path, "pyproject.toml")):
		return False
	if not os.path.isdir(os.path.join(path, "tools", "notationqa")):
		return False
	return True
