"""Save and load projects as JSON.

Layout::

	{
		"name": "New Project",
		"bpm": 120,
		"current_pattern_index": 0,
		"patterns": [
			{"notes": [60, 0, 64, 0]}
		]
	}
"""

import json
import logging

import oscseq.project


logger = logging.getLogger(__name__)


class ProjectFileError (Exception):

	"""Raised when a project file cannot be written, read, or understood."""


def save_project (project: oscseq.project.Project, filename: str) -> None:

	"""Write *project* to *filename*."""

	try:
		with open(filename, 'w') as f:
			json.dump(project.to_dict(), f, indent=2)
	except OSError as e:
		raise ProjectFileError(f"Failed to save project to {filename}: {e}") from e

	logger.info(f"Saved project {project.name!r} to {filename}")


def load_project (filename: str) -> oscseq.project.Project:

	"""Read a project from *filename*."""

	try:
		with open(filename, 'r') as f:
			data = json.load(f)
	except FileNotFoundError as e:
		raise ProjectFileError(f"Project file not found: {filename}") from e
	except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
		raise ProjectFileError(f"Failed to read project file {filename}: {e}") from e

	if not isinstance(data, dict):
		raise ProjectFileError(f"Project file {filename} must contain an object")

	try:
		project = oscseq.project.Project.from_dict(data)
	except (KeyError, TypeError, ValueError) as e:
		raise ProjectFileError(f"Invalid project file {filename}: {e}") from e

	logger.info(f"Read project {project.name!r} from {filename}")

	return project
