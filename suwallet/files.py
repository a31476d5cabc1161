# vim: ts=4 sw=4 noet

# Copyright 2025 The Board of Trustees of the Leland Stanford Junior University
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Writing credential files to disk

Keytabs and srvtabs are read by long-running services, which may reload them
at any time.  So, anything that replaces a credential file uses `write_file`,
which never lets a reader see a half-written file, and leaves a backup of the
previous contents.
"""

# stdlib imports
import logging
import os
import pathlib
import sys
from typing import BinaryIO

# PyPi imports

# local imports
from suwallet.clients.exceptions import FileError

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

PathLike = str | os.PathLike[str]

def _private_opener(path: str, flags: int) -> int:
	# Credential files are only ever readable by their owner.
	return os.open(path, flags, 0o600)

def _sibling(path: pathlib.Path, suffix: str) -> pathlib.Path:
	return path.with_name(path.name + suffix)

def _write_and_sync(
	fh: BinaryIO,
	data: bytes,
) -> None:
	fh.write(data)
	fh.flush()
	os.fsync(fh.fileno())

def overwrite_file(
	path: PathLike,
	data: bytes,
) -> None:
	"""Replace the contents of a file, in place.

	This truncates the file (creating it if needed) and writes `data`.  A
	reader may see a partial file, so use `write_file` for credentials.

	:param path: The file to overwrite.

	:param data: The new contents.

	:raises FileError: The file could not be opened, written, or closed.
	"""
	debug(f"Overwriting {path} with {len(data)} bytes")
	try:
		with open(path, 'wb', opener=_private_opener) as fh:
			_write_and_sync(fh, data)
	except OSError as e:
		raise FileError(f"cannot write to {path}: {e.strerror}") from e

def append_file(
	path: PathLike,
	data: bytes,
) -> None:
	"""Append data to a file, creating it if it does not exist.

	:raises FileError: The file could not be opened, written, or closed.
	"""
	debug(f"Appending {len(data)} bytes to {path}")
	try:
		with open(path, 'ab', opener=_private_opener) as fh:
			_write_and_sync(fh, data)
	except OSError as e:
		raise FileError(f"cannot append to {path}: {e.strerror}") from e

def write_file(
	path: PathLike,
	data: bytes,
) -> None:
	"""Atomically replace a file.

	The process is:

	1. Write `data` to `path.new`, and sync it to disk.

	2. If `path` already exists, hard-link it to `path.bak`.

	3. Rename `path.new` to `path`.

	Only the rename touches `path`, and rename is atomic, so at any point in
	time `path` is either the old file or the complete new one.  If we are
	killed before the rename, `path` is untouched.

	:param path: The file to write.

	:param data: The new contents.

	:raises FileError: Any step failed.  `path` was not changed.
	"""
	target = pathlib.Path(path)
	new = _sibling(target, '.new')
	bak = _sibling(target, '.bak')
	debug(f"Atomically writing {len(data)} bytes to {target}")

	# Clear out any leftover from an earlier run, then write the new file.
	try:
		new.unlink(missing_ok=True)
		with open(new, 'xb', opener=_private_opener) as fh:
			_write_and_sync(fh, data)
	except OSError as e:
		new.unlink(missing_ok=True)
		raise FileError(f"cannot write to {new}: {e.strerror}") from e

	# Keep a backup of the old file, if there is one.
	if target.exists():
		try:
			bak.unlink(missing_ok=True)
			os.link(target, bak)
		except OSError as e:
			new.unlink(missing_ok=True)
			raise FileError(f"cannot backup {target} to {bak}: {e.strerror}") from e
		debug(f"Backed up {target} to {bak}")

	# The only step that changes the real file
	try:
		os.rename(new, target)
	except OSError as e:
		new.unlink(missing_ok=True)
		raise FileError(f"cannot rename {new} to {target}: {e.strerror}") from e
	info(f"Wrote {target}")

def read_file(
	path: PathLike,
) -> bytes:
	"""Read a whole file into memory.

	:param path: The file to read.  The name `-` means standard input.

	:raises FileError: The file could not be read.
	"""
	if str(path) == '-':
		debug('Reading data from standard input')
		try:
			return sys.stdin.buffer.read()
		except OSError as e:
			raise FileError(f"cannot read from standard input: {e.strerror}") from e

	debug(f"Reading {path}")
	try:
		with open(path, 'rb') as fh:
			return fh.read()
	except OSError as e:
		raise FileError(f"cannot read {path}: {e.strerror}") from e
