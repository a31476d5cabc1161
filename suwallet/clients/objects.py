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

"""Making sure wallet objects exist

Before we can get an object, it must exist on the wallet server.  Many
objects (like keytabs for a host the user owns) can be created on demand, by
asking the server to autocreate them.
"""

# stdlib imports
import dataclasses
import logging
from typing import BinaryIO

# PyPi imports

# local imports
from suwallet.clients.command import Channel, run_command
from suwallet.clients.exceptions import AutocreateError, RemoteError

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

DEFAULT_PREFIX: str = 'wallet'
"""The remctl command for the wallet server.
"""

EXISTS_YES: bytes = b'yes\n'
"""What the `check` command prints when the object exists.
"""

@dataclasses.dataclass(frozen=True)
class ObjectRef():
	"""A wallet object: The remctl command prefix, object type, and name.
	"""

	prefix: str
	type: str
	name: str

	def command(
		self,
		verb: str,
		*extra: str,
	) -> list[str]:
		"""Build the command to run `verb` against this object.
		"""
		return [self.prefix, verb, self.type, self.name, *extra]

	def __str__(self) -> str:
		return f"{self.type} {self.name}"

def object_exists(
	channel: Channel,
	ref: ObjectRef,
	stderr: BinaryIO | None = None,
) -> bool:
	"""Check if an object exists.

	:param channel: An open remctl channel.

	:param ref: The object to check.

	:param stderr: Where to write server errors.

	:returns: True if the object exists.

	:raises RemoteError: The server could not check.  This is not the same as the object not existing.
	"""
	result = run_command(
		channel,
		ref.command('check'),
		capture=True,
		stderr=stderr,
	)
	if not result.ok:
		raise RemoteError(f"cannot check for {ref}", result.status)
	exists = (result.output == EXISTS_YES)
	debug(f"Object {ref} " + ('exists' if exists else 'does not exist'))
	return exists

def object_autocreate(
	channel: Channel,
	ref: ObjectRef,
	stderr: BinaryIO | None = None,
) -> None:
	"""Ask the server to create an object.

	:raises AutocreateError: The server would not create the object.
	"""
	info(f"Autocreating {ref}")
	result = run_command(
		channel,
		ref.command('autocreate'),
		stderr=stderr,
	)
	if not result.ok:
		raise AutocreateError(f"cannot create {ref}", result.status)

def ensure_object(
	channel: Channel,
	ref: ObjectRef,
	stderr: BinaryIO | None = None,
) -> None:
	"""Make sure an object exists, creating it if needed.

	:raises RemoteError: The server could not check.

	:raises AutocreateError: The object did not exist, and could not be created.
	"""
	if not object_exists(channel, ref, stderr=stderr):
		object_autocreate(channel, ref, stderr=stderr)
