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

"""Getting, storing, and rekeying wallet objects

These are the workflows behind the `wallet get`, `wallet store`, and
`wallet rekey` commands.  Each one is a sequence of remote commands, ending
with an atomic write of whatever we received.

Functions that run a single remote command return that command's exit
status, so a server rejection can be passed straight back to the user.
Problems that mean we cannot continue (a file we cannot write, an object we
cannot create) raise a `WalletError` instead.
"""

# stdlib imports
import logging
import sys
from typing import BinaryIO

# PyPi imports

# local imports
from suwallet.clients.command import (
	Channel,
	PROTOCOL_FAILURE_STATUS,
	run_command,
	run_commandv,
)
from suwallet.clients.exceptions import KeytabError
from suwallet.clients.objects import ObjectRef, ensure_object
import suwallet.files
import suwallet.keytab
import suwallet.srvtab

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

KEYTAB_TYPE: str = 'keytab'

def _report(
	stderr: BinaryIO | None,
	message: str,
) -> None:
	"""Tell the user about a problem.
	"""
	warning(message)
	stream = sys.stderr.buffer if stderr is None else stderr
	stream.write(message.encode('UTF-8', 'backslashreplace') + b'\n')
	stream.flush()

def get_keytab(
	channel: Channel,
	prefix: str,
	name: str,
	path: suwallet.files.PathLike,
	srvtab: suwallet.files.PathLike | None = None,
	realm: str | None = None,
	stderr: BinaryIO | None = None,
) -> int:
	"""Download a keytab, and optionally make a srvtab from it.

	The keytab object is autocreated if it does not exist.  The downloaded
	keytab replaces `path` atomically; the old file is kept as `path.bak`.

	:param channel: An open remctl channel.

	:param prefix: The remctl command for the wallet server.

	:param name: The keytab object name, which is the principal.

	:param path: Where to write the keytab.

	:param srvtab: If set, also write a srvtab for `name` here.

	:param realm: The default realm, for making the srvtab.

	:param stderr: Where to write problems.

	:returns: 0 on success, or the exit status of the failed remote command.  If the download failed, nothing was written.

	:raises RemoteError: We could not check if the keytab object exists.

	:raises AutocreateError: The keytab object could not be created.

	:raises FileError: The keytab could not be written.

	:raises SrvtabError: The keytab was written, but a srvtab could not be made from it.
	"""
	ref = ObjectRef(prefix, KEYTAB_TYPE, name)
	ensure_object(channel, ref, stderr=stderr)

	result = run_command(
		channel,
		ref.command('get'),
		capture=True,
		stderr=stderr,
	)
	if not result.ok:
		debug(f"Download of {ref} failed with status {result.status}")
		return result.status
	if not result.output:
		_report(stderr, 'no data returned by wallet server')
		return PROTOCOL_FAILURE_STATUS

	suwallet.files.write_file(path, result.output)
	if srvtab is not None:
		suwallet.srvtab.write_srvtab(srvtab, name, path, realm)
	return 0

def get_file(
	channel: Channel,
	prefix: str,
	type: str,
	name: str,
	path: suwallet.files.PathLike | None = None,
	stdout: BinaryIO | None = None,
	stderr: BinaryIO | None = None,
) -> int:
	"""Download any wallet object.

	The object is autocreated if it does not exist.

	:param path: Where to write the object.  If not set, write it to `stdout`.

	:returns: 0 on success, or the exit status of the failed remote command.
	"""
	ref = ObjectRef(prefix, type, name)
	ensure_object(channel, ref, stderr=stderr)

	if path is None:
		result = run_command(
			channel,
			ref.command('get'),
			stdout=stdout,
			stderr=stderr,
		)
		return result.status

	result = run_command(
		channel,
		ref.command('get'),
		capture=True,
		stderr=stderr,
	)
	if not result.ok:
		return result.status
	if not result.output:
		_report(stderr, 'no data returned by wallet server')
		return PROTOCOL_FAILURE_STATUS
	suwallet.files.write_file(path, result.output)
	return 0

def store_file(
	channel: Channel,
	prefix: str,
	type: str,
	name: str,
	path: suwallet.files.PathLike | None = None,
	stdout: BinaryIO | None = None,
	stderr: BinaryIO | None = None,
) -> int:
	"""Store data into a wallet object.

	The object is autocreated if it does not exist.  The data is sent as raw
	bytes, so it may contain anything (including NULs).

	:param path: The file to read the data from.  If not set, or `-`, read standard input.

	:returns: The exit status of the store command.

	:raises FileError: The data could not be read.
	"""
	data = suwallet.files.read_file('-' if path is None else path)
	ref = ObjectRef(prefix, type, name)
	ensure_object(channel, ref, stderr=stderr)

	result = run_commandv(
		channel,
		[arg.encode('UTF-8') for arg in ref.command('store')] + [data],
		stdout=stdout,
		stderr=stderr,
	)
	return result.status

def rekey_keytab(
	channel: Channel,
	prefix: str,
	path: suwallet.files.PathLike,
	realm: str,
	stderr: BinaryIO | None = None,
) -> bool:
	"""Get new keys for every principal in a keytab.

	Each local-realm principal in the keytab gets new keys from the server.
	The new keys are added to the keytab, and the old keys are kept, so that
	services can keep accepting tickets issued before the rekey.

	A failure for one principal does not stop the others.  If at least one
	principal got new keys, the keytab is rewritten (atomically) with all the
	new keys we got.

	:param channel: An open remctl channel.

	:param prefix: The remctl command for the wallet server.

	:param path: The keytab to rekey.

	:param realm: The local realm.  Principals in other realms are skipped.

	:param stderr: Where to write problems.

	:returns: True if every principal was rekeyed; False if any failed.

	:raises FileError: The keytab could not be read or written.

	:raises KeytabError: The existing keytab could not be parsed.
	"""
	original = suwallet.files.read_file(path)
	keytab = suwallet.keytab.parse_keytab(original)
	principals = suwallet.keytab.keytab_principals(keytab, realm)
	if len(principals) == 0:
		info(f"No principals in {realm} found in {path}")
		return True
	info(f"Rekeying {len(principals)} principals in {path}")

	# Start with the old keytab, and add each principal's new keys to it.
	combined = bytearray(original)
	failed: list[str] = list()
	for principal in principals:
		ref = ObjectRef(prefix, KEYTAB_TYPE, principal)
		result = run_command(
			channel,
			ref.command('get'),
			capture=True,
			stderr=stderr,
		)
		if not result.ok or not result.output:
			_report(stderr, f"error rekeying for principal {principal}")
			failed.append(principal)
			continue
		try:
			new_keys = suwallet.keytab.parse_keytab(result.output)
		except KeytabError as e:
			_report(stderr, f"error rekeying for principal {principal}: {e}")
			failed.append(principal)
			continue
		debug(f"Got {len(new_keys.entries)} new keys for {principal}")
		combined += suwallet.keytab.encode_entries(
			new_keys.entries,
			keytab.version,
		)

	if bytes(combined) != original:
		suwallet.files.write_file(path, bytes(combined))
	else:
		_report(stderr, f"no principals rekeyed; {path} unchanged")

	if len(failed) > 0:
		warning(f"Rekey of {path} failed for: {', '.join(failed)}")
	return len(failed) == 0
