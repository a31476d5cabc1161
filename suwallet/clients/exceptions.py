# vim: ts=4 sw=4 noet

# These are the exceptions that the wallet client can throw.

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

class WalletError(Exception):
	"""A wallet client error.

	Every error carries the exit status that the command-line client should
	use when the error is not handled.
	"""
	status: int = 1

class FileError(WalletError):
	"""We could not read or write a local file.
	"""
	pass

class KeytabError(WalletError):
	"""A keytab could not be parsed.
	"""
	pass

class SrvtabError(WalletError):
	"""A srvtab could not be derived from a keytab.

	Either the principal was not in the keytab, it had no single-DES key, or
	its name could not be converted to a Kerberos v4 name.
	"""
	pass

class KerberosError(WalletError):
	"""We could not get Kerberos credentials, or the local realm.
	"""
	pass

class ChannelError(WalletError):
	"""The remctl channel itself failed.

	This is a protocol or network problem, not an error reported by the wallet
	server.  It is always reported with the reserved exit status 255.
	"""
	status = 255

class RemoteError(WalletError):
	"""The wallet server reported a failure we cannot continue past.

	:param message: What we were trying to do.

	:param status: The exit status returned by the server.
	"""
	def __init__(self, message: str, status: int) -> None:
		super().__init__(message)
		self.status = status

class AutocreateError(RemoteError):
	"""The wallet server refused to autocreate an object."""
	pass

__all__ = (
	'WalletError',
	'FileError',
	'KeytabError',
	'SrvtabError',
	'KerberosError',
	'ChannelError',
	'RemoteError',
	'AutocreateError',
)
