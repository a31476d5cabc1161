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

"""A remctl connection to the wallet server

This wraps the remctl Python bindings, so that the rest of the client only
ever sees our own `ChannelError`.  Authentication uses whatever Kerberos
ticket cache is in the environment (`KRB5CCNAME`), or the one given.
"""

# stdlib imports
import logging
import types
from typing import Sequence

# PyPi imports
import remctl

# local imports
from suwallet.clients.command import ChannelOutput
from suwallet.clients.exceptions import ChannelError

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

class RemctlChannel():
	"""An authenticated remctl connection.

	:param server: The wallet server host name.

	:param port: The remctl port.  Zero means the remctl default.

	:param principal: The server's Kerberos principal.  If not set, remctl uses `host/<server>`.

	:param ccache: A specific Kerberos ticket cache to authenticate with.
	"""

	_server: str
	_port: int
	_principal: str | None
	_ccache: str | None
	_remctl: remctl.Remctl | None

	def __init__(
		self,
		server: str,
		port: int = 0,
		principal: str | None = None,
		ccache: str | None = None,
	) -> None:
		if (port < 0) or (port > 65535):
			raise ValueError(f"Invalid port {port}")
		self._server = server
		self._port = port
		self._principal = principal
		self._ccache = ccache
		self._remctl = None

	def open(self) -> None:
		"""Connect and authenticate to the server.

		:raises ChannelError: We could not connect or authenticate.
		"""
		debug(
			f"Connecting to {self._server}:{self._port or 'default'}" +
			(f" as {self._principal}" if self._principal is not None else '')
		)
		connection = remctl.Remctl()
		try:
			if self._ccache is not None:
				connection.set_ccache(self._ccache)
			connection.open(
				self._server,
				(self._port if self._port != 0 else None),
				self._principal,
			)
		except remctl.RemctlError as e:
			connection.close()
			raise ChannelError(f"cannot connect to {self._server}: {e}") from e
		self._remctl = connection

	def close(self) -> None:
		if self._remctl is not None:
			debug(f"Closing connection to {self._server}")
			self._remctl.close()
			self._remctl = None

	@property
	def closed(self) -> bool:
		return self._remctl is None

	def _connection(self) -> remctl.Remctl:
		if self._remctl is None:
			raise ChannelError(f"connection to {self._server} is not open")
		return self._remctl

	def command(self, command: Sequence[str | bytes]) -> None:
		try:
			self._connection().command(list(command))
		except remctl.RemctlError as e:
			raise ChannelError(str(e)) from e

	def output(self) -> ChannelOutput:
		try:
			token = self._connection().output()
		except remctl.RemctlError as e:
			raise ChannelError(str(e)) from e
		# remctl hands back a (type, data, stream, status, error) tuple.
		type_, data, stream, status, error_code = token
		return ChannelOutput(
			type=type_,
			data=data,
			stream=stream,
			status=status,
			error=error_code,
		)

	def __enter__(self) -> 'RemctlChannel':
		self.open()
		return self

	def __exit__(
		self,
		exc_type: type[BaseException] | None,
		exc: BaseException | None,
		tb: types.TracebackType | None,
	) -> None:
		self.close()
