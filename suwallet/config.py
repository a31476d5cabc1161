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

"""Wallet client options

Options come from the command line.  Anything not given on the command line
comes from the environment:

* `WALLET_TYPE`: The remctl command for the wallet server (default `wallet`).

* `WALLET_SERVER`: The wallet server host name.

* `WALLET_PORT`: The remctl port (default 0, meaning the remctl default).

* `WALLET_PRINCIPAL`: The wallet server's Kerberos principal.
"""

# stdlib imports
import dataclasses
import logging
import os
from typing import Mapping

# PyPi imports

# local imports
from suwallet.clients.objects import DEFAULT_PREFIX

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

@dataclasses.dataclass()
class Options():
	"""How to reach the wallet server, and who to be.
	"""

	type: str = DEFAULT_PREFIX
	"""The remctl command for the wallet server.
	"""

	server: str | None = None
	"""The wallet server host name.  Must be set before connecting.
	"""

	port: int = 0
	"""The remctl port.  Zero means the remctl default.
	"""

	principal: str | None = None
	"""The wallet server's Kerberos principal, if not the remctl default.
	"""

	user: str | None = None
	"""If set, get tickets as this principal before connecting.
	"""

	def __post_init__(self) -> None:
		check_port(self.port)

def check_port(port: int) -> int:
	"""Make sure a port number is usable.

	:raises ValueError: The port is out of range.
	"""
	if (port < 0) or (port > 65535):
		raise ValueError(f"Invalid port {port}")
	return port

def _parse_port(value: str) -> int:
	try:
		return int(value)
	except ValueError:
		raise ValueError(f"Invalid port {value!r}") from None

def default_options(
	environ: Mapping[str, str] | None = None,
) -> Options:
	"""Build options from the environment.

	:param environ: The environment to read.  Defaults to `os.environ`.

	:raises ValueError: `WALLET_PORT` is not a valid port.
	"""
	if environ is None:
		environ = os.environ

	options = Options(
		type=environ.get('WALLET_TYPE') or DEFAULT_PREFIX,
		server=environ.get('WALLET_SERVER') or None,
		port=_parse_port(environ.get('WALLET_PORT') or '0'),
		principal=environ.get('WALLET_PRINCIPAL') or None,
	)
	debug(f"Default options: {options}")
	return options
