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

"""Running wallet commands over remctl

Every wallet operation is a remctl command: A list of arguments, sent to the
server, which sends back a stream of output tokens.  Standard output and
standard error arrive as separate `output` tokens; the command ends with a
`status` token (the exit status) or an `error` token (the server could not
run the command at all).
"""

# stdlib imports
import dataclasses
import logging
import sys
from typing import BinaryIO, Protocol, Sequence

# PyPi imports

# local imports
from suwallet.clients.exceptions import ChannelError

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

PROTOCOL_FAILURE_STATUS: int = 255
"""The exit status used when the command could not be run at all.

Wallet server commands never exit with this status, so it tells the caller
that the problem was with remctl, not with the request.
"""

STREAM_STDOUT: int = 1
STREAM_STDERR: int = 2

@dataclasses.dataclass(frozen=True)
class ChannelOutput():
	"""One output token from a remctl channel.
	"""

	type: str
	"""One of `output`, `status`, `error`, or `done`.
	"""

	data: bytes | None = None
	stream: int = 0
	status: int | None = None
	error: int | None = None

class Channel(Protocol):
	"""What we need from an open remctl connection.

	`suwallet.clients.channel.RemctlChannel` is the real implementation.
	Both methods raise `ChannelError` on a protocol or network failure.
	"""

	def command(self, command: Sequence[str | bytes]) -> None:
		...

	def output(self) -> ChannelOutput:
		...

@dataclasses.dataclass(frozen=True)
class CommandResult():
	"""The result of running one remote command.
	"""

	status: int
	"""The remote exit status, or 255 if the command could not be run.
	"""

	output: bytes | None = None
	"""Standard output, if the caller asked for it to be captured.

	When output is not captured, it has already been written to the local
	standard output, and this is `None`.
	"""

	stderr_seen: bool = False
	"""Did the command write anything to standard error?
	"""

	@property
	def ok(self) -> bool:
		return self.status == 0

def _local_stream(
	stream: BinaryIO | None,
	default: BinaryIO,
) -> BinaryIO:
	return default if stream is None else stream

def _describe(command: Sequence[str | bytes]) -> str:
	# Only the first few arguments: a store command carries secret data.
	shown = [
		arg if isinstance(arg, str) else arg.decode('UTF-8', 'backslashreplace')
		for arg in command[0:4]
	]
	return ' '.join(shown) + (' ...' if len(command) > 4 else '')

def run_command(
	channel: Channel,
	command: Sequence[str | bytes],
	capture: bool = False,
	stdout: BinaryIO | None = None,
	stderr: BinaryIO | None = None,
) -> CommandResult:
	"""Run a remote command and collect its result.

	Standard error from the server is always written to `stderr` as soon as
	it arrives.  Standard output is either captured and returned, or written
	to `stdout`; never both.

	:param channel: An open remctl channel.

	:param command: The command and its arguments.

	:param capture: If true, capture standard output instead of writing it.

	:param stdout: Where to write uncaptured output.  Defaults to our standard output.

	:param stderr: Where to write errors.  Defaults to our standard error.

	:returns: The remote exit status, and any captured output.  A protocol or network failure is reported on `stderr` and gives status 255.
	"""
	out = _local_stream(stdout, sys.stdout.buffer)
	err = _local_stream(stderr, sys.stderr.buffer)
	command = tuple(command)
	debug(f"Running remote command {_describe(command)}")

	captured: list[bytes] = list()
	stderr_seen = False
	status: int | None = None
	try:
		channel.command(command)
		while status is None:
			token = channel.output()
			if token.type == 'output':
				data = token.data or b''
				if token.stream == STREAM_STDERR:
					stderr_seen = True
					err.write(data)
					err.flush()
				elif capture:
					captured.append(data)
				else:
					out.write(data)
					out.flush()
			elif token.type == 'status':
				status = token.status if token.status is not None else 0
			elif token.type == 'error':
				message = (token.data or b'').rstrip(b'\n')
				warning(f"Server error {token.error} running {_describe(command)}")
				err.write(message + b'\n')
				err.flush()
				status = PROTOCOL_FAILURE_STATUS
			elif token.type == 'done':
				# Some servers end without a status token.
				status = 0
			else:
				raise ChannelError(f"unknown output token type {token.type}")
	except ChannelError as e:
		error(f"remctl failure running {_describe(command)}: {e}")
		err.write(f"{e}\n".encode('UTF-8', 'backslashreplace'))
		err.flush()
		status = PROTOCOL_FAILURE_STATUS

	debug(f"Remote command exited with status {status}")
	return CommandResult(
		status=status,
		output=(b''.join(captured) if capture else None),
		stderr_seen=stderr_seen,
	)

def run_commandv(
	channel: Channel,
	command: Sequence[bytes],
	capture: bool = False,
	stdout: BinaryIO | None = None,
	stderr: BinaryIO | None = None,
) -> CommandResult:
	"""Run a remote command given as raw byte buffers.

	This is the same as `run_command`, but for commands whose arguments are
	arbitrary binary data (such as the data sent by a `store`).

	:raises TypeError: One of the arguments is not bytes.
	"""
	for arg in command:
		if not isinstance(arg, (bytes, bytearray, memoryview)):
			raise TypeError('Command vector arguments must be bytes')
	return run_command(
		channel,
		[bytes(arg) for arg in command],
		capture=capture,
		stdout=stdout,
		stderr=stderr,
	)
