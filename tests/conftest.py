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

# Shared test fixtures: A scripted remctl channel, and keytab builders.

# Stdlib imports
import collections.abc
import io
from typing import Callable, Sequence

# PyPi imports
import pytest

# Local imports
from suwallet.clients.command import ChannelOutput
from suwallet.clients.exceptions import ChannelError
import suwallet.keytab

REALM = 'EXAMPLE.COM'

Reply = list[ChannelOutput] | ChannelError

def reply(
	status: int = 0,
	stdout: bytes = b'',
	stderr: bytes = b'',
) -> list[ChannelOutput]:
	"""Build the output tokens for a command that ran.
	"""
	tokens: list[ChannelOutput] = list()
	if stderr != b'':
		tokens.append(ChannelOutput(type='output', data=stderr, stream=2))
	if stdout != b'':
		tokens.append(ChannelOutput(type='output', data=stdout, stream=1))
	tokens.append(ChannelOutput(type='status', status=status))
	return tokens

class FakeChannel():
	"""A remctl channel that replays scripted replies.

	Replies are keyed by the command, as a tuple of strings.  Every command
	sent is recorded in `commands`.
	"""

	def __init__(self,
		replies: collections.abc.Mapping[tuple[str, ...], Reply],
	) -> None:
		self.replies = dict(replies)
		self.commands: list[tuple[str | bytes, ...]] = list()
		self._pending: list[ChannelOutput] = list()

	def command(self, command: Sequence[str | bytes]) -> None:
		command = tuple(command)
		self.commands.append(command)
		key = tuple(
			arg if isinstance(arg, str) else arg.decode('UTF-8', 'backslashreplace')
			for arg in command[0:4]
		)
		scripted = self.replies.get(key)
		if scripted is None:
			raise AssertionError(f"Unexpected command {key}")
		if isinstance(scripted, ChannelError):
			raise scripted
		self._pending = list(scripted)

	def output(self) -> ChannelOutput:
		if len(self._pending) == 0:
			raise ChannelError('no more output')
		return self._pending.pop(0)

def make_entry(
	principal: str,
	kvno: int = 1,
	enctype: int = 18,
	key: bytes | None = None,
) -> suwallet.keytab.KeytabEntry:
	if key is None:
		key = bytes([kvno & 0xFF]) * (8 if enctype in (1, 2, 3) else 32)
	return suwallet.keytab.KeytabEntry(
		principal=suwallet.keytab.Principal.parse(principal),
		timestamp=1700000000,
		kvno=kvno,
		enctype=enctype,
		key=key,
	)

def make_keytab(
	*entries: suwallet.keytab.KeytabEntry,
) -> bytes:
	return suwallet.keytab.Keytab(entries=list(entries)).to_bytes()

@pytest.fixture
def fake_channel() -> Callable[..., FakeChannel]:
	return FakeChannel

@pytest.fixture
def errout() -> io.BytesIO:
	"""A stand-in for standard error.
	"""
	return io.BytesIO()

@pytest.fixture
def stdout() -> io.BytesIO:
	"""A stand-in for standard output.
	"""
	return io.BytesIO()
