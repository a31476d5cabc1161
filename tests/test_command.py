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

# Test running remote commands

# PyPi imports
import pytest

# Local imports
from suwallet.clients.command import (
	ChannelOutput,
	PROTOCOL_FAILURE_STATUS,
	run_command,
	run_commandv,
)
from suwallet.clients.exceptions import ChannelError

from conftest import reply


SHOW = ('wallet', 'show', 'keytab', 'service/foo')

def test_capture(fake_channel, stdout, errout) -> None:
	"""Captured output is returned, and not written out.
	"""
	channel = fake_channel({
		SHOW: reply(stdout=b'object details\n'),
	})
	result = run_command(channel, SHOW, capture=True, stdout=stdout, stderr=errout)
	assert result.status == 0
	assert result.ok
	assert result.output == b'object details\n'
	assert result.stderr_seen is False
	assert stdout.getvalue() == b''
	assert errout.getvalue() == b''
	assert channel.commands == [SHOW]

def test_write_through(fake_channel, stdout, errout) -> None:
	"""Uncaptured output goes to stdout, in order.
	"""
	channel = fake_channel({
		SHOW: [
			ChannelOutput(type='output', data=b'part one, ', stream=1),
			ChannelOutput(type='output', data=b'part two\n', stream=1),
			ChannelOutput(type='status', status=0),
		],
	})
	result = run_command(channel, list(SHOW), stdout=stdout, stderr=errout)
	assert result.status == 0
	assert result.output is None
	assert stdout.getvalue() == b'part one, part two\n'

def test_stderr_always_written(fake_channel, stdout, errout) -> None:
	"""Standard error is written even when output is captured.
	"""
	channel = fake_channel({
		SHOW: reply(status=1, stdout=b'partial', stderr=b'access denied\n'),
	})
	result = run_command(channel, SHOW, capture=True, stdout=stdout, stderr=errout)
	assert result.status == 1
	assert not result.ok
	assert result.stderr_seen is True
	assert result.output == b'partial'
	assert errout.getvalue() == b'access denied\n'
	assert stdout.getvalue() == b''

def test_server_error_token(fake_channel, stdout, errout) -> None:
	"""A remctl error from the server gives status 255.
	"""
	channel = fake_channel({
		SHOW: [
			ChannelOutput(type='error', data=b'Unknown command', error=5),
		],
	})
	result = run_command(channel, SHOW, stdout=stdout, stderr=errout)
	assert result.status == PROTOCOL_FAILURE_STATUS
	assert errout.getvalue() == b'Unknown command\n'

def test_channel_failure(fake_channel, stdout, errout) -> None:
	"""A failed channel gives status 255, unlike a server rejection.
	"""
	channel = fake_channel({
		SHOW: ChannelError('cannot connect to wallet.example.com'),
		('wallet', 'get', 'keytab', 'service/foo'): reply(status=1, stderr=b'denied\n'),
	})
	broken = run_command(channel, SHOW, capture=True, stdout=stdout, stderr=errout)
	assert broken.status == 255
	assert b'cannot connect to wallet.example.com' in errout.getvalue()

	rejected = run_command(
		channel,
		('wallet', 'get', 'keytab', 'service/foo'),
		capture=True,
		stdout=stdout,
		stderr=errout,
	)
	assert rejected.status == 1

def test_channel_failure_midstream(fake_channel, stdout, errout) -> None:
	"""The channel dying while reading output gives status 255.
	"""
	channel = fake_channel({
		SHOW: [
			ChannelOutput(type='output', data=b'some', stream=1),
		],
	})
	result = run_command(channel, SHOW, capture=True, stdout=stdout, stderr=errout)
	assert result.status == PROTOCOL_FAILURE_STATUS
	assert b'no more output' in errout.getvalue()

def test_done_token(fake_channel, stdout, errout) -> None:
	channel = fake_channel({
		SHOW: [
			ChannelOutput(type='output', data=b'ok\n', stream=1),
			ChannelOutput(type='done'),
		],
	})
	result = run_command(channel, SHOW, stdout=stdout, stderr=errout)
	assert result.status == 0
	assert stdout.getvalue() == b'ok\n'

def test_commandv(fake_channel, stdout, errout) -> None:
	"""Byte vectors are sent as-is.
	"""
	store = (b'wallet', b'store', b'file', b'secret', b'\x00\xffdata')
	channel = fake_channel({
		('wallet', 'store', 'file', 'secret'): reply(),
	})
	result = run_commandv(channel, store, stdout=stdout, stderr=errout)
	assert result.status == 0
	assert channel.commands == [store]

	with pytest.raises(TypeError):
		run_commandv(channel, ['wallet', 'store'], stdout=stdout, stderr=errout)
