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

# Test command-line handling.  This needs the remctl and gssapi modules.

# PyPi imports
import pytest

pytest.importorskip('remctl')
pytest.importorskip('gssapi')

# Local imports
import suwallet.cli
import suwallet.config
import suwallet.kerberos

from conftest import REALM, make_entry, make_keytab, reply


def parse(*argv: str):
	argp = suwallet.cli.build_parser()
	args = argp.parse_args(argv)
	suwallet.cli.check_usage(argp, args)
	return args

def test_usage_errors() -> None:
	"""Argument combinations that can never work exit with status 2.
	"""
	bad_commands = [
		('get', 'keytab'),
		('get', 'keytab', 'service/foo'),
		('-S', 'srvtab', 'get', 'file', 'foo'),
		('-S', 'srvtab', 'show', 'keytab', 'foo'),
		('-f', 'out', 'show', 'keytab', 'foo'),
		('store', 'file'),
		('rekey',),
		('rekey', 'a', 'b'),
	]
	for argv in bad_commands:
		with pytest.raises(SystemExit) as excinfo:
			parse(*argv)
		assert excinfo.value.code == 2

def test_options(monkeypatch) -> None:
	"""Command-line options override the environment.
	"""
	monkeypatch.setenv('WALLET_SERVER', 'env.example.com')
	monkeypatch.setenv('WALLET_PORT', '4373')
	args = parse('-s', 'cli.example.com', '-c', 'wallet-test', 'show', 'keytab', 'foo')
	options = suwallet.cli.make_options(args)
	assert options.server == 'cli.example.com'
	assert options.port == 4373
	assert options.type == 'wallet-test'
	assert args.arguments == ['keytab', 'foo']

def test_options_bad_port(monkeypatch) -> None:
	"""A -p value out of range is rejected, and not silently kept.
	"""
	monkeypatch.delenv('WALLET_PORT', raising=False)
	args = parse('-s', 'cli.example.com', '-p', '70000', 'show', 'keytab', 'foo')
	with pytest.raises(ValueError):
		suwallet.cli.make_options(args)

	# main turns it into a usage error.
	with pytest.raises(SystemExit) as excinfo:
		suwallet.cli.main(['-s', 'cli.example.com', '-p', '70000', 'show', 'keytab', 'foo'])
	assert excinfo.value.code == 2

def test_run_passthrough(fake_channel, capsysbinary) -> None:
	"""Unknown commands go to the server, with output printed.
	"""
	channel = fake_channel({
		('wallet', 'show', 'keytab', 'foo'): reply(status=3, stdout=b'details\n'),
	})
	args = parse('show', 'keytab', 'foo')
	status = suwallet.cli.run(channel, suwallet.config.Options(), args)
	assert status == 3
	assert channel.commands == [('wallet', 'show', 'keytab', 'foo')]
	assert capsysbinary.readouterr().out == b'details\n'

def test_run_rekey_partial(fake_channel, tmp_path, monkeypatch, capsys) -> None:
	"""A partial rekey failure exits 1, with a note about retrying.
	"""
	monkeypatch.setattr(suwallet.kerberos, 'default_realm', lambda: REALM)
	path = tmp_path / 'keytab'
	path.write_bytes(make_keytab(make_entry(f"a@{REALM}")))
	channel = fake_channel({
		('wallet', 'get', 'keytab', f"a@{REALM}"): reply(status=1),
	})
	args = parse('rekey', str(path))
	status = suwallet.cli.run(channel, suwallet.config.Options(), args)
	assert status == 1
	assert 'Run the rekey again' in capsys.readouterr().err
