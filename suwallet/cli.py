#!python3
# vim: ts=4 sw=4 noet

# The wallet client.  This talks to a wallet server over remctl, to fetch and
# store secure data objects: Most often keytabs, but also anything else the
# wallet server keeps.
#
# Most commands are passed straight through to the server, with the output
# printed.  A few need work on our side:
# * `get keytab <name>` writes the keytab atomically to the file given by
#   `-f`, and can derive a srvtab from it (`-S`).
# * `get <type> <name>` writes the object to `-f`, or to standard output.
# * `store <type> <name>` sends the contents of `-f` (or standard input).
# * `rekey <file>` gets new keys for every local-realm principal in a keytab,
#   keeping the old keys too.

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

# The minimum required Python version is 3.10.  That is because the code uses
# PEP 604 union types (`int | None` instead of `Optional[int]`, for example).

# stdlib imports
import argparse
import logging
import pathlib
import sys
from typing import Sequence

# PyPi imports

# local imports
import suwallet.clients.channel
import suwallet.clients.command
import suwallet.clients.exceptions
import suwallet.config
import suwallet.kerberos
import suwallet.retrieve

logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warn = logger.warning
info = logger.info
debug = logger.debug

def build_parser() -> argparse.ArgumentParser:
	"""Make our command-line parser.
	"""
	argp = argparse.ArgumentParser(
		prog='wallet',
		description='Client for the wallet system.',
		epilog=(
			'Your GSSAPI does ' +
			('' if suwallet.kerberos.HAS_CREDENTIAL_STORE else 'not ') +
			'support the Credential Store Extensions.'
		),
	)
	argp.add_argument('-c',
		dest='type',
		help='The remctl command for the wallet server.  Default is `wallet`, or $WALLET_TYPE.',
	)
	argp.add_argument('-f',
		dest='file',
		help='For get, write the object to this file.  For store, read the data from this file (`-` is standard input).',
		type=pathlib.Path,
	)
	argp.add_argument('-k',
		dest='principal',
		help='The Kerberos principal of the wallet server.  Default is $WALLET_PRINCIPAL, or the remctl default.',
	)
	argp.add_argument('-p',
		dest='port',
		help='The port of the wallet server.  Default is $WALLET_PORT, or the remctl default.',
		type=int,
	)
	argp.add_argument('-s',
		dest='server',
		help='The wallet server.  Default is $WALLET_SERVER.',
	)
	argp.add_argument('-S',
		dest='srvtab',
		help='For get keytab, also write a Kerberos v4 srvtab to this file.',
		type=pathlib.Path,
	)
	argp.add_argument('-u',
		dest='user',
		help='Get Kerberos tickets as this principal (prompting for a password) before connecting.',
	)
	argp.add_argument('--ccache',
		help='Use a specific Kerberos credentials cache.  Default is to use what is defined in the environment.',
	)
	argp.add_argument('--debug',
		help='Enable debug logging.  Overrides --verbose',
		action='store_true',
	)
	argp.add_argument('--verbose',
		help='Enable verbose logging.',
		action='store_true',
	)
	argp.add_argument('command',
		help='The wallet command to run, such as `get` or `rekey`.',
	)
	argp.add_argument('arguments',
		help='Arguments for the command.',
		nargs=argparse.REMAINDER,
	)
	return argp

def make_options(
	args: argparse.Namespace,
) -> suwallet.config.Options:
	"""Merge command-line arguments over the defaults from the environment.

	:raises ValueError: A port is invalid.
	"""
	options = suwallet.config.default_options()
	if args.type is not None:
		options.type = args.type
	if args.server is not None:
		options.server = args.server
	if args.port is not None:
		options.port = suwallet.config.check_port(args.port)
	if args.principal is not None:
		options.principal = args.principal
	if args.user is not None:
		options.user = args.user
	return options

def check_usage(
	argp: argparse.ArgumentParser,
	args: argparse.Namespace,
) -> None:
	"""Catch argument combinations that can never work.

	Calls `argp.error` (which exits) on a problem.
	"""
	if args.command == 'get':
		if len(args.arguments) != 2:
			argp.error('get takes exactly two arguments')
		if args.arguments[0] == suwallet.retrieve.KEYTAB_TYPE and args.file is None:
			argp.error('-f is required for get keytab')
		if args.srvtab is not None and args.arguments[0] != suwallet.retrieve.KEYTAB_TYPE:
			argp.error('-S option only supported with get keytab')
	elif args.command == 'store':
		if len(args.arguments) != 2:
			argp.error('store takes exactly two arguments')
	elif args.command == 'rekey':
		if len(args.arguments) != 1:
			argp.error('rekey takes exactly one argument')
	if args.srvtab is not None and args.command != 'get':
		argp.error('-S option only supported with get keytab')
	if args.file is not None and args.command not in ('get', 'store'):
		argp.error('-f option only supported for get and store')

def run(
	channel: suwallet.clients.command.Channel,
	options: suwallet.config.Options,
	args: argparse.Namespace,
) -> int:
	"""Run one wallet command, and return our exit status.
	"""
	if args.command == 'get' and args.arguments[0] == suwallet.retrieve.KEYTAB_TYPE:
		return suwallet.retrieve.get_keytab(
			channel,
			options.type,
			args.arguments[1],
			args.file,
			srvtab=args.srvtab,
			realm=(
				suwallet.kerberos.default_realm()
				if args.srvtab is not None
				else None
			),
		)
	elif args.command == 'get':
		return suwallet.retrieve.get_file(
			channel,
			options.type,
			args.arguments[0],
			args.arguments[1],
			path=args.file,
		)
	elif args.command == 'store':
		return suwallet.retrieve.store_file(
			channel,
			options.type,
			args.arguments[0],
			args.arguments[1],
			path=args.file,
		)
	elif args.command == 'rekey':
		if suwallet.retrieve.rekey_keytab(
			channel,
			options.type,
			args.arguments[0],
			suwallet.kerberos.default_realm(),
		):
			return 0
		print(
			f"Some principals in {args.arguments[0]} were not rekeyed.  Run the rekey again to retry them.",
			file=sys.stderr,
		)
		return 1
	else:
		result = suwallet.clients.command.run_command(
			channel,
			[options.type, args.command, *args.arguments],
		)
		return result.status

def main(
	argv: Sequence[str] | None = None,
) -> int:
	argp = build_parser()
	args = argp.parse_args(argv)

	# Set up logging
	logging.basicConfig(
		level=(
			'DEBUG' if args.debug is True else (
				'INFO' if args.verbose is True else 'WARNING'
			)
		),
	)

	check_usage(argp, args)
	try:
		options = make_options(args)
	except ValueError as e:
		argp.error(str(e))
	if options.server is None:
		argp.error('no server specified (use -s or $WALLET_SERVER)')

	creds: suwallet.kerberos.KrbCreds | None = None
	try:
		if options.user is not None:
			creds = suwallet.kerberos.kinit(options.user)
		with suwallet.clients.channel.RemctlChannel(
			server=options.server,
			port=options.port,
			principal=options.principal,
			ccache=(creds.ccache if creds is not None else args.ccache),
		) as channel:
			return run(channel, options, args)
	except NotImplementedError:
		print("Your GSSAPI implementation does not support getting tickets with a password.", file=sys.stderr)
		return 1
	except suwallet.clients.exceptions.WalletError as e:
		debug(f"Failed with {type(e).__name__}")
		print(f"wallet: {e}", file=sys.stderr)
		return e.status
	finally:
		if creds is not None:
			suwallet.kerberos.kdestroy(creds)

if __name__ == '__main__':
	sys.exit(main())
