# vim: ts=4 sw=4 noet

# Copyright 2025 The Board of Trustees of the Leland Stanford Junior University
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#	http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# Stdlib imports
import dataclasses
import getpass
import logging
import os
import pathlib
import tempfile

# PyPi imports
import gssapi
import gssapi.exceptions

# local imports
from suwallet.clients.exceptions import KerberosError

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warn = logger.warning
info = logger.info
debug = logger.debug


# Check if we have support for the Kerberos Credential Store Extension, and
# the password extension.  We need both to get tickets as another user.
HAS_CREDENTIAL_STORE: bool
"""Does the underlying GSSAPI library support the Kerberos Credential Store Extension?
"""

HAS_PASSWORD: bool
"""Does the underlying GSSAPI library support getting credentials with a password?
"""

if 'store_cred_into' in dir(gssapi.raw):
	HAS_CREDENTIAL_STORE=True
else:
	HAS_CREDENTIAL_STORE=False

if 'acquire_cred_with_password' in dir(gssapi.raw):
	HAS_PASSWORD=True
else:
	HAS_PASSWORD=False

@dataclasses.dataclass()
class KrbCreds:
	"""A temporary Kerberos ticket cache, made by `kinit`.
	"""

	principal: str
	"""The principal the tickets are for.
	"""

	path: pathlib.Path
	"""The ticket cache file.
	"""

	previous_ccname: str | None
	"""The value `KRB5CCNAME` had before we replaced it.

	`kdestroy` puts this back.
	"""

	@property
	def ccache(self) -> str:
		return f"FILE:{self.path}"

def default_realm() -> str:
	"""Find the local default realm.

	We ask GSSAPI to canonicalize a principal name that has no realm.  The
	Kerberos mechanism adds the default realm, which we then pull back out.

	:raises KerberosError: There is no default realm.
	"""
	try:
		name = gssapi.Name('wallet', gssapi.NameType.kerberos_principal)
		canonical = str(name.canonicalize(gssapi.MechType.kerberos))
	except gssapi.exceptions.GSSError as e:
		raise KerberosError(f"cannot get default realm: {e.gen_message()}") from e
	realm = canonical.rpartition('@')[2]
	if realm == '' or realm == canonical:
		raise KerberosError('cannot get default realm')
	debug(f"Default realm is {realm}")
	return realm

def kinit(
	principal: str,
	password: str | None = None,
) -> KrbCreds:
	"""Get Kerberos tickets as a principal, using a password.

	The tickets go into a new, private ticket cache, and `KRB5CCNAME` is set
	to point at it.  Call `kdestroy` to remove the cache.

	:param principal: The principal to authenticate as.

	:param password: The password.  If not given, the user is prompted.

	:raises NotImplementedError: The GSSAPI library does not support the Credential Store or password extensions.

	:raises KerberosError: We could not get tickets.
	"""
	if not (HAS_CREDENTIAL_STORE and HAS_PASSWORD):
		raise NotImplementedError('GSSAPI cannot get tickets with a password')

	if password is None:
		password = getpass.getpass(f"Password for {principal}: ")

	debug(f"Getting initial tickets for {principal}")
	try:
		name = gssapi.Name(principal, gssapi.NameType.kerberos_principal)
		acquired = gssapi.raw.acquire_cred_with_password(
			name,
			password.encode('UTF-8'),
			usage='initiate',
		)
	except gssapi.exceptions.GSSError as e:
		raise KerberosError(f"cannot get Kerberos tickets for {principal}: {e.gen_message()}") from e

	fd, ccache_path = tempfile.mkstemp(prefix='krb5cc_wallet_')
	os.close(fd)
	creds = KrbCreds(
		principal=principal,
		path=pathlib.Path(ccache_path),
		previous_ccname=os.environ.get('KRB5CCNAME'),
	)
	try:
		gssapi.raw.store_cred_into(
			{'ccache': creds.ccache},
			acquired.creds,
			usage='initiate',
			overwrite=True,
		)
	except gssapi.exceptions.GSSError as e:
		creds.path.unlink(missing_ok=True)
		raise KerberosError(f"cannot store Kerberos tickets in {creds.ccache}: {e.gen_message()}") from e

	os.environ['KRB5CCNAME'] = creds.ccache
	info(f"Using tickets for {principal} from {creds.ccache}")
	return creds

def kdestroy(creds: KrbCreds) -> None:
	"""Remove a ticket cache made by `kinit`, and restore `KRB5CCNAME`.
	"""
	debug(f"Destroying {creds.ccache}")
	try:
		creds.path.unlink(missing_ok=True)
	except OSError as e:
		warn(f"Unable to remove ticket cache {creds.path}: {e}")
	if creds.previous_ccname is None:
		os.environ.pop('KRB5CCNAME', None)
	else:
		os.environ['KRB5CCNAME'] = creds.previous_ccname
