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

"""Deriving Kerberos v4 srvtabs from keytabs

Some old services still want a srvtab: A single Kerberos v4 key for a single
service.  A srvtab record is the v4 name, instance, and realm (each
NUL-terminated), then a one-byte key version, then an eight-byte DES key.

Kerberos v4 only supports single DES, so a srvtab can only be made from a
principal that has a DES key in the keytab.
"""

# stdlib imports
import dataclasses
import logging
from typing import NamedTuple

# PyPi imports

# local imports
from suwallet.clients.exceptions import KeytabError, SrvtabError
import suwallet.files
import suwallet.keytab

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

ENCTYPE_DES_CBC_CRC: int = 1
ENCTYPE_DES_CBC_MD4: int = 2
ENCTYPE_DES_CBC_MD5: int = 3

DES_ENCTYPES: tuple[int, ...] = (
	ENCTYPE_DES_CBC_CRC,
	ENCTYPE_DES_CBC_MD4,
	ENCTYPE_DES_CBC_MD5,
)
"""Single-DES encryption types, most preferred first.
"""

DES_KEY_LENGTH: int = 8

V4_FIELD_MAX: int = 40
"""Kerberos v4 name, instance, and realm fields hold at most 39 characters.
"""

@dataclasses.dataclass(frozen=True)
class ServiceConversion():
	v4_name: str
	host_instance: bool
	"""If true, the v4 instance is the first label of the v5 host name.
	"""

# Kerberos v5 service names whose v4 equivalent differs in name or instance.
SERVICE_CONVERSIONS: dict[str, ServiceConversion] = {
	'kadmin': ServiceConversion('kadmin', False),
	'host': ServiceConversion('rcmd', True),
	'zephyr': ServiceConversion('zephyr', False),
} | {
	name: ServiceConversion(name, True)
	for name in (
		'discuss', 'rvdsrv', 'sample', 'olc', 'pop', 'sis', 'rfs', 'imap',
		'ftp', 'ecat', 'daemon', 'gnats', 'moira', 'prms', 'mandarin',
		'register', 'changepw', 'sms', 'afpserver', 'gdss', 'news', 'abs',
		'nfs', 'tftp', 'http', 'khttp', 'pgpsigner', 'irc', 'mandarin-agent',
		'write', 'palladium', 'smtp', 'lmtp', 'ldap', 'acap', 'argus',
		'mupdate',
	)
}

class V4Name(NamedTuple):
	name: str
	instance: str
	realm: str

	def __str__(self) -> str:
		if self.instance == '':
			return f"{self.name}@{self.realm}"
		return f"{self.name}.{self.instance}@{self.realm}"

def convert_principal(
	principal: suwallet.keytab.Principal,
) -> V4Name:
	"""Convert a Kerberos v5 principal to a Kerberos v4 name.

	:raises SrvtabError: The principal has too many components, or a part is too long for Kerberos v4.
	"""
	components = principal.components
	if len(components) == 1:
		result = V4Name(components[0], '', principal.realm)
	elif len(components) == 2:
		service, instance = components
		conversion = SERVICE_CONVERSIONS.get(service)
		if conversion is not None:
			service = conversion.v4_name
			if conversion.host_instance:
				instance = instance.split('.', 1)[0]
		result = V4Name(service, instance, principal.realm)
	else:
		raise SrvtabError(f"cannot convert {principal} to a Kerberos v4 name")

	for field in result:
		if len(field) >= V4_FIELD_MAX:
			raise SrvtabError(f"{field!r} is too long for a Kerberos v4 name")
	debug(f"Converted {principal} to {result}")
	return result

def _find_des_entry(
	keytab: suwallet.keytab.Keytab,
	principal: suwallet.keytab.Principal,
) -> suwallet.keytab.KeytabEntry:
	"""Find the newest single-DES key for a principal.
	"""
	entries = [
		entry
		for entry in keytab.entries
		if entry.principal.realm == principal.realm
		and entry.principal.components == principal.components
	]
	if len(entries) == 0:
		raise SrvtabError(f"principal {principal} not found in keytab")

	kvno = max(entry.kvno for entry in entries)
	for enctype in DES_ENCTYPES:
		for entry in entries:
			if entry.kvno == kvno and entry.enctype == enctype:
				if len(entry.key) != DES_KEY_LENGTH:
					raise SrvtabError(f"DES key for {principal} has length {len(entry.key)}")
				return entry
	raise SrvtabError(
		f"no single-DES key for {principal} kvno {kvno}; "
		'srvtabs are not supported for its encryption types'
	)

def srvtab_record(entry: suwallet.keytab.KeytabEntry) -> bytes:
	"""Build the srvtab record for a single-DES keytab entry.
	"""
	v4name = convert_principal(entry.principal)
	return b''.join((
		v4name.name.encode('UTF-8') + b'\0',
		v4name.instance.encode('UTF-8') + b'\0',
		v4name.realm.encode('UTF-8') + b'\0',
		bytes((entry.kvno & 0xFF,)),
		entry.key,
	))

def write_srvtab(
	srvtab: suwallet.files.PathLike,
	principal: str,
	keytab: suwallet.files.PathLike,
	default_realm: str | None = None,
) -> None:
	"""Write a srvtab for a principal, using the key from a keytab.

	:param srvtab: Where to write the srvtab.  It is written atomically.

	:param principal: The Kerberos v5 principal name.

	:param keytab: The keytab containing the principal's key.

	:param default_realm: The realm to use if `principal` does not have one.

	:raises FileError: The keytab could not be read, or the srvtab could not be written.

	:raises SrvtabError: The principal is not in the keytab, or has no key that Kerberos v4 can use.
	"""
	try:
		parsed = suwallet.keytab.Principal.parse(principal, default_realm)
		contents = suwallet.keytab.read_keytab(keytab)
	except KeytabError as e:
		raise SrvtabError(f"cannot read {principal} from {keytab}: {e}") from e

	entry = _find_des_entry(contents, parsed)
	info(f"Writing srvtab {srvtab} for {parsed} kvno {entry.kvno}")
	suwallet.files.write_file(srvtab, srvtab_record(entry))
