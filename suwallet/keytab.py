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

"""Reading and writing keytabs

The wallet server hands us keytabs as opaque blobs, but rekeying and srvtab
generation both need to look inside.  This module handles the MIT keytab
file format, which is documented at
https://web.mit.edu/kerberos/krb5-latest/doc/formats/keytab_file_format.html

In short: A keytab starts with a two-byte header (0x05, then the format
version).  Then come entries, each prefixed by a signed 32-bit length.  A
negative length marks a hole (a deleted entry) which must be skipped.
Version 1 keytabs use native byte order; version 2 keytabs are big-endian.
"""

# stdlib imports
import dataclasses
import logging
import struct
from typing import Iterable

# PyPi imports

# local imports
from suwallet.clients.exceptions import KeytabError
import suwallet.files

# Set up logging
logger = logging.getLogger(__name__)
exception = logger.exception
error = logger.error
warning = logger.warning
info = logger.info
debug = logger.debug

KEYTAB_MAGIC: int = 0x05
VERSION_1: int = 0x01
VERSION_2: int = 0x02

KRB5_NT_PRINCIPAL: int = 1
"""The name type used for ordinary principals.
"""

# Characters which must be escaped in a component of a principal name.
_COMPONENT_ESCAPES = {
	'\\': '\\\\',
	'/': '\\/',
	'@': '\\@',
	'\n': '\\n',
	'\t': '\\t',
	'\b': '\\b',
	'\0': '\\0',
}
_UNESCAPES = {
	'n': '\n',
	't': '\t',
	'b': '\b',
	'0': '\0',
}

@dataclasses.dataclass(frozen=True)
class Principal():
	"""A Kerberos v5 principal name.
	"""

	realm: str
	components: tuple[str, ...]
	name_type: int = KRB5_NT_PRINCIPAL

	@classmethod
	def parse(
		cls,
		name: str,
		default_realm: str | None = None,
	) -> 'Principal':
		"""Parse a principal name like `service/host.example.com@EXAMPLE.COM`.

		Backslash escapes `/` and `@` inside a component.

		:param name: The principal name.

		:param default_realm: The realm to use if the name does not have one.

		:raises KeytabError: The name is empty, or has no realm and no default realm was given.
		"""
		components: list[str] = list()
		realm: str | None = None
		current: list[str] = list()
		chars = iter(name)
		for char in chars:
			if char == '\\':
				escaped = next(chars, None)
				if escaped is None:
					raise KeytabError(f"Trailing backslash in principal {name!r}")
				current.append(_UNESCAPES.get(escaped, escaped))
			elif char == '/' and realm is None:
				components.append(''.join(current))
				current = list()
			elif char == '@' and realm is None:
				components.append(''.join(current))
				current = list()
				realm = ''
			else:
				current.append(char)
		if realm is None:
			components.append(''.join(current))
			realm = default_realm
		else:
			realm = ''.join(current)

		if realm is None or realm == '':
			raise KeytabError(f"No realm for principal {name!r}")
		if len(components) == 0 or components[0] == '':
			raise KeytabError(f"Empty principal name {name!r}")
		return cls(
			realm=realm,
			components=tuple(components),
		)

	def __str__(self) -> str:
		escaped = (
			''.join(_COMPONENT_ESCAPES.get(c, c) for c in component)
			for component in self.components
		)
		realm = self.realm.replace('\\', '\\\\').replace('@', '\\@')
		return '/'.join(escaped) + '@' + realm

@dataclasses.dataclass(frozen=True)
class KeytabEntry():
	"""One key for one principal.
	"""

	principal: Principal
	timestamp: int
	kvno: int
	enctype: int
	key: bytes = dataclasses.field(repr=False)

@dataclasses.dataclass()
class Keytab():
	"""A keytab: A format version, and a list of entries.

	Entries are kept in the order they appeared in the file.
	"""

	version: int = VERSION_2
	entries: list[KeytabEntry] = dataclasses.field(default_factory=list)

	def to_bytes(self) -> bytes:
		return (
			bytes((KEYTAB_MAGIC, self.version)) +
			encode_entries(self.entries, self.version)
		)

	def principals(self) -> list[Principal]:
		"""Return the distinct principals, in the order first seen.
		"""
		seen: dict[Principal, None] = dict()
		for entry in self.entries:
			seen.setdefault(entry.principal, None)
		return list(seen)

def _byte_order(version: int) -> str:
	if version == VERSION_1:
		return '='
	elif version == VERSION_2:
		return '>'
	raise KeytabError(f"Keytab format version {version} not recognized")

class _Reader():
	"""Pull fixed-size fields out of a buffer.
	"""

	def __init__(self,
		data: bytes,
		order: str,
	) -> None:
		self.data = data
		self.order = order
		self.pos = 0

	def unpack(self, fmt: str) -> int:
		size = struct.calcsize(self.order + fmt)
		if self.pos + size > len(self.data):
			raise KeytabError('Keytab entry is truncated')
		(value,) = struct.unpack_from(self.order + fmt, self.data, self.pos)
		self.pos += size
		return value

	def counted(self) -> bytes:
		length = self.unpack('H')
		if self.pos + length > len(self.data):
			raise KeytabError('Keytab entry is truncated')
		value = self.data[self.pos:self.pos + length]
		self.pos += length
		return value

	def remaining(self) -> int:
		return len(self.data) - self.pos

def _decode(value: bytes) -> str:
	return value.decode('UTF-8', 'surrogateescape')

def _encode(value: str) -> bytes:
	return value.encode('UTF-8', 'surrogateescape')

def _parse_entry(
	record: bytes,
	version: int,
) -> KeytabEntry:
	reader = _Reader(record, _byte_order(version))

	# Version 1 counted the realm as one of the components.
	count = reader.unpack('H')
	if version == VERSION_1:
		count -= 1
	realm = _decode(reader.counted())
	components = tuple(
		_decode(reader.counted())
		for i in range(count)
	)
	name_type = KRB5_NT_PRINCIPAL
	if version == VERSION_2:
		name_type = reader.unpack('I')

	timestamp = reader.unpack('I')
	kvno = reader.unpack('B')
	enctype = reader.unpack('H')
	key = reader.counted()

	# Newer keytabs add a 32-bit kvno, which wins if it is non-zero.
	if reader.remaining() >= 4:
		kvno32 = reader.unpack('I')
		if kvno32 != 0:
			kvno = kvno32

	return KeytabEntry(
		principal=Principal(
			realm=realm,
			components=components,
			name_type=name_type,
		),
		timestamp=timestamp,
		kvno=kvno,
		enctype=enctype,
		key=key,
	)

def parse_keytab(data: bytes) -> Keytab:
	"""Parse a keytab image.

	:param data: The contents of a keytab file.

	:raises KeytabError: The data is not a keytab we understand.
	"""
	if len(data) < 2 or data[0] != KEYTAB_MAGIC:
		raise KeytabError('Data is not a keytab')
	version = data[1]
	order = _byte_order(version)

	entries: list[KeytabEntry] = list()
	pos = 2
	while pos < len(data):
		if pos + 4 > len(data):
			raise KeytabError('Keytab entry length is truncated')
		(length,) = struct.unpack_from(order + 'i', data, pos)
		pos += 4
		if length == 0:
			break
		elif length < 0:
			debug(f"Skipping {-length}-byte hole at offset {pos}")
			pos += -length
			continue
		if pos + length > len(data):
			raise KeytabError('Keytab entry is truncated')
		entries.append(_parse_entry(data[pos:pos + length], version))
		pos += length

	debug(f"Parsed version {version} keytab with {len(entries)} entries")
	return Keytab(
		version=version,
		entries=entries,
	)

def read_keytab(path: suwallet.files.PathLike) -> Keytab:
	"""Read and parse a keytab file.

	:raises FileError: The file could not be read.

	:raises KeytabError: The file is not a keytab we understand.
	"""
	return parse_keytab(suwallet.files.read_file(path))

def _encode_entry(
	entry: KeytabEntry,
	version: int,
) -> bytes:
	order = _byte_order(version)
	principal = entry.principal
	count = len(principal.components)
	if version == VERSION_1:
		count += 1

	parts: list[bytes] = [struct.pack(order + 'H', count)]
	for value in (principal.realm,) + principal.components:
		encoded = _encode(value)
		parts.append(struct.pack(order + 'H', len(encoded)) + encoded)
	if version == VERSION_2:
		parts.append(struct.pack(order + 'I', principal.name_type))
	parts.append(struct.pack(
		order + 'IBHH',
		entry.timestamp,
		entry.kvno & 0xFF,
		entry.enctype,
		len(entry.key),
	))
	parts.append(entry.key)
	parts.append(struct.pack(order + 'I', entry.kvno))

	record = b''.join(parts)
	return struct.pack(order + 'i', len(record)) + record

def encode_entries(
	entries: Iterable[KeytabEntry],
	version: int = VERSION_2,
) -> bytes:
	"""Encode entries as keytab records, without the keytab header.

	The result can be appended to a keytab of the same version.
	"""
	return b''.join(
		_encode_entry(entry, version)
		for entry in entries
	)

def keytab_principals(
	keytab: Keytab,
	realm: str,
) -> list[str]:
	"""List the distinct principals in a keytab which are in a realm.

	Principals from other realms are skipped.

	:param keytab: The keytab to scan.

	:param realm: The realm to keep, normally the local default realm.

	:returns: Principal names, in the order they first appear in the keytab.
	"""
	# Two entries can differ only in name type, so compare by name.
	result: dict[str, None] = dict()
	for principal in keytab.principals():
		if principal.realm != realm:
			debug(f"Skipping {principal}, not in realm {realm}")
			continue
		result.setdefault(str(principal), None)
	return list(result)
