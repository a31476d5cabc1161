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

# Test option defaults

# PyPi imports
import pytest

# Local imports
from suwallet.config import Options, check_port, default_options


def test_defaults() -> None:
	options = default_options({})
	assert options == Options(
		type='wallet',
		server=None,
		port=0,
		principal=None,
		user=None,
	)

def test_environment() -> None:
	options = default_options({
		'WALLET_TYPE': 'wallet-test',
		'WALLET_SERVER': 'wallet.example.com',
		'WALLET_PORT': '4373',
		'WALLET_PRINCIPAL': 'service/wallet@EXAMPLE.COM',
	})
	assert options.type == 'wallet-test'
	assert options.server == 'wallet.example.com'
	assert options.port == 4373
	assert options.principal == 'service/wallet@EXAMPLE.COM'

	# Empty variables are the same as unset ones.
	assert default_options({'WALLET_SERVER': '', 'WALLET_TYPE': ''}) == default_options({})

def test_bad_port() -> None:
	with pytest.raises(ValueError):
		default_options({'WALLET_PORT': 'remctl'})
	with pytest.raises(ValueError):
		default_options({'WALLET_PORT': '65536'})
	with pytest.raises(ValueError):
		Options(port=-1)

def test_check_port() -> None:
	assert check_port(0) == 0
	assert check_port(65535) == 65535
	with pytest.raises(ValueError):
		check_port(65536)
	with pytest.raises(ValueError):
		check_port(-1)
