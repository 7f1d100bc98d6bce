import pytest
import requests

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from chain.client import ChainClient, ChainError
from chain.contracts import get_participant_count, get_token_balance
from factories import ALICE, VAULT

USDC = '0x036CbD53842c5426634e7929541eC2318f3dCF7e'


class MockHttpResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status_code = status
        self.ok = status < 400
        self.text = str(body)

    def json(self):
        return self.body


def rpc_result(types, values):
    return MockHttpResponse({'jsonrpc': '2.0', 'id': 1, 'result': '0x' + encode(types, values).hex()})


def test_call_encodes_selector_and_arguments(mocker):
    # setup
    chain = ChainClient('http://node')
    post = mocker.patch.object(chain.session, 'post', return_value=rpc_result(['uint256'], [7]))

    # act
    (count,) = chain.call(VAULT, 'getParticipantCount()')

    # assert
    assert count == 7
    payload = post.call_args.kwargs['json']
    assert payload['method'] == 'eth_call'
    assert payload['params'][1] == 'latest'
    assert payload['params'][0]['data'] == '0x' + function_signature_to_4byte_selector('getParticipantCount()').hex()


def test_call_with_address_argument(mocker):
    chain = ChainClient('http://node')
    post = mocker.patch.object(chain.session, 'post', return_value=rpc_result(['uint256'], [1]))

    chain.call(USDC, 'balanceOf(address)', [ALICE])

    data = post.call_args.kwargs['json']['params'][0]['data']
    assert data.endswith('a' * 40)
    assert len(data) == 2 + 8 + 64


def test_token_balance_is_scaled_by_decimals(mocker):
    chain = ChainClient('http://node')
    mocker.patch.object(chain.session, 'post', return_value=rpc_result(['uint256'], [1_500_000]))
    assert get_token_balance(chain, ALICE) == '1.5'


def test_zero_balance(mocker):
    chain = ChainClient('http://node')
    mocker.patch.object(chain.session, 'post', return_value=rpc_result(['uint256'], [0]))
    assert get_token_balance(chain, ALICE) == '0'


def test_participant_count(mocker):
    chain = ChainClient('http://node')
    mocker.patch.object(chain.session, 'post', return_value=rpc_result(['uint256'], [12]))
    assert get_participant_count(chain, VAULT) == 12


@pytest.mark.parametrize('response', [
    MockHttpResponse({'jsonrpc': '2.0', 'id': 1, 'error': {'code': -32000, 'message': 'execution reverted'}}),
    MockHttpResponse({'jsonrpc': '2.0', 'id': 1, 'result': '0x'}),
    MockHttpResponse('bad gateway', status=502),
])
def test_call_failures_raise_chain_error(mocker, response):
    chain = ChainClient('http://node')
    mocker.patch.object(chain.session, 'post', return_value=response)
    with pytest.raises(ChainError):
        chain.call(VAULT, 'getParticipantCount()')


def test_unreachable_node_raises_chain_error(mocker):
    chain = ChainClient('http://node', timeout=1)
    mocker.patch.object(chain.session, 'post', side_effect=requests.ConnectionError('refused'))
    with pytest.raises(ChainError):
        chain.call(VAULT, 'getParticipantCount()')


def test_invalid_addresses_raise_chain_error():
    chain = ChainClient('http://node')
    with pytest.raises(ChainError):
        chain.call('0x1234', 'getParticipantCount()')
    with pytest.raises(ChainError):
        get_token_balance(chain, 'not-a-wallet')
