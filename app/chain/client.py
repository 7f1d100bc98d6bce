import typing as t
import requests

from eth_abi import encode, decode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address
from fastapi import Request

from api.utils.logger import logger, myself

headers = {'Content-Type': 'application/json'}


class ChainError(Exception):
    pass


class ChainClient:
    """
    Minimal read-only client for an EVM node: JSON-RPC over http, eth_call
    against `latest`. Only view functions are ever called.
    """
    def __init__(self, rpcUrl: str, timeout: float = 5):
        self.rpcUrl = rpcUrl
        self.timeout = timeout
        self.session = requests.Session()
        self._requestId = 0

    def rpc(self, method: str, params: list):
        self._requestId += 1
        payload = {'jsonrpc': '2.0', 'id': self._requestId, 'method': method, 'params': params}
        try:
            res = self.session.post(self.rpcUrl, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise ChainError(f'{method} request failed: {e}') from e

        if not res.ok:
            raise ChainError(f'{method} returned {res.status_code}: {res.text}')

        body = res.json()
        if body.get('error'):
            raise ChainError(f"{method} error: {body['error'].get('message')}")
        return body.get('result')

    def call(self, to: str, signature: str, args: t.Sequence = (), outputTypes: t.Sequence[str] = ('uint256',)) -> tuple:
        """
        Call a view function, ie. call(vault, 'getParticipantCount()')
        or call(token, 'balanceOf(address)', [wallet]).
        """
        if not is_address(to):
            raise ChainError(f'invalid contract address: {to}')

        argTypes = [a for a in signature[signature.index('(')+1:-1].split(',') if a]
        data = function_signature_to_4byte_selector(signature) + encode(argTypes, list(args))
        result = self.rpc('eth_call', [{'to': to_checksum_address(to), 'data': '0x' + data.hex()}, 'latest'])

        raw = bytes.fromhex(result[2:]) if result else b''
        if not raw:
            raise ChainError(f'empty result from {signature} at {to}')
        try:
            return decode(list(outputTypes), raw)
        except DecodingError as e:
            raise ChainError(f'could not decode {signature} result: {e}') from e

    def close(self):
        logger.debug(f'{myself()}: closing rpc session')
        self.session.close()


# Dependency
def get_chain(request: Request) -> ChainClient:
    return request.app.state.chain
