from decimal import Decimal
from eth_utils import is_address, to_checksum_address

from chain.client import ChainClient, ChainError
from config import Config, Network # api specific config

CFG = Config[Network]


def get_token_balance(chain: ChainClient, walletAddress: str, tokenAddress: str = None, decimals: int = None) -> str:
    """erc20 balanceOf, scaled down by token decimals (usdc by default)"""
    tokenAddress = tokenAddress or CFG.usdcAddress
    decimals = CFG.usdcDecimals if decimals is None else decimals
    if not is_address(walletAddress):
        raise ChainError(f'invalid wallet address: {walletAddress}')

    (balance,) = chain.call(tokenAddress, 'balanceOf(address)', [to_checksum_address(walletAddress)])
    if balance == 0:
        return '0'
    return f'{Decimal(balance) / (Decimal(10) ** decimals):f}'


def get_participant_count(chain: ChainClient, vaultAddress: str) -> int:
    (count,) = chain.call(vaultAddress, 'getParticipantCount()')
    return int(count)
