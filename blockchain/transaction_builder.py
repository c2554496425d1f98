"""
Transaction Builder
Constructs singleton-factory deployment transactions
"""

from typing import Dict, Optional

from web3 import Web3


class TransactionBuilder:
    """
    Builds transaction dicts for factory calls

    Two steps: a call request (from/to/data, enough for estimate_gas) and a
    finalized transaction (nonce, chainId, gas, gasPrice) ready to sign.
    """

    @staticmethod
    def build_deployment_request(
        factory_address: str,
        init_code: str,
        sender: str,
        gas_limit: Optional[int] = None
    ) -> Dict:
        """
        Build the factory call

        Args:
            factory_address: Singleton factory address
            init_code: Hex calldata (salt + creation code)
            sender: Deployer address
            gas_limit: Explicit gas limit, if already estimated

        Returns:
            Transaction dict
        """
        tx = {
            'from': Web3.to_checksum_address(sender),
            'to': Web3.to_checksum_address(factory_address),
            'value': 0,
            'data': init_code,
        }

        if gas_limit is not None:
            tx['gas'] = int(gas_limit)

        return tx

    @staticmethod
    def finalize(
        request: Dict,
        nonce: int,
        chain_id: int,
        gas_price: int,
        gas_limit: Optional[int] = None
    ) -> Dict:
        """
        Fill in the fields needed for signing (legacy gas pricing)

        Args:
            request: Output of build_deployment_request
            nonce: Sender nonce
            chain_id: Target chain id
            gas_price: Gas price in wei
            gas_limit: Used only if the request has no gas yet

        Returns:
            New transaction dict; the request is left untouched
        """
        tx = dict(request)
        tx.pop('from', None)
        tx['nonce'] = nonce
        tx['chainId'] = chain_id
        tx['gasPrice'] = int(gas_price)

        if 'gas' not in tx:
            if gas_limit is None:
                raise ValueError("gas limit is required to finalize a transaction")
            tx['gas'] = int(gas_limit)

        return tx
