"""
Deployment Signer
Wraps the deployer key; the only place that touches the private key
"""

import os
from typing import Dict, Optional

from eth_account import Account
from loguru import logger
from dotenv import load_dotenv

from utils.errors import configuration_error
from utils.validation import validate_private_key

load_dotenv()


class DeploymentSigner:
    """
    Signing capability for the deployer account

    Must not be shared by two batches targeting the same network: nonce
    state is per account.
    """

    def __init__(self, private_key: str):
        """
        Initialize signer

        Args:
            private_key: 32-byte hex key (0x optional)
        """
        validate_private_key(private_key)

        if not private_key.startswith('0x'):
            private_key = '0x' + private_key

        self._account = Account.from_key(private_key)
        self.address = self._account.address

        logger.info(f"Deployer wallet: {self.address}")

    @classmethod
    def from_env(cls, var_name: str = 'PRIVATE_KEY') -> 'DeploymentSigner':
        """Build from PRIVATE_KEY (or another variable)"""
        private_key = os.getenv(var_name)

        if not private_key:
            raise configuration_error(f"{var_name} environment variable is not set")

        return cls(private_key)

    def sign_transaction(self, transaction: Dict):
        """
        Sign a fully populated transaction dict

        Returns:
            eth_account SignedTransaction
        """
        try:
            return self._account.sign_transaction(transaction)
        except Exception as e:
            logger.error(f"Error signing transaction: {e}")
            raise

    def __repr__(self) -> str:
        return f"DeploymentSigner({self.address})"
