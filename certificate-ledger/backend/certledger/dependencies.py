# certledger/dependencies.py
from fastapi import Depends

from certledger.gateway import BlockfrostGateway
from certledger.settings import LedgerConfig, get_settings


def get_ledger_config() -> LedgerConfig:
    # fresh snapshot per request
    return get_settings().ledger_config()


def get_gateway(config: LedgerConfig = Depends(get_ledger_config)) -> BlockfrostGateway:
    return BlockfrostGateway(config)
