"""Fee / version policy applied to every write.

Katana runs with `--dev.no-fee --dev.no-account-validation`, so fee
estimation is skipped and zero bounds are accepted. Using this policy
against a node that enforces fees will get every transaction rejected.
"""
from dataclasses import dataclass, field

from starknet_py.net.client_models import ResourceBounds, ResourceBoundsMapping

# Katana 1.7.x (RPC 0.9) accepts only V3 transactions
LATEST_TRANSACTION_VERSION = 3


def zero_resource_bounds() -> ResourceBoundsMapping:
    zero = ResourceBounds(max_amount=0, max_price_per_unit=0)
    return ResourceBoundsMapping(l1_gas=zero, l2_gas=zero, l1_data_gas=zero)


@dataclass(frozen=True)
class TransactionPolicy:
    resource_bounds: ResourceBoundsMapping = field(default_factory=zero_resource_bounds)
    transaction_version: int = LATEST_TRANSACTION_VERSION


DEV_NO_FEE_POLICY = TransactionPolicy()
