from civbridge.services.policy import DEV_NO_FEE_POLICY, LATEST_TRANSACTION_VERSION


def test_zero_bounds_for_every_resource():
    bounds = DEV_NO_FEE_POLICY.resource_bounds
    for resource in (bounds.l1_gas, bounds.l2_gas, bounds.l1_data_gas):
        assert resource.max_amount == 0
        assert resource.max_price_per_unit == 0


def test_highest_transaction_version():
    assert DEV_NO_FEE_POLICY.transaction_version == LATEST_TRANSACTION_VERSION == 3
