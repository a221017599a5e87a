from infrastructure.external.payments.ecpay import ECPayPayment


def test_provider_status_mapping(ecpay: ECPayPayment):
    assert ecpay._map_status("0") == "pending"
    assert ecpay._map_status("1") == "committed"
    assert ecpay._map_status("10200095") == "failed"
    assert ecpay._map_status("999") == "999"
