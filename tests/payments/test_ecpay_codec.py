import hashlib

from infrastructure.external.payments.ecpay.codec import CHECK_MAC_FIELD, CheckMacCodec, encode_uri_component


def test_encode_uri_component_keeps_unreserved_marks():
    assert encode_uri_component("a b&c=d") == "a%20b%26c%3Dd"
    assert encode_uri_component("-_.!~*'()") == "-_.!~*'()"
    assert encode_uri_component("商品") == "%E5%95%86%E5%93%81"


def test_canonical_string_sorted_case_insensitively_and_wrapped():
    codec = CheckMacCodec("K", "I")
    assert codec.canonicalize({"b": "x y", "A": "1"}) == "hashkey%3dk%26a%3d1%26b%3dx+y%26hashiv%3di"


def test_canonical_string_patches_quote_and_tilde():
    codec = CheckMacCodec("K", "I")
    assert codec.canonicalize({"v": "a'b~c(d)*!"}) == "hashkey%3dk%26v%3da%27b%7ec(d)*!%26hashiv%3di"


def test_sign_is_upper_sha256_of_canonical_string():
    codec = CheckMacCodec("K", "I")
    payload = {"MerchantID": "2000132", "TotalAmount": 200}
    expected = hashlib.sha256(codec.canonicalize(payload).encode("utf-8")).hexdigest().upper()
    assert codec.sign(payload) == expected
    assert len(expected) == 64


def test_sign_ignores_existing_check_mac_value():
    codec = CheckMacCodec("K", "I")
    payload = {"MerchantID": "2000132"}
    assert codec.sign(payload) == codec.sign({**payload, CHECK_MAC_FIELD: "WHATEVER"})


def test_attach_then_verify():
    codec = CheckMacCodec("5294y06JbISpM5x9", "v77hoKGq4kWxNNIS")
    signed = codec.attach({"MerchantID": "2000132", "TradeAmt": 200, "ItemName": "蘋果 x2"})
    assert signed["TradeAmt"] == "200"
    assert codec.verify(signed)


def test_single_field_mutation_breaks_verification():
    codec = CheckMacCodec("5294y06JbISpM5x9", "v77hoKGq4kWxNNIS")
    signed = codec.attach({"MerchantID": "2000132", "TradeAmt": "200", "RtnCode": "1"})
    for key in ("MerchantID", "TradeAmt", "RtnCode"):
        tampered = dict(signed)
        tampered[key] = tampered[key] + "0"
        assert not codec.verify(tampered)


def test_verify_rejects_missing_or_foreign_signature():
    codec = CheckMacCodec("5294y06JbISpM5x9", "v77hoKGq4kWxNNIS")
    assert not codec.verify({"MerchantID": "2000132"})
    other = CheckMacCodec("another-key", "another-iv").attach({"MerchantID": "2000132"})
    assert not codec.verify(other)
