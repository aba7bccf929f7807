import pytest
from pydantic import ValidationError

from quote_engine.engine.models import AccessoryPaymentType, CustomerType, DeviceCategory, TradeInSource
from quote_engine.services.validation import config_to_payload, parse_config, validate_config


def payload(**overrides):
    data = {
        'customerName': 'Jordan',
        'customerType': 'military-fr',
        'plan': 'experience-more-military',
        'lines': 2,
        'devices': [{
            'id': 'd1', 'category': 'Phone', 'modelId': 'iphone-15', 'price': 829,
            'tradeIn': 100, 'term': 24, 'downPayment': 0,
        }],
        'accessories': [{'id': 'a1', 'name': 'Case', 'price': 40, 'paymentType': 'financed', 'quantity': 1,
                         'term': 12, 'downPayment': 0}],
        'discounts': {'autopay': True, 'insider': False, 'thirdLineFree': True},
        'fees': {'activation': True},
        'insuranceTier': 'p360',
        'taxRate': 7,
    }
    data.update(overrides)
    return data


def test_parse_camel_case_payload():
    config = parse_config(payload())
    assert config.customer_type == CustomerType.MILITARY_FR
    assert config.lines == 2
    assert config.devices[0].model_id == 'iphone-15'
    assert config.devices[0].trade_in == 100
    assert config.devices[0].trade_in_type == TradeInSource.MANUAL
    assert config.devices[0].category == DeviceCategory.PHONE
    assert config.accessories[0].payment_type == AccessoryPaymentType.FINANCED
    assert config.discounts.third_line_free is True
    assert config.fees.activation is True
    assert config.insurance_tier == 'p360'


def test_snake_case_keys_accepted():
    config = parse_config({'plan': 'essentials', 'tax_rate': 5, 'customer_type': 'plus-55'})
    assert config.tax_rate == 5
    assert config.customer_type == CustomerType.PLUS_55


def test_equipment_credit_limits_parsed():
    config = parse_config(payload(maxEC=6500, perLineEC=1500))
    assert (config.max_ec, config.per_line_ec) == (6500, 1500)
    assert config_to_payload(config)['maxEC'] == 6500
    assert parse_config(payload()).max_ec == 0


def test_parse_rejects_bad_payload():
    with pytest.raises(ValidationError):
        parse_config(payload(lines=0))


def test_payload_round_trip():
    config = parse_config(payload())
    data = config_to_payload(config)
    assert data['customerType'] == 'military-fr'
    assert data['devices'][0]['tradeIn'] == 100
    assert parse_config(data) == config


def test_valid_payload():
    result = validate_config(payload())
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


@pytest.mark.parametrize("overrides,location", [
    ({'plan': ''}, 'plan'),
    ({'lines': 0}, 'lines'),
    ({'taxRate': -1}, 'taxRate'),
    ({'customerType': 'vip'}, 'customerType'),
    ({'perLineEC': -5}, 'perLineEC'),
])
def test_schema_errors(overrides, location):
    result = validate_config(payload(**overrides))
    assert not result.valid
    assert any(error.startswith(location) for error in result.errors)


def test_device_errors_carry_their_path():
    bad_device = {'id': 'd1', 'price': -5, 'term': 0}
    result = validate_config(payload(devices=[bad_device]))
    assert not result.valid
    assert any(e.startswith('devices.0.price') for e in result.errors)
    assert any(e.startswith('devices.0.term') for e in result.errors)


def test_promotion_bookkeeping_warnings():
    devices = [
        {'id': 'd1', 'price': 500, 'tradeInType': 'promo'},
        {'id': 'd2', 'price': 500, 'appliedPromoId': 'iphone-15-on-us'},
        {'id': 'd3', 'price': 100, 'tradeIn': 300},
    ]
    result = validate_config(payload(devices=devices))
    assert result.valid
    assert result.warnings == [
        "Device d1: promo trade-in has no applied promotion",
        "Device d2: promotion 'iphone-15-on-us' set on a manual trade-in",
        "Device d3: trade-in exceeds device price",
    ]


def test_catalog_warnings(catalog):
    result = validate_config(payload(plan='experience-beyond-55', lines=3), catalog.plans)
    assert result.valid
    assert "Experience Beyond 55+ supports at most 2 lines" in result.warnings
    assert "Experience Beyond 55+ is not offered to military-fr customers" in result.warnings

    result = validate_config(payload(plan='retired'), catalog.plans)
    assert result.warnings == ["Plan 'retired' not found in catalog"]
